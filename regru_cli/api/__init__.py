"""
API Layer - REG.RU API2 client, method guard and response classifier
"""

# Client
from regru_cli.api.regru_client import (
    RegRuClient,
    assert_non_reseller_method,
    ensure_success,
    normalize_method
)

# Exceptions
from regru_cli.api.exceptions import (
    RegRuError,
    UsageError,
    ConfigError,
    AuthError,
    PolicyError,
    TransportError,
    RequestTimeoutError,
    NetworkError,
    ApiError
)

__all__ = [
    # Client
    "RegRuClient",
    "assert_non_reseller_method",
    "ensure_success",
    "normalize_method",

    # Exceptions
    "RegRuError",
    "UsageError",
    "ConfigError",
    "AuthError",
    "PolicyError",
    "TransportError",
    "RequestTimeoutError",
    "NetworkError",
    "ApiError"
]
