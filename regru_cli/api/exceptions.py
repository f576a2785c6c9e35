"""
Custom exceptions for REG.RU CLI operations
Every error carries the process exit code the CLI terminates with
"""

from typing import Any, Optional


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


class RegRuError(Exception):
    """Base exception for all CLI errors"""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        return self.message


class UsageError(RegRuError):
    """Raised for bad arguments, disallowed config keys or malformed key=value tokens"""

    exit_code = EXIT_USAGE


class ConfigError(RegRuError):
    """Raised when the persisted config is unreadable or the endpoint cannot be resolved"""

    exit_code = EXIT_FAILURE


class AuthError(RegRuError):
    """Raised when credentials are required but missing"""

    exit_code = EXIT_USAGE


class PolicyError(RegRuError):
    """Raised when a reseller method is invoked"""

    exit_code = EXIT_USAGE


class TransportError(RegRuError):
    """Raised when the API could not be reached or answered with an unusable response"""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.status_code = status_code
        super().__init__(message, details=details)


class RequestTimeoutError(TransportError):
    """Raised when an attempt exceeds the configured timeout"""
    pass


class NetworkError(TransportError):
    """Raised when network/connection errors occur"""
    pass


class ApiError(RegRuError):
    """Raised when the API answers with a non-success result"""

    exit_code = EXIT_FAILURE

    def __init__(self, error_code: str, error_text: str, response_data: Optional[dict] = None):
        self.error_code = error_code
        self.error_text = error_text
        self.response_data = response_data or {}
        super().__init__(f"{error_code}: {error_text}", details=self.response_data)
