"""
Business logic and service layer
"""

from regru_cli.services.domain_service import DomainService
from regru_cli.services.config_service import ConfigService
from regru_cli.services.doctor_service import CheckResult, DoctorService, has_failures

__all__ = [
    # REG.RU account, domains and DNS zones
    "DomainService",
    # Config file CRUD
    "ConfigService",
    # Readiness checks
    "CheckResult",
    "DoctorService",
    "has_failures",
]
