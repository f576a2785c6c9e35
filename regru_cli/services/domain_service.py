"""
Domain Service
High-level operations over the REG.RU API2 client:
account check, service and domain listings, DNS zone management
"""

from typing import Any, Dict, List, Mapping, Optional

from regru_cli.api import RegRuClient, ensure_success
from regru_cli.utils.logger import get_logger
from regru_cli.utils.validators import validate_record_kind

logger = get_logger(__name__)


def _answer(payload: Mapping[str, Any]) -> Dict[str, Any]:
    answer = payload.get("answer")
    return answer if isinstance(answer, dict) else {}


def service_rows(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Service objects from a service/get_list response"""
    services = _answer(payload).get("services") or []
    return [item for item in services if isinstance(item, dict) and "service_id" in item]


def domain_rows(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Domain services from a service/get_list response"""
    services = _answer(payload).get("services") or []
    return [
        item for item in services
        if isinstance(item, dict) and item.get("servtype") == "domain"
    ]


def zone_records(payload: Mapping[str, Any]) -> List[Any]:
    """Resource records from a zone/get_resource_records response"""
    return _answer(payload).get("rrs") or []


class DomainService:
    """
    High-level REG.RU operations.
    Every method checks the API result and raises ApiError on failure.
    """

    def __init__(self, client: RegRuClient):
        """
        Initialize domain service.

        Args:
            client: Configured API client
        """
        self.client = client

    def _call(self, method: str, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        payload = self.client.call(method, params=params)
        ensure_success(payload)
        return payload

    def nop(self) -> Dict[str, Any]:
        """
        Authenticated no-op call.

        Returns:
            Dictionary with login, user_id and the raw response
        """
        payload = self._call("nop")
        answer = _answer(payload)

        login = answer.get("login")
        user_id = answer.get("user_id")
        return {
            "login": login if isinstance(login, str) else "",
            "user_id": str(user_id) if isinstance(user_id, (int, str)) and not isinstance(user_id, bool) else "",
            "raw_response": payload
        }

    def list_services(self, servtype: Optional[str] = None, state: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List account services.

        Args:
            servtype: Optional service type filter
            state: Optional state filter

        Returns:
            List of service dictionaries
        """
        params = {}
        if servtype:
            params["servtype"] = servtype
        if state:
            params["state"] = state

        payload = self._call("service/get_list", params)
        rows = service_rows(payload)
        logger.info(f"Found {len(rows)} services")
        return rows

    def list_domains(self) -> List[Dict[str, Any]]:
        """
        List domains in the account.

        Returns:
            List of domain service dictionaries
        """
        payload = self._call("service/get_list", {"servtype": "domain"})
        rows = domain_rows(payload)
        logger.info(f"Found {len(rows)} domains in account")
        return rows

    def get_zone_records(self, domain: str) -> Dict[str, Any]:
        """Raw zone/get_resource_records response for a domain"""
        return self._call("zone/get_resource_records", {"domain_name": domain})

    def add_zone_record(self, kind: str, domain: str, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """
        Add a DNS record through zone/add_<kind>.

        Raises:
            UsageError: If the record kind is not supported
        """
        kind = validate_record_kind(kind)
        logger.info(f"Adding {kind} record to {domain}")
        return self._call(f"zone/add_{kind}", {"domain_name": domain, **(params or {})})

    def remove_zone_record(self, domain: str, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        logger.info(f"Removing record from {domain}")
        return self._call("zone/remove_record", {"domain_name": domain, **(params or {})})

    def update_zone_records(self, domain: str, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        logger.info(f"Updating records of {domain}")
        return self._call("zone/update_records", {"domain_name": domain, **(params or {})})

    def clear_zone(self, domain: str) -> Dict[str, Any]:
        logger.info(f"Clearing zone of {domain}")
        return self._call("zone/clear", {"domain_name": domain})

    def call_method(self, method: str, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Call any non-reseller method and check its result"""
        return self._call(method, params)
