"""
REG.RU API2 Client
Executes form-encoded POST calls with per-attempt timeouts and linear-backoff retries
"""

import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing
)

from regru_cli.api.exceptions import (
    ApiError,
    AuthError,
    NetworkError,
    PolicyError,
    RequestTimeoutError,
    TransportError
)
from regru_cli.utils.logger import get_logger

if TYPE_CHECKING:
    from regru_cli.utils.config import EffectiveConfig


logger = get_logger(__name__)

# Linear backoff: 150ms after the first failed attempt, 300ms after the second, ...
BACKOFF_STEP_SECONDS = 0.15

DEFAULT_ERROR_CODE = "API_ERROR"
DEFAULT_ERROR_TEXT = "REG.RU API returned an error."


def normalize_method(method: str) -> str:
    """Strip leading slashes and surrounding whitespace"""
    return method.lstrip("/").strip()


def assert_non_reseller_method(method: str) -> None:
    """
    Refuse any method that touches reseller functionality.

    Raises:
        PolicyError: If the method name contains "reseller" in any case
    """
    if "reseller" in normalize_method(method).lower():
        raise PolicyError("Reseller methods are intentionally not supported by regru-cli.")


def ensure_success(payload: Mapping[str, Any]) -> None:
    """
    Check the application-level result of an API response.

    Raises:
        ApiError: If payload["result"] is not "success"
    """
    if payload.get("result") == "success":
        return

    error_code = payload.get("error_code")
    error_text = payload.get("error_text")
    raise ApiError(
        error_code if isinstance(error_code, str) else DEFAULT_ERROR_CODE,
        error_text if isinstance(error_text, str) else DEFAULT_ERROR_TEXT,
        response_data=dict(payload)
    )


class RegRuClient:
    """
    REG.RU API2 client.
    One request in flight at a time; attempts are strictly sequential.
    """

    def __init__(
        self,
        config: "EffectiveConfig",
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the client.

        Args:
            config: Effective configuration for this invocation
            session: Optional HTTP session (anything with a requests-style post())
            sleep: Function used for the backoff delay between attempts
        """
        self.config = config
        self.session = session or requests.Session()
        self.sleep = sleep
        self.base_url = config.endpoint.rstrip("/")

        logger.debug(f"REG.RU client initialized - Endpoint: {self.base_url}")

    def _build_params(self, params: Optional[Mapping[str, str]], require_auth: bool) -> Dict[str, str]:
        form = dict(params or {})
        form["output_format"] = "json"

        if require_auth:
            if not self.config.username or not self.config.password:
                raise AuthError(
                    "Username/password are missing. Set via `regru cfg set username <value>` and "
                    "`printf \"...\" | regru cfg set password -`, or env REGRU_USERNAME/REGRU_PASSWORD."
                )
            form["username"] = self.config.username
            form["password"] = self.config.password

        return form

    def _send(self, url: str, form: Dict[str, str], timeout_seconds: float, outcome: Dict[str, Any]):
        """Worker body: POST and read the whole response body into outcome"""
        try:
            response = self.session.post(
                url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=timeout_seconds,
                stream=True
            )
            outcome["response"] = response
            outcome["raw"] = response.text
        except Exception as e:
            outcome["error"] = e

    def _make_request(self, url: str, form: Dict[str, str]) -> Dict[str, Any]:
        """
        Make one POST attempt.

        The timeout bounds the whole attempt (connect, headers and body).
        requests only bounds each socket operation, so the attempt runs in a
        worker thread and is abandoned once the deadline passes.

        Returns:
            Decoded JSON object

        Raises:
            RequestTimeoutError: If the attempt exceeded the timeout
            NetworkError: If the connection failed
            TransportError: If the body is not a JSON object or the status is not 2xx
        """
        timeout_seconds = self.config.timeout / 1000
        outcome: Dict[str, Any] = {}

        worker = threading.Thread(
            target=self._send,
            args=(url, form, timeout_seconds, outcome),
            name="regru-request",
            daemon=True
        )
        worker.start()
        worker.join(timeout_seconds)

        # The abandoned daemon worker finishes or fails on its own socket timeouts
        if worker.is_alive():
            raise RequestTimeoutError(f"Request timed out after {self.config.timeout}ms.")

        error = outcome.get("error")
        if isinstance(error, requests.exceptions.Timeout):
            raise RequestTimeoutError(f"Request timed out after {self.config.timeout}ms.")
        if isinstance(error, requests.exceptions.ConnectionError):
            raise NetworkError(f"Connection error: {str(error)}")
        if isinstance(error, requests.exceptions.RequestException):
            raise NetworkError(f"Network error: {str(error)}")
        if error is not None:
            raise error

        response = outcome["response"]
        raw = outcome["raw"]
        try:
            payload = response.json()
        except ValueError:
            raise TransportError(
                f"Unexpected non-JSON response from API ({response.status_code}).",
                status_code=response.status_code,
                details={"raw": raw}
            )

        if not isinstance(payload, dict):
            raise TransportError(
                f"Unexpected response shape from API ({response.status_code}).",
                status_code=response.status_code,
                details={"raw": raw}
            )

        if not response.ok:
            raise TransportError(
                f"HTTP {response.status_code} from API.",
                status_code=response.status_code,
                details=payload
            )

        return payload

    def call(
        self,
        method: str,
        params: Optional[Mapping[str, str]] = None,
        require_auth: bool = True
    ) -> Dict[str, Any]:
        """
        Call an API method.

        The response body is returned unmodified; use ensure_success() to
        check its result field.

        Args:
            method: API method such as 'service/get_list'
            params: Form parameters
            require_auth: Attach username/password from config

        Returns:
            Decoded JSON object

        Raises:
            PolicyError: For reseller methods (before any I/O)
            AuthError: If credentials are required but missing
            TransportError: If every attempt failed at the transport level
        """
        method = normalize_method(method)
        assert_non_reseller_method(method)

        form = self._build_params(params, require_auth)
        url = f"{self.base_url}/{method}"
        max_attempts = max(1, self.config.retries + 1)

        retryer = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_incrementing(start=BACKOFF_STEP_SECONDS, increment=BACKOFF_STEP_SECONDS),
            retry=retry_if_exception_type(TransportError),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )

        for attempt in retryer:
            with attempt:
                logger.debug(f"POST {url} (attempt {attempt.retry_state.attempt_number}/{max_attempts})")
                return self._make_request(url, form)

    def nop(self, require_auth: bool = True, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Call the 'nop' method"""
        return self.call("nop", params=params, require_auth=require_auth)
