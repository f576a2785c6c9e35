"""
Tests for the REG.RU API client: method guard, request building,
retry/backoff behaviour and response classification.
The HTTP session is a MagicMock, except in the deadline tests which talk
to a loopback server.

Run:
    python -m pytest tests/test_regru_client.py -v
"""

import socketserver
import threading
import time

import pytest
import requests
from unittest.mock import MagicMock

from conftest import make_response, make_session
from regru_cli.api import (
    ApiError,
    AuthError,
    NetworkError,
    PolicyError,
    RegRuClient,
    RequestTimeoutError,
    TransportError,
    assert_non_reseller_method,
    ensure_success,
    normalize_method
)
from regru_cli.utils.config import EffectiveConfig


SUCCESS = {"result": "success", "answer": {"login": "test", "user_id": 0}}


def _client(config, session, retries=None, sleep=None):
    if retries is not None:
        config = config.model_copy(update={"retries": retries})
    return RegRuClient(config, session=session, sleep=sleep or MagicMock())


# ===========================================================================
# 1. Method guard
# ===========================================================================

class TestResellerGuard:

    @pytest.mark.parametrize("method", [
        "reseller_nop",
        "user/set_reseller_url",
        "RESELLER/get_list",
        "/Reseller_Nop",
        "  service/ReSeLlEr  ",
    ])
    def test_blocks_reseller_methods(self, method):
        with pytest.raises(PolicyError):
            assert_non_reseller_method(method)

    @pytest.mark.parametrize("method", ["nop", "service/get_list", "zone/add_alias", "/domain/get_prices"])
    def test_allows_other_methods(self, method):
        assert_non_reseller_method(method)

    def test_normalize_strips_leading_slashes_and_whitespace(self):
        assert normalize_method("//service/get_list ") == "service/get_list"

    def test_guard_runs_before_any_request(self, effective_config):
        """No POST may be issued for a reseller method, even without credentials"""
        session = make_session(make_response(json_body=SUCCESS))
        config = effective_config.model_copy(update={"username": None, "password": None})
        client = _client(config, session)

        with pytest.raises(PolicyError):
            client.call("reseller_nop")
        session.post.assert_not_called()

    def test_policy_error_exit_code(self):
        with pytest.raises(PolicyError) as exc_info:
            assert_non_reseller_method("reseller_nop")
        assert exc_info.value.exit_code == 2


# ===========================================================================
# 2. Request building
# ===========================================================================

class TestRequestBuilding:

    def test_posts_form_with_credentials_and_output_format(self, effective_config):
        session = make_session(make_response(json_body=SUCCESS))
        client = _client(effective_config, session)

        payload = client.call("/service/get_list", {"servtype": "domain"})

        assert payload == SUCCESS
        session.post.assert_called_once()
        url = session.post.call_args[0][0]
        kwargs = session.post.call_args[1]
        assert url == "https://api.reg.ru/api/regru2/service/get_list"
        assert kwargs["data"] == {
            "servtype": "domain",
            "output_format": "json",
            "username": "test",
            "password": "secret-pass",
        }
        assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
        assert kwargs["timeout"] == 20.0

    def test_trailing_slash_on_endpoint_is_dropped(self, effective_config):
        session = make_session(make_response(json_body=SUCCESS))
        config = effective_config.model_copy(update={"endpoint": "https://api.reg.ru/api/regru2/"})
        _client(config, session).call("nop")
        assert session.post.call_args[0][0] == "https://api.reg.ru/api/regru2/nop"

    def test_missing_credentials_raise_auth_error(self, effective_config):
        session = make_session(make_response(json_body=SUCCESS))
        config = effective_config.model_copy(update={"password": None})

        with pytest.raises(AuthError) as exc_info:
            _client(config, session).call("nop")
        assert exc_info.value.exit_code == 2
        session.post.assert_not_called()

    def test_require_auth_false_sends_no_credentials(self, effective_config):
        session = make_session(make_response(json_body=SUCCESS))
        config = effective_config.model_copy(update={"username": None, "password": None})

        _client(config, session).call("nop", {"username": "test", "password": "test"}, require_auth=False)

        data = session.post.call_args[1]["data"]
        assert data == {"username": "test", "password": "test", "output_format": "json"}

    def test_error_payload_is_returned_unmodified(self, effective_config):
        """The executor does not interpret result/error_code"""
        body = {"result": "error", "error_code": "PASSWORD_AUTH_FAILED", "error_text": "bad"}
        session = make_session(make_response(json_body=body))
        assert _client(effective_config, session).call("nop") == body


# ===========================================================================
# 3. Retries
# ===========================================================================

class TestRetries:

    def test_retry_exhaustion_attempts_and_delays(self, effective_config):
        """retries=2 -> 3 attempts with 150ms then 300ms between them"""
        session = make_session(
            requests.exceptions.ConnectionError("refused"),
            requests.exceptions.ConnectionError("refused"),
            requests.exceptions.ConnectionError("refused"),
        )
        sleep = MagicMock()
        client = _client(effective_config, session, retries=2, sleep=sleep)

        with pytest.raises(NetworkError):
            client.call("nop")

        assert session.post.call_count == 3
        delays = [call.args[0] for call in sleep.call_args_list]
        assert delays == pytest.approx([0.15, 0.30])

    def test_last_timeout_becomes_timeout_error(self, effective_config):
        session = make_session(
            make_response(status_code=502, text="<html>bad gateway</html>"),
            requests.exceptions.ReadTimeout("slow"),
        )
        with pytest.raises(RequestTimeoutError) as exc_info:
            _client(effective_config, session, retries=1).call("nop")

        assert "20000ms" in exc_info.value.message
        assert exc_info.value.exit_code == 1
        assert session.post.call_count == 2

    def test_last_non_json_response_carries_raw_body(self, effective_config):
        session = make_session(
            requests.exceptions.ReadTimeout("slow"),
            make_response(status_code=200, text="<html>maintenance</html>"),
        )
        with pytest.raises(TransportError) as exc_info:
            _client(effective_config, session, retries=1).call("nop")

        error = exc_info.value
        assert not isinstance(error, RequestTimeoutError)
        assert "non-JSON" in error.message
        assert error.details == {"raw": "<html>maintenance</html>"}

    def test_last_http_error_carries_payload(self, effective_config):
        body = {"result": "error", "error_code": "INTERNAL"}
        session = make_session(make_response(status_code=500, json_body=body))

        with pytest.raises(TransportError) as exc_info:
            _client(effective_config, session, retries=0).call("nop")

        assert exc_info.value.status_code == 500
        assert exc_info.value.details == body
        assert "HTTP 500" in exc_info.value.message

    def test_succeeds_after_transient_failure(self, effective_config):
        session = make_session(
            requests.exceptions.ConnectionError("reset"),
            make_response(json_body=SUCCESS),
        )
        sleep = MagicMock()
        payload = _client(effective_config, session, retries=1, sleep=sleep).call("nop")

        assert payload == SUCCESS
        assert session.post.call_count == 2
        sleep.assert_called_once()

    def test_zero_retries_means_single_attempt(self, effective_config):
        session = make_session(requests.exceptions.ConnectionError("down"))
        sleep = MagicMock()

        with pytest.raises(NetworkError):
            _client(effective_config, session, retries=0, sleep=sleep).call("nop")

        assert session.post.call_count == 1
        sleep.assert_not_called()

    def test_auth_error_is_not_retried(self, effective_config):
        session = make_session()
        config = effective_config.model_copy(update={"username": None})
        with pytest.raises(AuthError):
            _client(config, session, retries=3).call("nop")
        session.post.assert_not_called()


# ===========================================================================
# 4. Response classification
# ===========================================================================

class TestEnsureSuccess:

    def test_success_passes(self):
        ensure_success({"result": "success", "answer": {}})

    def test_error_with_code_and_text(self):
        payload = {"result": "error", "error_code": "X", "error_text": "Y"}
        with pytest.raises(ApiError) as exc_info:
            ensure_success(payload)

        error = exc_info.value
        assert "X" in str(error) and "Y" in str(error)
        assert error.error_code == "X"
        assert error.error_text == "Y"
        assert error.details == payload
        assert error.exit_code == 1

    def test_error_without_code_uses_defaults(self):
        with pytest.raises(ApiError) as exc_info:
            ensure_success({"result": "error"})

        assert exc_info.value.error_code == "API_ERROR"
        assert exc_info.value.message == "API_ERROR: REG.RU API returned an error."

    def test_missing_result_is_an_error(self):
        with pytest.raises(ApiError):
            ensure_success({"answer": {}})


# ===========================================================================
# 5. Per-attempt deadline against a real socket
# ===========================================================================

class _TricklingHandler(socketserver.BaseRequestHandler):
    """Sends the headers at once, then the JSON body one byte at a time"""

    body = b'{"result":"success"}'
    delay = 0.3

    def handle(self):
        self.request.recv(65536)
        head = (
            "HTTP/1.1 200 OK\r\n"
            "Content-Type: application/json\r\n"
            f"Content-Length: {len(self.body)}\r\n"
            "Connection: close\r\n\r\n"
        )
        try:
            self.request.sendall(head.encode("ascii"))
            for index in range(len(self.body)):
                time.sleep(self.delay)
                self.request.sendall(self.body[index:index + 1])
        except OSError:
            pass


class _FastHandler(_TricklingHandler):
    delay = 0


@pytest.fixture
def local_endpoint():
    servers = []

    def _start(handler):
        server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), handler)
        server.daemon_threads = True
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_address[1]}"

    yield _start

    for server in servers:
        server.shutdown()
        server.server_close()


def _local_client(endpoint, timeout):
    session = requests.Session()
    session.trust_env = False
    config = EffectiveConfig(endpoint=endpoint, timeout=timeout, retries=0)
    return RegRuClient(config, session=session)


class TestAttemptDeadline:

    def test_trickling_body_is_cut_off(self, local_endpoint):
        client = _local_client(local_endpoint(_TricklingHandler), timeout=500)

        started = time.monotonic()
        with pytest.raises(RequestTimeoutError) as exc_info:
            client.call("nop", require_auth=False)
        elapsed = time.monotonic() - started

        assert elapsed < 1.5
        assert "500ms" in exc_info.value.message

    def test_prompt_body_is_returned(self, local_endpoint):
        client = _local_client(local_endpoint(_FastHandler), timeout=2000)
        assert client.call("nop", require_auth=False) == {"result": "success"}
