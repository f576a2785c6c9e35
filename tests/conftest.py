"""
Shared fixtures: deterministic settings providers and fake HTTP sessions.
No test touches the real environment, home directory or network.
"""

import logging

import pytest
import requests
from unittest.mock import MagicMock

from regru_cli.utils.config import EffectiveConfig, StaticSettingsProvider
from regru_cli.utils.logger import PACKAGE_LOGGER


def make_response(status_code: int = 200, json_body=None, text: str = None) -> MagicMock:
    """Fake requests.Response; json() raises ValueError when json_body is None"""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    if json_body is None:
        response.text = text if text is not None else ""
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.text = text if text is not None else str(json_body)
        response.json.return_value = json_body
    return response


def make_session(*outcomes) -> MagicMock:
    """Fake session whose post() yields the given responses / raises the given exceptions in order"""
    session = MagicMock()
    session.post.side_effect = list(outcomes)
    return session


@pytest.fixture
def xdg_home(tmp_path):
    return tmp_path / "xdg"


@pytest.fixture
def config_file(xdg_home):
    return xdg_home / "regru" / "config.json"


@pytest.fixture
def make_provider(xdg_home):
    """Build a StaticSettingsProvider rooted in tmp_path with extra env values"""

    def _make(**environ):
        values = {"XDG_CONFIG_HOME": str(xdg_home)}
        values.update(environ)
        return StaticSettingsProvider(values)

    return _make


@pytest.fixture
def provider(make_provider):
    return make_provider()


@pytest.fixture
def auth_provider(make_provider):
    return make_provider(REGRU_USERNAME="test", REGRU_PASSWORD="secret-pass")


@pytest.fixture
def effective_config():
    return EffectiveConfig(
        endpoint="https://api.reg.ru/api/regru2",
        timeout=20000,
        retries=1,
        username="test",
        password="secret-pass"
    )


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers bound to a previous test's captured stderr"""
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
