"""
Tests for config file CRUD through ConfigService.
Config files live under tmp_path; stdin is a MagicMock reader.

Run:
    python -m pytest tests/test_config_service.py -v
"""

import json

import pytest
from unittest.mock import MagicMock

from regru_cli.api import ConfigError, UsageError
from regru_cli.services import ConfigService
from regru_cli.utils.config import SECRET_MASK


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


def _service(provider, stdin="", overrides=None):
    reader = MagicMock(return_value=stdin)
    return ConfigService(provider, overrides=overrides, stdin_reader=reader), reader


class TestSet:

    def test_sets_key_value_entries(self, provider, config_file):
        service, _ = _service(provider)
        saved = service.set(["endpoint=https://api.reg.ru/api/regru2", "timeout=15000"])

        assert saved == {"endpoint": "https://api.reg.ru/api/regru2", "timeout": 15000}
        assert _read(config_file) == saved

    def test_sets_key_value_pair(self, provider, config_file):
        service, _ = _service(provider)
        service.set(["username", "demo"])
        assert _read(config_file) == {"username": "demo"}

    def test_keeps_existing_keys(self, provider, config_file):
        service, _ = _service(provider)
        service.set(["username=demo"])
        service.set(["region=ru"])
        assert _read(config_file) == {"region": "ru", "username": "demo"}

    def test_secret_on_argv_is_refused(self, provider, config_file):
        service, _ = _service(provider)
        with pytest.raises(UsageError) as exc_info:
            service.set(["password=hunter2"])
        assert "stdin" in exc_info.value.message
        assert not config_file.exists()

    def test_secret_from_stdin(self, provider, config_file):
        service, reader = _service(provider, stdin="hunter2\n")
        service.set(["password", "-"])
        assert _read(config_file) == {"password": "hunter2"}
        reader.assert_called_once()

    def test_stdin_key_option(self, provider, config_file):
        service, _ = _service(provider, stdin="hunter2")
        service.set(["username=demo"], stdin_key="password")
        assert _read(config_file) == {"username": "demo", "password": "hunter2"}

    def test_secret_stdin_is_read_once(self, provider):
        service, reader = _service(provider, stdin="hunter2")
        assert service._read_secret() == "hunter2"
        assert service._read_secret() == "hunter2"
        reader.assert_called_once()

    def test_empty_secret_stdin(self, provider):
        service, _ = _service(provider, stdin="  \n")
        with pytest.raises(UsageError):
            service.set(["password=-"])

    def test_non_secret_dash_reads_stdin(self, provider, config_file):
        service, _ = _service(provider, stdin="https://alt.example/api\n")
        service.set(["endpoint=-"])
        assert _read(config_file) == {"endpoint": "https://alt.example/api"}

    def test_unknown_key(self, provider):
        service, _ = _service(provider)
        with pytest.raises(UsageError):
            service.set(["profile=work"])

    def test_empty_value(self, provider):
        service, _ = _service(provider)
        with pytest.raises(UsageError):
            service.set(["region="])

    def test_no_entries(self, provider):
        service, _ = _service(provider)
        with pytest.raises(UsageError):
            service.set([])

    def test_non_integer_timeout(self, provider):
        service, _ = _service(provider)
        with pytest.raises(UsageError):
            service.set(["timeout=soon"])

    def test_out_of_range_retries(self, provider):
        service, _ = _service(provider)
        with pytest.raises(ConfigError):
            service.set(["retries=11"])


class TestUnsetImportExport:

    def test_unset(self, provider, config_file):
        service, _ = _service(provider)
        service.set(["username=demo", "region=ru"])
        service.unset(["region", "retries"])
        assert _read(config_file) == {"username": "demo"}

    def test_unset_unknown_key(self, provider):
        service, _ = _service(provider)
        with pytest.raises(UsageError):
            service.unset(["profile"])

    def test_import_replaces_file(self, provider, config_file):
        service, _ = _service(provider, stdin='{"username": "demo", "timeout": "9000", "retries": 2}')
        service.set(["region=ru"])

        result = service.import_json()

        assert result == {"ok": True, "path": str(config_file)}
        assert _read(config_file) == {"timeout": 9000, "retries": 2, "username": "demo"}

    @pytest.mark.parametrize("raw", ["", "{oops", "[1, 2]", '{"profile": "x"}'])
    def test_import_rejects_bad_payloads(self, provider, raw):
        service, _ = _service(provider, stdin=raw)
        with pytest.raises(UsageError):
            service.import_json()

    def test_export_redacts_unless_revealed(self, make_provider):
        provider = make_provider(REGRU_USERNAME="demo", REGRU_PASSWORD="hunter2")
        service, _ = _service(provider)

        assert service.export()["password"] == SECRET_MASK
        assert service.export(reveal=True)["password"] == "hunter2"


class TestRead:

    def test_list_masks_password(self, make_provider):
        service, _ = _service(make_provider(REGRU_PASSWORD="hunter2"))
        data = service.list()
        assert data["password"] == SECRET_MASK
        assert data["endpoint"] == "https://api.reg.ru/api/regru2"

    def test_get_selected_keys(self, make_provider):
        service, _ = _service(make_provider(REGRU_PASSWORD="hunter2"), overrides={"timeout": 1234})
        data = service.get(["timeout", "password", "region"])
        assert data == {"timeout": 1234, "password": SECRET_MASK, "region": None}

    def test_get_reveal(self, make_provider):
        service, _ = _service(make_provider(REGRU_PASSWORD="hunter2"))
        assert service.get(["password"], reveal=True) == {"password": "hunter2"}

    def test_get_all_keys(self, provider):
        service, _ = _service(provider)
        assert set(service.get()) == {"endpoint", "timeout", "retries"}
