"""
Config Service
Read and edit the persisted config file; show the effective configuration
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from regru_cli.api.exceptions import UsageError
from regru_cli.utils.config import (
    SECRET_MASK,
    EffectiveConfig,
    SettingsProvider,
    get_settings_provider,
    is_secret_key,
    load_file_config,
    redact_config,
    resolve_effective_config,
    save_file_config
)
from regru_cli.utils.logger import get_logger
from regru_cli.utils.stdin import read_stdin
from regru_cli.utils.validators import parse_assignments, parse_config_value, validate_config_key

logger = get_logger(__name__)

STDIN_MARKER = "-"


class ConfigService:
    """
    Config file CRUD.
    The file is loaded whole, changed in memory and written back whole.
    """

    def __init__(
        self,
        provider: Optional[SettingsProvider] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        stdin_reader: Callable[[], str] = read_stdin
    ):
        """
        Args:
            provider: Settings provider (process environment by default)
            overrides: Command-line flag values applied on top of env and file
            stdin_reader: Function returning everything piped on stdin
        """
        self.provider = provider or get_settings_provider()
        self.overrides = dict(overrides or {})
        self.stdin_reader = stdin_reader
        self._stdin_secret: Optional[str] = None

    @property
    def path(self) -> Path:
        return self.provider.config_path()

    def effective(self) -> EffectiveConfig:
        return resolve_effective_config(self.overrides, self.provider)

    def list(self, reveal: bool = False) -> Dict[str, Any]:
        """Effective config with secrets masked"""
        return redact_config(self.effective().to_dict(), reveal=reveal)

    def get(self, keys: Iterable[str] = (), reveal: bool = False) -> Dict[str, Any]:
        """
        Selected effective keys; keys that are not set map to None.
        All set keys when none are given.
        """
        effective = self.effective().to_dict()
        selected = list(keys) or list(effective.keys())

        data: Dict[str, Any] = {}
        for key in selected:
            value = effective.get(key)
            if not reveal and is_secret_key(key) and isinstance(value, str) and value:
                value = SECRET_MASK
            data[key] = value
        return data

    def _read_secret(self) -> str:
        # Several secret keys in one invocation share a single stdin read
        if self._stdin_secret is None:
            value = self.stdin_reader().strip()
            if not value:
                raise UsageError("Expected secret value from stdin, got empty input.")
            self._stdin_secret = value
        return self._stdin_secret

    def set(self, entries: Iterable[str], stdin_key: Optional[str] = None) -> Dict[str, Any]:
        """
        Set file config values from key=value entries or a <key> <value> pair.

        Secrets are accepted only as '-' (read from stdin); for other keys
        '-' also reads stdin.

        Args:
            entries: Command-line entries
            stdin_key: Key whose value is read from stdin

        Returns:
            The saved file config

        Raises:
            UsageError: For unknown keys, secrets passed on argv, empty or malformed values
            ConfigError: If the result violates the config schema
        """
        parsed = parse_assignments(entries)
        if stdin_key:
            parsed[stdin_key] = STDIN_MARKER

        if not parsed:
            raise UsageError("No key/value entries provided.")

        file_config = load_file_config(self.path).to_dict()

        for key, value in parsed.items():
            validate_config_key(key)

            if is_secret_key(key):
                if value != STDIN_MARKER:
                    raise UsageError(
                        f"Refusing to set secret key '{key}' via argv. "
                        f"Use stdin: printf \"...\" | regru cfg set {key} -"
                    )
                value = self._read_secret()
            elif value == STDIN_MARKER:
                value = self.stdin_reader().strip()

            if not value:
                raise UsageError(f"Empty value for key '{key}' is not allowed. Use unset to remove keys.")

            file_config[key] = parse_config_value(key, value)

        saved = save_file_config(file_config, self.path)
        logger.info(f"Config updated: {', '.join(parsed.keys())}")
        return saved.to_dict()

    def unset(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Remove keys from the file config"""
        file_config = load_file_config(self.path).to_dict()
        for key in keys:
            validate_config_key(key)
            file_config.pop(key, None)

        saved = save_file_config(file_config, self.path)
        return saved.to_dict()

    def import_json(self, raw: Optional[str] = None) -> Dict[str, Any]:
        """
        Replace the file config with a JSON object (stdin by default).

        Returns:
            {"ok": True, "path": <config path>}

        Raises:
            UsageError: For empty input, invalid JSON or unknown keys
            ConfigError: If the values violate the config schema
        """
        raw = (self.stdin_reader() if raw is None else raw).strip()
        if not raw:
            raise UsageError("No JSON payload provided on stdin.")

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            raise UsageError("Invalid JSON payload for cfg import.")

        if not isinstance(payload, dict):
            raise UsageError("Config import payload must be a JSON object.")

        file_config: Dict[str, Any] = {}
        for key, value in payload.items():
            validate_config_key(key, "key in import payload")
            if isinstance(value, str):
                value = parse_config_value(key, value)
            file_config[key] = value

        save_file_config(file_config, self.path)
        return {"ok": True, "path": str(self.path)}

    def export(self, reveal: bool = False) -> Dict[str, Any]:
        """Effective config for export; secrets masked unless revealed"""
        return redact_config(self.effective().to_dict(), reveal=reveal)
