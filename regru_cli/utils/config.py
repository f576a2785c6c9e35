"""
Configuration management using Pydantic models and Pydantic Settings
Resolves the effective configuration from built-in defaults, the JSON
config file, REGRU_* environment variables and command-line flags
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from regru_cli.api.exceptions import ConfigError
from regru_cli.utils.logger import VALID_LEVELS, get_logger


logger = get_logger(__name__)

CLI_NAME = "regru"
DEFAULT_ENDPOINT = "https://api.reg.ru/api/regru2"
DEFAULT_TIMEOUT_MS = 20_000
DEFAULT_RETRIES = 1
MAX_TIMEOUT_MS = 120_000
MAX_RETRIES = 10

SECRET_MASK = "********"

# Keys the config-editing commands may touch
MUTABLE_KEYS = ("endpoint", "region", "timeout", "retries", "username", "password")
INTEGER_KEYS = ("timeout", "retries")

# Only "password" is a real field today; the rest are reserved names
SECRET_KEYS = frozenset({"password", "token", "secret", "apikey", "api_key", "sig"})

ENV_PREFIX = "REGRU_"

_url_adapter = TypeAdapter(AnyUrl)


def is_secret_key(key: str) -> bool:
    """Check if a config key holds a secret"""
    return key.lower() in SECRET_KEYS


def is_mutable_key(key: str) -> bool:
    """Check if a config key may be changed through the config commands"""
    return key in MUTABLE_KEYS


def is_absolute_url(value: str) -> bool:
    """Check that a value parses as a URL with a scheme"""
    try:
        _url_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


class FileConfig(BaseModel):
    """
    Persisted configuration.
    Every field is optional; unknown keys and out-of-range numbers are rejected.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    endpoint: Optional[str] = Field(default=None, min_length=1)
    region: Optional[str] = Field(default=None, min_length=1)
    timeout: Optional[int] = Field(default=None, gt=0, le=MAX_TIMEOUT_MS)
    retries: Optional[int] = Field(default=None, ge=0, le=MAX_RETRIES)
    username: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = Field(default=None, min_length=1)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: Optional[str]) -> Optional[str]:
        """Endpoint must be an absolute URL"""
        if v is not None and not is_absolute_url(v):
            raise ValueError(f"endpoint must be an absolute URL, got {v!r}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class EffectiveConfig(BaseModel):
    """Configuration used for one invocation. Never persisted."""

    model_config = ConfigDict(extra="forbid")

    endpoint: str
    region: Optional[str] = None
    timeout: int = Field(gt=0, le=MAX_TIMEOUT_MS)
    retries: int = Field(ge=0, le=MAX_RETRIES)
    username: Optional[str] = None
    password: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class EnvironmentSettings(BaseSettings):
    """
    Settings read from REGRU_* environment variables.
    Empty values count as unset; numbers that do not parse are ignored.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore"
    )

    endpoint: Optional[str] = None
    region: Optional[str] = None
    timeout: Optional[int] = None
    retries: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None

    # Logging Configuration
    log_level: str = Field(
        default="WARNING",
        description="Console logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional file receiving debug logs"
    )

    @field_validator("endpoint", "region", "username", "password", "log_file", mode="before")
    @classmethod
    def empty_as_unset(cls, v: Any) -> Any:
        if v == "":
            return None
        return v

    @field_validator("timeout", "retries", mode="before")
    @classmethod
    def parse_lenient_int(cls, v: Any, info) -> Optional[int]:
        if v is None or v == "":
            return None
        if isinstance(v, int):
            return v
        try:
            return int(str(v).strip())
        except ValueError:
            logger.warning(f"Ignoring non-integer {ENV_PREFIX}{info.field_name.upper()}={v!r}")
            return None

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Validate log level is valid"""
        if v is None or v == "":
            return "WARNING"
        v_upper = str(v).upper()
        if v_upper not in VALID_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LEVELS}")
        return v_upper

    def config_layer(self) -> Dict[str, Any]:
        """The part of the environment that overrides the file config"""
        return self.model_dump(include=set(MUTABLE_KEYS), exclude_none=True)


class _ExplicitEnvironmentSettings(EnvironmentSettings):
    """EnvironmentSettings fed only from constructor arguments"""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (init_settings,)


def _format_issues(error: ValidationError) -> str:
    issues = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"]) or "config"
        issues.append(f"{location}: {issue['msg']}")
    return "; ".join(issues)


class SettingsProvider(ABC):
    """
    Source of process-level settings: environment variables and the
    config file location. Swapped for a static provider in tests.
    """

    @abstractmethod
    def getenv(self, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def environment(self) -> EnvironmentSettings:
        """
        Returns:
            Parsed REGRU_* settings

        Raises:
            ConfigError: If an environment value is invalid
        """
        pass

    def config_path(self, command_name: str = CLI_NAME) -> Path:
        """
        Location of the config file:
        $XDG_CONFIG_HOME/<name>/config.json, else $HOME/.config/<name>/config.json
        """
        config_home = self.getenv("XDG_CONFIG_HOME")
        if not config_home:
            config_home = str(Path(self.getenv("HOME") or "~") / ".config")
        return Path(config_home).expanduser() / command_name / "config.json"

    def config_dir_accessible(self, command_name: str = CLI_NAME) -> bool:
        """Whether the config directory exists and is readable and writable"""
        return os.access(self.config_path(command_name).parent, os.R_OK | os.W_OK)


class ProcessSettingsProvider(SettingsProvider):
    """Reads the real process environment"""

    def getenv(self, name: str) -> Optional[str]:
        return os.environ.get(name)

    def environment(self) -> EnvironmentSettings:
        try:
            return EnvironmentSettings()
        except ValidationError as e:
            raise ConfigError(f"Invalid {ENV_PREFIX}* environment. {_format_issues(e)}") from e


class StaticSettingsProvider(SettingsProvider):
    """Serves a fixed environment mapping instead of os.environ"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, home: Optional[str] = None):
        self.environ = dict(environ or {})
        if home is not None:
            self.environ.setdefault("HOME", home)

    def getenv(self, name: str) -> Optional[str]:
        return self.environ.get(name)

    def environment(self) -> EnvironmentSettings:
        values = {}
        for key, value in self.environ.items():
            if not key.upper().startswith(ENV_PREFIX):
                continue
            field = key[len(ENV_PREFIX):].lower()
            if field in EnvironmentSettings.model_fields:
                values[field] = value
        try:
            return _ExplicitEnvironmentSettings(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid {ENV_PREFIX}* environment. {_format_issues(e)}") from e


def load_file_config(config_path: Path) -> FileConfig:
    """
    Load and validate the config file.
    A missing file is an empty config.

    Raises:
        ConfigError: If the file is not valid JSON or violates the schema
    """
    config_path = Path(config_path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return FileConfig()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {config_path}") from e

    try:
        return FileConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config schema at {config_path}. {_format_issues(e)}") from e


def save_file_config(config: Mapping[str, Any], config_path: Path) -> FileConfig:
    """
    Validate and write the whole config file (2-space JSON, trailing newline).

    Raises:
        ConfigError: If the values violate the schema
    """
    config_path = Path(config_path)
    try:
        validated = config if isinstance(config, FileConfig) else FileConfig.model_validate(dict(config))
    except ValidationError as e:
        raise ConfigError(f"Invalid config schema at {config_path}. {_format_issues(e)}") from e

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(validated.to_dict(), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8"
    )
    logger.debug(f"Config written to {config_path}")
    return validated


def builtin_defaults() -> Dict[str, Any]:
    return {
        "endpoint": DEFAULT_ENDPOINT,
        "timeout": DEFAULT_TIMEOUT_MS,
        "retries": DEFAULT_RETRIES,
    }


def merge_layers(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Fold partial records left to right.
    A key missing from a layer (or set to None / "") never overrides an earlier value.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            if value is None or value == "":
                continue
            merged[key] = value
    return merged


def resolve_effective_config(
    overrides: Optional[Mapping[str, Any]] = None,
    provider: Optional[SettingsProvider] = None
) -> EffectiveConfig:
    """
    Build the effective configuration.
    Precedence: flags > environment > file > built-in defaults.

    Args:
        overrides: Values from command-line flags; None entries are ignored
        provider: Settings provider (process environment by default)

    Returns:
        EffectiveConfig instance

    Raises:
        ConfigError: If the config file is broken or no usable endpoint results
    """
    provider = provider or get_settings_provider()

    file_config = load_file_config(provider.config_path())
    environment = provider.environment()

    merged = merge_layers(
        builtin_defaults(),
        file_config.to_dict(),
        environment.config_layer(),
        overrides,
    )

    endpoint = merged.get("endpoint")
    if not endpoint:
        raise ConfigError("Endpoint is not configured.")
    if not is_absolute_url(endpoint):
        raise ConfigError(f"Endpoint is not an absolute URL: {endpoint}")

    try:
        return EffectiveConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid effective config. {_format_issues(e)}") from e


def redact_config(config: Mapping[str, Any], reveal: bool = False) -> Dict[str, Any]:
    """
    Copy of a config mapping with non-empty secret values masked.

    Args:
        config: Plain mapping (use to_dict() on models)
        reveal: Return secrets as-is
    """
    clone = dict(config)
    if reveal:
        return clone
    for key, value in clone.items():
        if is_secret_key(key) and isinstance(value, str) and value:
            clone[key] = SECRET_MASK
    return clone


# Singleton instance
_provider: Optional[SettingsProvider] = None


def get_settings_provider() -> SettingsProvider:
    """
    Get or create the process settings provider.

    Returns:
        SettingsProvider instance
    """
    global _provider

    if _provider is None:
        _provider = ProcessSettingsProvider()

    return _provider


def set_settings_provider(provider: SettingsProvider) -> None:
    """Replace the settings provider (useful for testing)"""
    global _provider
    _provider = provider


def reset_settings_provider():
    """
    Reset the settings provider singleton (useful for testing)
    """
    global _provider
    _provider = None
