"""
Doctor Service
Read-only readiness checks: runtime, config file, endpoint reachability and credentials
"""

import platform
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from regru_cli.api import RegRuClient, RegRuError
from regru_cli.utils.config import (
    EffectiveConfig,
    SettingsProvider,
    get_settings_provider,
    load_file_config,
    resolve_effective_config
)
from regru_cli.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_OK = "OK"
STATUS_WARN = "WARN"
STATUS_FAIL = "FAIL"

REACHABILITY_TIMEOUT_MS = 6_000
LIVE_TIMEOUT_MS = 8_000


@dataclass
class CheckResult:
    id: str
    status: str
    message: str
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.hint is None:
            data.pop("hint")
        return data


class DoctorService:
    """Runs the readiness checks in order and collects their results"""

    def __init__(
        self,
        provider: Optional[SettingsProvider] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        client_factory: Callable[[EffectiveConfig], RegRuClient] = RegRuClient
    ):
        self.provider = provider or get_settings_provider()
        self.overrides = dict(overrides or {})
        self.client_factory = client_factory

    def run(self) -> List[CheckResult]:
        results: List[CheckResult] = [self._check_runtime()]

        config_path = self.provider.config_path()
        config_dir = config_path.parent
        if self.provider.config_dir_accessible():
            results.append(CheckResult("fs.config_dir", STATUS_OK, f"Config dir accessible: {config_dir}"))
        else:
            results.append(CheckResult(
                "fs.config_dir",
                STATUS_WARN,
                f"Config dir not accessible yet: {config_dir}",
                hint="Run `regru cfg set endpoint=https://api.reg.ru/api/regru2` to create it"
            ))

        try:
            load_file_config(config_path)
            results.append(CheckResult("config.parse", STATUS_OK, "Config file is valid or absent"))
        except RegRuError as e:
            results.append(CheckResult("config.parse", STATUS_FAIL, e.message, hint="Fix or remove broken config file"))

        try:
            effective = resolve_effective_config(self.overrides, self.provider)
        except RegRuError as e:
            results.append(CheckResult("config.endpoint", STATUS_FAIL, e.message))
            return results

        results.append(CheckResult("config.endpoint", STATUS_OK, f"Endpoint: {effective.endpoint}"))

        has_credentials = bool(effective.username and effective.password)
        if has_credentials:
            results.append(CheckResult("auth.credentials", STATUS_OK, "Username/password present"))
        else:
            results.append(CheckResult(
                "auth.credentials",
                STATUS_FAIL,
                "Username/password missing",
                hint="Set REGRU_USERNAME/REGRU_PASSWORD or use regru cfg set"
            ))

        results.append(self._check_endpoint(effective))

        if has_credentials:
            results.append(self._check_live_auth(effective))

        return results

    def _check_runtime(self) -> CheckResult:
        return CheckResult("runtime.python", STATUS_OK, f"Python {platform.python_version()}")

    def _check_client(self, effective: EffectiveConfig, timeout_cap: int) -> RegRuClient:
        check_config = effective.model_copy(update={
            "timeout": min(effective.timeout, timeout_cap),
            "retries": 0
        })
        return self.client_factory(check_config)

    def _check_endpoint(self, effective: EffectiveConfig) -> CheckResult:
        try:
            reply = self._check_client(effective, REACHABILITY_TIMEOUT_MS).nop(
                require_auth=False,
                params={"username": "test", "password": "test"}
            )
        except RegRuError as e:
            logger.debug(f"Endpoint reachability check failed: {e.message}")
            return CheckResult("network.endpoint", STATUS_FAIL, e.message, hint="Check endpoint/network/firewall")

        if reply.get("result") == "success":
            return CheckResult("network.endpoint", STATUS_OK, "Endpoint reachable")
        return CheckResult("network.endpoint", STATUS_WARN, "Endpoint reachable but returned an API error")

    def _check_live_auth(self, effective: EffectiveConfig) -> CheckResult:
        try:
            live = self._check_client(effective, LIVE_TIMEOUT_MS).nop()
        except RegRuError as e:
            return CheckResult("auth.live_nop", STATUS_FAIL, e.message, hint="Verify API allowlist and credentials")

        if live.get("result") == "success":
            return CheckResult("auth.live_nop", STATUS_OK, "Live auth call succeeded")
        return CheckResult("auth.live_nop", STATUS_FAIL, "Live auth call returned API error")


def has_failures(results: List[CheckResult]) -> bool:
    return any(item.status == STATUS_FAIL for item in results)
