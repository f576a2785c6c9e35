"""
Main CLI Entry Point
Command-line interface for the REG.RU API2 (non-reseller):
- config file management
- readiness checks
- account, service and domain listings
- DNS zone management and raw method calls
"""

import argparse
import json
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from regru_cli import __version__
from regru_cli.api import RegRuClient, RegRuError, UsageError
from regru_cli.api.exceptions import EXIT_FAILURE, EXIT_OK
from regru_cli.services import ConfigService, DoctorService, DomainService, has_failures
from regru_cli.services.doctor_service import STATUS_FAIL, STATUS_OK
from regru_cli.services.domain_service import zone_records
from regru_cli.utils.config import (
    CLI_NAME,
    DEFAULT_ENDPOINT,
    MAX_RETRIES,
    MAX_TIMEOUT_MS,
    EffectiveConfig,
    SettingsProvider,
    get_settings_provider,
    resolve_effective_config
)
from regru_cli.utils.logger import get_logger, resolve_level, setup_logger
from regru_cli.utils.output import (
    colorize,
    plain_value,
    render_key_values,
    write_human,
    write_json,
    write_plain
)
from regru_cli.utils.stdin import read_stdin
from regru_cli.utils.validators import parse_assignments

logger = get_logger(__name__)

SKILL_URL = "https://github.com/vforsh/regru-cli/tree/main/skill/regru"


@dataclass
class CommandContext:
    """Everything a command needs besides its own arguments"""

    args: argparse.Namespace
    provider: SettingsProvider
    stdin_reader: Callable[[], str] = read_stdin
    session: Optional[requests.Session] = None
    _config: Optional[EffectiveConfig] = field(default=None, repr=False)

    @property
    def as_json(self) -> bool:
        return bool(getattr(self.args, "json", False))

    @property
    def as_plain(self) -> bool:
        return bool(getattr(self.args, "plain", False))

    @property
    def overrides(self) -> Dict[str, Any]:
        return {
            "endpoint": getattr(self.args, "endpoint", None),
            "region": getattr(self.args, "region", None),
            "timeout": getattr(self.args, "timeout", None),
            "retries": getattr(self.args, "retries", None),
        }

    def config(self) -> EffectiveConfig:
        if self._config is None:
            self._config = resolve_effective_config(self.overrides, self.provider)
        return self._config

    def client(self, config: Optional[EffectiveConfig] = None) -> RegRuClient:
        return RegRuClient(config or self.config(), session=self.session)

    def domain_service(self) -> DomainService:
        return DomainService(self.client())

    def config_service(self) -> ConfigService:
        return ConfigService(self.provider, self.overrides, self.stdin_reader)


# ==================== CONFIG COMMANDS ====================

def cmd_config_path(ctx: CommandContext):
    """Print config file path"""
    write_plain(str(ctx.provider.config_path()))


def cmd_config_list(ctx: CommandContext):
    """List effective config (secrets masked)"""
    render_key_values(ctx.config_service().list(), ctx.as_json, ctx.as_plain)


def cmd_config_get(ctx: CommandContext):
    """Get one or more effective config keys"""
    data = ctx.config_service().get(ctx.args.keys, reveal=ctx.args.reveal)
    render_key_values(data, ctx.as_json, ctx.as_plain)


def cmd_config_set(ctx: CommandContext):
    """Set file config values"""
    ctx.config_service().set(ctx.args.entries, stdin_key=ctx.args.stdin_key)
    write_human("Config updated.")


def cmd_config_unset(ctx: CommandContext):
    """Unset file config keys"""
    ctx.config_service().unset(ctx.args.keys)
    write_human("Config updated.")


def cmd_config_import(ctx: CommandContext):
    """Import file config JSON from stdin"""
    if not ctx.as_json:
        raise UsageError("Use --json with cfg import and pipe JSON payload via stdin.")
    write_json(ctx.config_service().import_json())


def cmd_config_export(ctx: CommandContext):
    """Export effective config as JSON"""
    if not ctx.as_json:
        raise UsageError("Use --json with cfg export.")
    write_json(ctx.config_service().export(reveal=ctx.args.reveal))


# ==================== DOCTOR / SKILL ====================

_STATUS_COLORS = {STATUS_OK: "green", STATUS_FAIL: "red"}


def cmd_doctor(ctx: CommandContext) -> int:
    """Run read-only readiness checks"""
    doctor = DoctorService(
        provider=ctx.provider,
        overrides=ctx.overrides,
        client_factory=lambda config: RegRuClient(config, session=ctx.session)
    )
    results = doctor.run()
    exit_code = EXIT_FAILURE if has_failures(results) else EXIT_OK

    if ctx.as_json:
        write_json({
            "status": "fail" if exit_code else "ok",
            "checks": [item.to_dict() for item in results],
            "exitCode": exit_code
        })
        return exit_code

    if ctx.as_plain:
        write_plain([f"{item.id}\t{item.status}\t{item.message}" for item in results])
    else:
        lines = []
        for item in results:
            status = colorize(item.status, _STATUS_COLORS.get(item.status, "yellow"))
            line = f"{status} {item.id}: {item.message}"
            lines.append(f"{line} ({item.hint})" if item.hint else line)
        write_human("\n".join(lines))

    if exit_code:
        sys.stderr.write("Doctor found blocking issues.\n")
    return exit_code


def cmd_skill(ctx: CommandContext):
    """Print skill install URL"""
    write_plain(SKILL_URL)


# ==================== API COMMANDS ====================

def cmd_nop(ctx: CommandContext):
    """Run nop with current credentials"""
    result = ctx.domain_service().nop()

    if ctx.as_json:
        write_json(result["raw_response"])
        return

    if ctx.as_plain:
        write_plain([f"login\t{result['login']}", f"user_id\t{result['user_id']}"])
        return

    write_human(f"API OK\nlogin: {result['login']}\nuser_id: {result['user_id']}")


def cmd_services_list(ctx: CommandContext):
    """List account services"""
    rows = ctx.domain_service().list_services(servtype=ctx.args.servtype, state=ctx.args.state)

    if ctx.as_json:
        write_json({"services": rows})
        return

    if ctx.as_plain:
        write_plain([
            "\t".join(plain_value(row.get(key)) for key in ("service_id", "servtype", "dname", "state", "expiration_date"))
            for row in rows
        ])
        return

    lines = [
        f"{plain_value(row.get('servtype')):<14} {plain_value(row.get('dname')):<28} "
        f"state={plain_value(row.get('state'))} exp={plain_value(row.get('expiration_date'))} "
        f"id={plain_value(row.get('service_id'))}"
        for row in rows
    ]
    write_human("\n".join(lines) if lines else "No services found.")


def cmd_domains_list(ctx: CommandContext):
    """List domains in the account"""
    rows = ctx.domain_service().list_domains()

    if ctx.as_json:
        write_json({"domains": rows})
        return

    if ctx.as_plain:
        write_plain([
            "\t".join(plain_value(row.get(key)) for key in ("dname", "expiration_date", "service_id", "state"))
            for row in rows
        ])
        return

    lines = [
        f"{plain_value(row.get('dname')):<24} exp={plain_value(row.get('expiration_date'))} "
        f"state={plain_value(row.get('state'))} id={plain_value(row.get('service_id'))}"
        for row in rows
    ]
    write_human("\n".join(lines) if lines else "No domains found.")


def _write_payload(ctx: CommandContext, payload: Dict[str, Any]):
    if ctx.as_json:
        write_json(payload)
        return
    if ctx.as_plain:
        result = payload.get("result") if isinstance(payload.get("result"), str) else "unknown"
        code = payload.get("error_code") if isinstance(payload.get("error_code"), str) else "-"
        write_plain(f"{result}\t{code}")
        return
    write_human(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_zone_records(ctx: CommandContext):
    """Get DNS records for a domain"""
    payload = ctx.domain_service().get_zone_records(ctx.args.domain)

    if ctx.as_json:
        write_json(payload)
        return

    if ctx.as_plain:
        lines = [json.dumps(record, ensure_ascii=False, separators=(",", ":")) for record in zone_records(payload)]
        write_plain(lines if lines else "")
        return

    write_human(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_zone_add(ctx: CommandContext):
    """Add DNS record using zone/add_<kind>"""
    extra = parse_assignments(ctx.args.params, ctx.args.param)
    _write_payload(ctx, ctx.domain_service().add_zone_record(ctx.args.kind, ctx.args.domain, extra))


def cmd_zone_remove(ctx: CommandContext):
    """Remove DNS record using zone/remove_record"""
    extra = parse_assignments(ctx.args.params, ctx.args.param)
    _write_payload(ctx, ctx.domain_service().remove_zone_record(ctx.args.domain, extra))


def cmd_zone_update(ctx: CommandContext):
    """Update zone records using zone/update_records"""
    extra = parse_assignments(ctx.args.params, ctx.args.param)
    _write_payload(ctx, ctx.domain_service().update_zone_records(ctx.args.domain, extra))


def cmd_zone_clear(ctx: CommandContext):
    """Clear zone records using zone/clear"""
    _write_payload(ctx, ctx.domain_service().clear_zone(ctx.args.domain))


def cmd_do(ctx: CommandContext):
    """Execute any non-reseller API method"""
    params = parse_assignments(ctx.args.params, ctx.args.param)
    payload = ctx.domain_service().call_method(ctx.args.method, params)

    if ctx.as_json:
        write_json(payload)
        return
    if ctx.as_plain:
        write_plain(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        return
    write_human(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_unsupported_async(ctx: CommandContext):
    """Job polling does not exist: every API2 call is synchronous"""
    raise UsageError(
        f"{ctx.args.command} is not supported: REG.RU API2 commands used by regru-cli are synchronous."
    )


# ==================== PARSER ====================

def _bounded_int(minimum: int, maximum: int) -> Callable[[str], int]:
    """argparse type accepting integers in [minimum, maximum]"""

    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
        if not minimum <= number <= maximum:
            raise argparse.ArgumentTypeError(f"must be between {minimum} and {maximum}, got {number}")
        return number

    return parse


def _add_global_options(parser: argparse.ArgumentParser, suppress: bool):
    """
    Global options are accepted on every level. Sub-levels use SUPPRESS
    defaults so an option given before the subcommand is not reset.
    """
    flag_default = argparse.SUPPRESS if suppress else False
    value_default = argparse.SUPPRESS if suppress else None

    parser.add_argument("--json", action="store_true", default=flag_default, help="JSON output")
    parser.add_argument("--plain", action="store_true", default=flag_default, help="Stable plain (tab-separated) output")
    parser.add_argument("-q", "--quiet", action="store_true", default=flag_default, help="Suppress non-essential logs")
    parser.add_argument("-v", "--verbose", action="store_true", default=flag_default, help="Verbose logs to stderr")
    parser.add_argument("--timeout", type=_bounded_int(1, MAX_TIMEOUT_MS), metavar="MS", default=value_default, help="Request timeout in milliseconds")
    parser.add_argument("--retries", type=_bounded_int(0, MAX_RETRIES), metavar="COUNT", default=value_default, help="Retry count for API calls")
    parser.add_argument("--endpoint", metavar="URL", default=value_default, help=f"Override API endpoint (default: {DEFAULT_ENDPOINT})")
    parser.add_argument("--region", metavar="NAME", default=value_default, help="Optional region label for future usage")


def _add_param_option(parser: argparse.ArgumentParser):
    parser.add_argument("-p", "--param", action="append", metavar="KEY=VALUE", help="Extra parameter (repeatable)")


def _print_help(parser: argparse.ArgumentParser) -> Callable[[CommandContext], None]:
    return lambda ctx: parser.print_help()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser"""
    parser = argparse.ArgumentParser(
        prog=CLI_NAME,
        description="REG.RU API2 CLI (non-reseller)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Store credentials (the password only via stdin)
  regru cfg set username my-login
  printf "my-pass" | regru cfg set password -

  # Check the setup
  regru doctor

  # List domains as tab-separated lines
  regru domains list --plain

  # Show DNS records
  regru zone records example.ru --json

  # Add an A-record alias
  regru zone add alias example.ru subdomain=www ipaddr=192.0.2.10

  # Call any non-reseller method
  regru do service/get_list servtype=domain
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_global_options(parser, suppress=False)

    common = argparse.ArgumentParser(add_help=False)
    _add_global_options(common, suppress=True)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ==================== CONFIG COMMAND ====================
    config_parser = subparsers.add_parser(
        "config", aliases=["cfg"], parents=[common], help="Manage regru-cli configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  regru cfg set endpoint=https://api.reg.ru/api/regru2 timeout=20000
  printf "my-pass" | regru cfg set password -
  regru cfg get endpoint region retries
  regru cfg unset region retries
  regru cfg import --json < config.json
  regru cfg export --json
        """
    )
    config_parser.set_defaults(func=_print_help(config_parser))
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config operations")

    path_parser = config_subparsers.add_parser("path", parents=[common], help="Print config file path")
    path_parser.set_defaults(func=cmd_config_path)

    list_parser = config_subparsers.add_parser("list", aliases=["ls"], parents=[common], help="List effective config (env overrides file)")
    list_parser.set_defaults(func=cmd_config_list)

    get_parser = config_subparsers.add_parser("get", parents=[common], help="Get one or more effective config keys")
    get_parser.add_argument("keys", nargs="*", help="Keys to show (all when omitted)")
    get_parser.add_argument("--reveal", action="store_true", help="Show secret values")
    get_parser.set_defaults(func=cmd_config_get)

    set_parser = config_subparsers.add_parser("set", parents=[common], help="Set config values. Use key=value entries or <key> <value>")
    set_parser.add_argument("entries", nargs="*", help="key=value entries")
    set_parser.add_argument("--stdin-key", metavar="KEY", help="Read value for key from stdin (secret-safe)")
    set_parser.set_defaults(func=cmd_config_set)

    unset_parser = config_subparsers.add_parser("unset", parents=[common], help="Unset one or more file config keys")
    unset_parser.add_argument("keys", nargs="+", help="Keys to remove")
    unset_parser.set_defaults(func=cmd_config_unset)

    import_parser = config_subparsers.add_parser("import", parents=[common], help="Import file config JSON from stdin (requires --json)")
    import_parser.set_defaults(func=cmd_config_import)

    export_parser = config_subparsers.add_parser("export", parents=[common], help="Export effective config as JSON (requires --json)")
    export_parser.add_argument("--reveal", action="store_true", help="Include secret values")
    export_parser.set_defaults(func=cmd_config_export)

    # ==================== DOCTOR / SKILL ====================
    doctor_parser = subparsers.add_parser("doctor", aliases=["check"], parents=[common], help="Run read-only readiness checks")
    doctor_parser.set_defaults(func=cmd_doctor)

    skill_parser = subparsers.add_parser("skill", parents=[common], help="Print skill install URL")
    skill_parser.set_defaults(func=cmd_skill)

    # ==================== API COMMANDS ====================
    nop_parser = subparsers.add_parser("nop", parents=[common], help="Run nop with current credentials")
    nop_parser.set_defaults(func=cmd_nop)

    services_parser = subparsers.add_parser("services", parents=[common], help="Service-related commands")
    services_parser.set_defaults(func=_print_help(services_parser))
    services_subparsers = services_parser.add_subparsers(dest="services_command", help="Service operations")
    services_list_parser = services_subparsers.add_parser("list", parents=[common], help="List account services")
    services_list_parser.add_argument("--servtype", help="Filter by service type")
    services_list_parser.add_argument("--state", help="Filter by state")
    services_list_parser.set_defaults(func=cmd_services_list)

    domains_parser = subparsers.add_parser("domains", parents=[common], help="Domain commands")
    domains_parser.set_defaults(func=_print_help(domains_parser))
    domains_subparsers = domains_parser.add_subparsers(dest="domains_command", help="Domain operations")
    domains_list_parser = domains_subparsers.add_parser("list", parents=[common], help="List domains in the account")
    domains_list_parser.set_defaults(func=cmd_domains_list)

    # ==================== ZONE COMMAND ====================
    zone_parser = subparsers.add_parser("zone", parents=[common], help="Zone (DNS) operations")
    zone_parser.set_defaults(func=_print_help(zone_parser))
    zone_subparsers = zone_parser.add_subparsers(dest="zone_command", help="Zone operations")

    records_parser = zone_subparsers.add_parser("records", parents=[common], help="Get DNS records for a domain")
    records_parser.add_argument("domain", help="Domain name")
    records_parser.set_defaults(func=cmd_zone_records)

    add_parser = zone_subparsers.add_parser(
        "add", parents=[common],
        help="Add DNS record using zone/add_<kind> (kind: alias, aaaa, cname, txt, mx, ns, srv, caa, https)"
    )
    add_parser.add_argument("kind", help="Record kind")
    add_parser.add_argument("domain", help="Domain name")
    add_parser.add_argument("params", nargs="*", help="key=value pairs")
    _add_param_option(add_parser)
    add_parser.set_defaults(func=cmd_zone_add)

    remove_parser = zone_subparsers.add_parser("remove", parents=[common], help="Remove DNS record using zone/remove_record")
    remove_parser.add_argument("domain", help="Domain name")
    remove_parser.add_argument("params", nargs="*", help="key=value pairs")
    _add_param_option(remove_parser)
    remove_parser.set_defaults(func=cmd_zone_remove)

    update_parser = zone_subparsers.add_parser("update", parents=[common], help="Update zone records using zone/update_records")
    update_parser.add_argument("domain", help="Domain name")
    update_parser.add_argument("params", nargs="*", help="key=value pairs")
    _add_param_option(update_parser)
    update_parser.set_defaults(func=cmd_zone_update)

    clear_parser = zone_subparsers.add_parser("clear", parents=[common], help="Clear zone records using zone/clear")
    clear_parser.add_argument("domain", help="Domain name")
    clear_parser.set_defaults(func=cmd_zone_clear)

    # ==================== RAW METHOD CALLS ====================
    do_parser = subparsers.add_parser("do", aliases=["run", "gen"], parents=[common], help="Execute any non-reseller REG.RU API2 method")
    do_parser.add_argument("method", help="API method like service/get_list")
    do_parser.add_argument("params", nargs="*", help="key=value pairs")
    _add_param_option(do_parser)
    do_parser.set_defaults(func=cmd_do)

    for name in ("result", "wait"):
        async_parser = subparsers.add_parser(
            name, parents=[common], help="Not supported: REG.RU API2 methods in this CLI are synchronous"
        )
        async_parser.add_argument("id", help="Placeholder id")
        async_parser.set_defaults(func=cmd_unsupported_async)

    return parser


# Positional lists that may continue after -p/--param options
_TRAILING_DESTS = ("params", "entries")


def _absorb_trailing_assignments(parser: argparse.ArgumentParser, args: argparse.Namespace, extras: List[str]):
    """
    argparse fills a nargs="*" positional only once, so key=value tokens
    given after an option end up unrecognized. Append them to the
    command's positional list; anything else is still an error.
    """
    dest = next((name for name in _TRAILING_DESTS if isinstance(getattr(args, name, None), list)), None)
    if dest is None or any(token.startswith("-") and token != "-" for token in extras):
        parser.error(f"unrecognized arguments: {' '.join(extras)}")
    getattr(args, dest).extend(extras)


def _render_error(message: str, exit_code: int, details: Any, json_mode: bool):
    if json_mode:
        write_json({
            "error": {
                "message": message,
                "exitCode": exit_code,
                "details": details
            }
        })
        return
    sys.stderr.write(f"{message}\n")


def main(
    argv: Optional[List[str]] = None,
    provider: Optional[SettingsProvider] = None,
    stdin_reader: Callable[[], str] = read_stdin,
    session: Optional[requests.Session] = None
) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Arguments without the program name (sys.argv[1:] by default)
        provider: Settings provider (process environment by default)
        stdin_reader: Function returning piped stdin
        session: HTTP session shared by API calls

    Returns:
        Process exit code
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    json_mode = "--json" in argv

    parser = build_parser()
    try:
        args, extras = parser.parse_known_args(argv)
        if extras:
            _absorb_trailing_assignments(parser, args, extras)
    except SystemExit as e:
        # argparse exits 2 on usage errors and 0 for --help / --version
        return e.code if isinstance(e.code, int) else EXIT_OK

    provider = provider or get_settings_provider()

    try:
        environment = provider.environment()
        setup_logger(
            level=resolve_level(environment.log_level, verbose=args.verbose, quiet=args.quiet),
            log_file=environment.log_file
        )

        if not hasattr(args, "func"):
            parser.print_help()
            return EXIT_OK

        ctx = CommandContext(args=args, provider=provider, stdin_reader=stdin_reader, session=session)
        return args.func(ctx) or EXIT_OK

    except RegRuError as e:
        logger.debug(f"{e.__class__.__name__}: {e.message}")
        _render_error(e.message, e.exit_code, e.details, json_mode)
        return e.exit_code

    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        _render_error(str(e) or e.__class__.__name__, EXIT_FAILURE, None, json_mode)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
