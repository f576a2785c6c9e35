"""
Output rendering: human-readable, JSON and plain (tab-separated)
"""

import json
import sys
from typing import Any, Iterable, Mapping, Union

from colorlog.escape_codes import escape_codes


def write_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def write_plain(lines: Union[str, Iterable[str]]) -> None:
    if isinstance(lines, str):
        sys.stdout.write(f"{lines}\n")
        return
    sys.stdout.write("\n".join(lines) + "\n")


def write_human(text: str) -> None:
    sys.stdout.write(f"{text}\n")


def plain_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_key_values(data: Mapping[str, Any], as_json: bool, as_plain: bool) -> None:
    """Render a flat mapping in the requested mode"""
    if as_json:
        write_json(dict(data))
        return

    if as_plain:
        write_plain([f"{key}\t{plain_value(value)}" for key, value in data.items()])
        return

    lines = [f"{key}: {'(unset)' if value is None else value}" for key, value in data.items()]
    write_human("\n".join(lines))


def colorize(text: str, color: str) -> str:
    """Wrap text in ANSI color codes when stdout is a terminal"""
    if not sys.stdout.isatty():
        return text
    return f"{escape_codes[color]}{text}{escape_codes['reset']}"
