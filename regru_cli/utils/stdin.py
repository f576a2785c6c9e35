"""
Piped stdin reader used for secrets and config import
"""

import sys


def read_stdin() -> str:
    """Read all of stdin, or return an empty string when it is a terminal"""
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read()
