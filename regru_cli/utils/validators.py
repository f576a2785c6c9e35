"""
Input validation utilities for command-line arguments
"""

from typing import Dict, Iterable, Optional, Union

from regru_cli.api.exceptions import UsageError
from regru_cli.utils.config import INTEGER_KEYS, MUTABLE_KEYS, is_mutable_key


class AssignmentParser:
    """Parser for key=value arguments"""

    @classmethod
    def split(cls, entry: str, label: str = "argument") -> tuple:
        """
        Split a single key=value token on its first '='.

        Raises:
            UsageError: If the token has no '=' or an empty key
        """
        key, sep, value = entry.partition("=")
        if not key or not sep:
            raise UsageError(f"Invalid {label}: {entry}. Expected key=value.")
        return key, value

    @classmethod
    def parse(cls, tokens: Iterable[str], repeated_params: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """
        Parse positional tokens and repeated --param values into a flat dict.

        Repeated params are applied first. Exactly two tokens without '='
        form a single <key> <value> pair; otherwise every token must be key=value.

        Args:
            tokens: Positional tokens
            repeated_params: Values of -p/--param

        Returns:
            Parsed parameters

        Raises:
            UsageError: If a token is malformed
        """
        parsed: Dict[str, str] = {}

        for entry in repeated_params or []:
            key, value = cls.split(entry, "--param value")
            parsed[key] = value

        tokens = list(tokens)
        if len(tokens) == 2 and "=" not in tokens[0] and "=" not in tokens[1]:
            key, value = tokens
            if not key:
                raise UsageError("Expected <key> <value> pair.")
            parsed[key] = value
            return parsed

        for token in tokens:
            key, value = cls.split(token)
            parsed[key] = value

        return parsed


class ZoneRecordValidator:
    """Validator for zone/add_<kind> record kinds"""

    ALLOWED_KINDS = ("alias", "aaaa", "cname", "txt", "mx", "ns", "srv", "caa", "https")

    @classmethod
    def validate(cls, kind: str) -> str:
        """
        Returns:
            Lowercased record kind

        Raises:
            UsageError: If the kind is not supported
        """
        normalized = kind.strip().lower()
        if normalized not in cls.ALLOWED_KINDS:
            raise UsageError(
                f"Unsupported record kind: {kind}. "
                f"Use one of: {', '.join(cls.ALLOWED_KINDS)}"
            )
        return normalized


class ConfigValueValidator:
    """Validator for config keys and their textual values"""

    @classmethod
    def validate_key(cls, key: str, context: str = "config key") -> str:
        if not is_mutable_key(key):
            raise UsageError(f"Unsupported {context}: {key}. Allowed: {', '.join(MUTABLE_KEYS)}")
        return key

    @classmethod
    def parse_value(cls, key: str, value: str) -> Union[str, int]:
        """
        Convert a textual value to the type stored for the key.

        Raises:
            UsageError: If an integer key gets a non-integer value
        """
        if key in INTEGER_KEYS:
            try:
                return int(value.strip())
            except ValueError:
                raise UsageError(f"Invalid integer value for {key}: {value}")
        return value


def parse_assignments(tokens: Iterable[str], repeated_params: Optional[Iterable[str]] = None) -> Dict[str, str]:
    """Convenience function for assignment parsing"""
    return AssignmentParser.parse(tokens, repeated_params)


def validate_record_kind(kind: str) -> str:
    """Convenience function for record kind validation"""
    return ZoneRecordValidator.validate(kind)


def validate_config_key(key: str, context: str = "config key") -> str:
    """Convenience function for config key validation"""
    return ConfigValueValidator.validate_key(key, context)


def parse_config_value(key: str, value: str) -> Union[str, int]:
    """Convenience function for typed config values"""
    return ConfigValueValidator.parse_value(key, value)
