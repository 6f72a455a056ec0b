from __future__ import annotations

from typing import Any

MAX_KEY_LENGTH = 255
MAX_STRING_VALUE_LENGTH = 255
MAX_USER_ATTRIBUTES = 64


class InvalidAttributeError(ValueError):
    pass


def validate_attribute(key: Any, value: Any) -> tuple[str, Any]:
    """Return a (key, value) pair safe to store, truncating long strings."""

    if not isinstance(key, str) or not key:
        raise InvalidAttributeError(f"attribute key must be a non-empty string, got {key!r}")
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidAttributeError(f"attribute key exceeds {MAX_KEY_LENGTH} characters: {key[:32]!r}...")
    if isinstance(value, str):
        return key, value[:MAX_STRING_VALUE_LENGTH]
    if isinstance(value, (bool, int, float)):
        return key, value
    raise InvalidAttributeError(f"attribute {key!r} has unsupported type {type(value).__name__}")
