"""
Type definitions for tally.

Provides the UNDEFINED sentinel, check identities and type aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable


class Undefined(Enum):
    """
    Sentinel for "no value".

    ``None`` is an ordinary value (null); ``UNDEFINED`` stands for an absent
    object key or a value that was never provided.
    """

    UNDEFINED = 0

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = Undefined.UNDEFINED


class CheckId(Enum):
    """Stable identity per kind of checkable, shared across parameterizations."""

    # source checks
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LITERAL = "literal"
    ENUM = "enum"
    NULL = "null"
    UNDEFINED = "undefined"
    OBJECT = "object"
    ARRAY = "array"

    # value checks
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    LENGTH = "length"
    MIN = "min"
    MAX = "max"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    MATCHES = "matches"
    UNKNOWN_KEYS = "unknown_keys"
    CUSTOM = "custom"

    # optionality branches
    OPTIONAL = "optional"
    EXACT_OPTIONAL = "exact_optional"
    UNDEFINABLE = "undefinable"
    NULLABLE = "nullable"
    NULLISH = "nullish"
    DEFAULTED = "defaulted"

    def __repr__(self) -> str:
        return f"CheckId.{self.name}"


class OptionalityMode(Enum):
    """Optionality state of a schema; the last modifier call wins."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    EXACT_OPTIONAL = "exact_optional"
    UNDEFINABLE = "undefinable"
    NULLABLE = "nullable"
    NULLISH = "nullish"
    DEFAULTED = "defaulted"


class UnknownKeys(Enum):
    """What an object schema does with input keys it does not declare."""

    STRIP = "strip"
    PASSTHROUGH = "passthrough"
    STRICT = "strict"


# Type aliases
CheckFn = Callable[[Any], bool]
MessageFn = Callable[[Any], str]
IssuePath = tuple[str | int, ...]
Issue = tuple[IssuePath, str]

# Built-in checks use CheckId; registered capabilities are identified by name
CheckKey = CheckId | str


def check_name(id: CheckKey) -> str:
    """Plain name of a check identity, e.g. ``"min_length"`` or ``"even"``."""
    return id.value if isinstance(id, CheckId) else id
