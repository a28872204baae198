"""
Built-in checkables for tally.

A checkable is an atomic predicate with a stable identity and an optional
message factory. Factories here return Checkable instances; the schema
builders reference them by capability name (see capabilities.py).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .messages import stringify, type_of
from .report import Report
from .types import UNDEFINED, CheckFn, CheckId, CheckKey, MessageFn

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Checkable:
    """
    Immutable atomic check.

    ``id`` is shared by every parameterization of the same kind of check
    (``min_length(3)`` and ``min_length(5)`` are both MIN_LENGTH).
    """

    id: CheckKey
    check: CheckFn
    message: MessageFn | None = None


@dataclass(frozen=True, slots=True)
class BranchCheckable:
    """Check that produces a whole Report, used for optionality branches."""

    id: CheckId
    evaluate: Callable[[Any], Report]


@dataclass(slots=True)
class CheckTally:
    """Running outcome of evaluating a node's own checkables."""

    score: int = 0
    passed: set[CheckKey] = field(default_factory=set)
    failed: set[CheckKey] = field(default_factory=set)
    messages: list[Callable[[], str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def record(self, checkable: Checkable, value: Any) -> bool:
        """Run one checkable against ``value`` and fold its outcome in."""
        try:
            passed = bool(checkable.check(value))
        except Exception as e:
            logger.debug("Check %s raised %r", checkable.id, e)
            text = f"Validation error: {e}"
            self.fail(checkable.id, lambda: text)
            return False

        if passed:
            self.score += 1
            self.passed.add(checkable.id)
            return True

        message = checkable.message
        self.fail(checkable.id, (lambda: message(value)) if message else None)
        return False

    def fail(self, id: CheckKey, message: Callable[[], str] | None = None) -> None:
        self.score -= 1
        self.failed.add(id)
        if message is not None:
            self.messages.append(message)

    def message_factory(self) -> Callable[[], list[str]]:
        pending = tuple(self.messages)

        def render() -> list[str]:
            return [m() for m in pending]

        return render


def deduplicate(checkables: Iterable[Checkable]) -> list[Checkable]:
    """
    Keep one checkable per identity; the last one applied wins.

    The surviving checkable keeps the position of the first occurrence.
    """
    by_id: dict[CheckKey, Checkable] = {}
    for checkable in checkables:
        by_id[checkable.id] = checkable
    return list(by_id.values())


def _expected_type(expected: str) -> MessageFn:
    def message(value: Any) -> str:
        return f"Expected type {expected} but received type {type_of(value)}"

    return message


def _same_value(a: Any, b: Any) -> bool:
    """Equality that keeps True apart from 1 and 1.0."""
    return type(a) is type(b) and a == b


# Source checks


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def _is_sequence(x: Any) -> bool:
    return isinstance(x, (list, tuple))


def string_check() -> Checkable:
    return Checkable(
        CheckId.STRING, lambda x: isinstance(x, str), _expected_type("string")
    )


def number_check() -> Checkable:
    return Checkable(CheckId.NUMBER, _is_number, _expected_type("number"))


def boolean_check() -> Checkable:
    return Checkable(
        CheckId.BOOLEAN, lambda x: isinstance(x, bool), _expected_type("boolean")
    )


def null_check() -> Checkable:
    return Checkable(CheckId.NULL, lambda x: x is None, _expected_type("null"))


def undefined_check() -> Checkable:
    return Checkable(
        CheckId.UNDEFINED, lambda x: x is UNDEFINED, _expected_type("undefined")
    )


def object_check() -> Checkable:
    return Checkable(
        CheckId.OBJECT, lambda x: isinstance(x, Mapping), _expected_type("object")
    )


def array_check() -> Checkable:
    return Checkable(CheckId.ARRAY, _is_sequence, _expected_type("array"))


def literal_check(expected: Any) -> Checkable:
    """
    Validate the input is exactly ``expected``.

    Usage:
        literal_check("disabled")
    """
    return Checkable(
        CheckId.LITERAL,
        lambda x: _same_value(x, expected),
        lambda x: f"Expected value {stringify(expected)} but received {stringify(x)}",
    )


def enum_check(values: Iterable[Any]) -> Checkable:
    """Validate the input is one of ``values``."""
    allowed = tuple(values)

    def check(x: Any) -> bool:
        return any(_same_value(x, v) for v in allowed)

    rendered = ", ".join(stringify(v) for v in allowed)
    return Checkable(
        CheckId.ENUM,
        check,
        lambda x: f"Expected one of [{rendered}] but received {stringify(x)}",
    )


# Value checks


def min_length(n: int) -> Checkable:
    """Validate minimum length of a string or sequence."""
    return Checkable(
        CheckId.MIN_LENGTH,
        lambda x: len(x) >= n,
        lambda x: f"Expected length >= {n} but received length {len(x)}",
    )


def max_length(n: int) -> Checkable:
    """Validate maximum length of a string or sequence."""
    return Checkable(
        CheckId.MAX_LENGTH,
        lambda x: len(x) <= n,
        lambda x: f"Expected length <= {n} but received length {len(x)}",
    )


def length(n: int) -> Checkable:
    """Validate exact length of a string or sequence."""
    return Checkable(
        CheckId.LENGTH,
        lambda x: len(x) == n,
        lambda x: f"Expected length {n} but received length {len(x)}",
    )


def min_value(n: int | float) -> Checkable:
    return Checkable(
        CheckId.MIN,
        lambda x: x >= n,
        lambda x: f"Expected number >= {n} but received {x}",
    )


def max_value(n: int | float) -> Checkable:
    return Checkable(
        CheckId.MAX,
        lambda x: x <= n,
        lambda x: f"Expected number <= {n} but received {x}",
    )


def starts_with(prefix: str) -> Checkable:
    return Checkable(
        CheckId.STARTS_WITH,
        lambda x: x.startswith(prefix),
        lambda x: f"Expected string starting with {stringify(prefix)} but received {stringify(x)}",
    )


def ends_with(suffix: str) -> Checkable:
    return Checkable(
        CheckId.ENDS_WITH,
        lambda x: x.endswith(suffix),
        lambda x: f"Expected string ending with {stringify(suffix)} but received {stringify(x)}",
    )


def matches(pattern: str) -> Checkable:
    """
    Validate string matches regex pattern.

    Usage:
        matches(r"^[a-z]+$")
        matches(r"\\d{3}-\\d{4}")
    """
    compiled = re.compile(pattern)
    return Checkable(
        CheckId.MATCHES,
        lambda x: compiled.match(x) is not None,
        lambda x: f"Expected string matching pattern {pattern} but received {stringify(x)}",
    )


def known_keys(keys: Iterable[str]) -> Checkable:
    """Fail when a mapping carries keys outside ``keys`` (strict objects)."""
    declared = frozenset(keys)

    def unknown(x: Mapping) -> list[str]:
        return sorted(str(k) for k in x if k not in declared)

    return Checkable(
        CheckId.UNKNOWN_KEYS,
        lambda x: not unknown(x),
        lambda x: f"Unrecognized keys: {', '.join(unknown(x))}",
    )
