"""
Report model for tally.

Every validation attempt produces exactly one Report: a Success carrying the
normalized ``data`` or a Failure that has no ``data`` at all. Both carry a
MetaData record with the score, the check identities that passed/failed,
alternative interpretations (``union_reports``) and structural children
(``child_reports``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, ClassVar, Generic, TypeVar, Union

from .types import CheckKey

T = TypeVar("T")


class PathKind(Enum):
    OBJECT_PROPERTY = "objectProperty"
    ARRAY_ELEMENT = "arrayElement"


@dataclass(frozen=True, slots=True)
class PathSegment:
    """Locates a child report inside its parent structure."""

    kind: PathKind
    value: str | int

    @classmethod
    def object_property(cls, key: str) -> PathSegment:
        return cls(PathKind.OBJECT_PROPERTY, key)

    @classmethod
    def array_element(cls, index: int) -> PathSegment:
        return cls(PathKind.ARRAY_ELEMENT, index)

    @property
    def key(self) -> str | None:
        return self.value if self.kind is PathKind.OBJECT_PROPERTY else None  # type: ignore[return-value]

    @property
    def index(self) -> int | None:
        return self.value if self.kind is PathKind.ARRAY_ELEMENT else None  # type: ignore[return-value]


def _no_messages() -> list[str]:
    return []


@dataclass(frozen=True, slots=True)
class MetaData:
    """
    Diagnostic metadata shared by both report variants.

    ``union_reports`` and ``child_reports`` are ``None`` when there is nothing
    to hold, never an empty tuple.
    """

    score: int
    passed_ids: frozenset[CheckKey] = frozenset()
    failed_ids: frozenset[CheckKey] = frozenset()
    union_reports: tuple[Report, ...] | None = None
    child_reports: tuple[Report, ...] | None = None
    path: PathSegment | None = None
    messages: Callable[[], list[str]] = field(
        default=_no_messages, compare=False, repr=False
    )

    def error_messages(self) -> list[str]:
        """Messages of this node's own failed checks (children not included)."""
        return list(self.messages())


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """Validation passed; ``data`` is the normalized value."""

    data: T
    meta: MetaData
    success: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class Failure:
    """Validation failed. There is deliberately no ``data`` attribute."""

    meta: MetaData
    success: ClassVar[bool] = False


Report = Union[Success[Any], Failure]


def with_meta(report: Report, **changes: Any) -> Report:
    """Return a copy of the report with MetaData fields replaced."""
    return replace(report, meta=replace(report.meta, **changes))


def with_path(report: Report, path: PathSegment) -> Report:
    return with_meta(report, path=path)


def with_data(report: Success[Any], data: Any) -> Success[Any]:
    return replace(report, data=data)
