"""
Schema definitions for tally.

Definitions are immutable dataclasses. Every constraint or modifier call
returns a new definition (``dataclasses.replace``), so one definition can be
shared and built from many places at once.

Usage:
    from tally import array_schema, object_schema, string_schema

    user = object_schema({
        "id": string_schema().min_length(3),
        "tags": array_schema(string_schema()).optional(),
    })

    evaluator = user.build_sync()
    evaluator.parse({"id": "user-2"})          # {'id': 'user-2'}
    evaluator.safe_parse({"id": 1}).success    # False
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Iterator, Sequence

from .build import (
    Buildable,
    EvaluableSchema,
    Resolved,
    array_evaluator,
    leaf_evaluator,
    object_evaluator,
    resolve_branch,
    resolve_checkable,
    transform_evaluator,
    union_evaluator,
)
from .capabilities import Deferred
from .context import BuildOptions
from .exceptions import BuildError
from .optionality import BRANCH_CAPABILITIES
from .types import UNDEFINED, OptionalityMode, UnknownKeys


def _require_buildable(value: Any, where: str) -> Buildable:
    if not isinstance(value, Buildable):
        raise TypeError(f"{where} expects a schema, got {type(value).__name__}")
    return value


@dataclass(frozen=True, slots=True, kw_only=True)
class Schema(Buildable):
    """
    Definition with an optionality mode.

    Modifiers overwrite each other: ``s.optional().nullable()`` is nullable,
    not optional.
    """

    optionality: OptionalityMode = OptionalityMode.REQUIRED
    default_value: Any = UNDEFINED
    branch: Deferred | None = None

    def _with_optionality(self, mode: OptionalityMode, default: Any = UNDEFINED) -> Any:
        name = BRANCH_CAPABILITIES.get(mode)
        if name is None:
            branch = None
        elif mode is OptionalityMode.DEFAULTED:
            branch = Deferred(name, (default,))
        else:
            branch = Deferred(name)
        return replace(self, optionality=mode, default_value=default, branch=branch)

    def optional(self) -> Any:
        """Accept UNDEFINED (missing key or undefined value)."""
        return self._with_optionality(OptionalityMode.OPTIONAL)

    def exact_optional(self) -> Any:
        """Accept a missing key, but not a present key holding UNDEFINED."""
        return self._with_optionality(OptionalityMode.EXACT_OPTIONAL)

    def undefinable(self) -> Any:
        """Accept UNDEFINED, but inside objects only with the key present."""
        return self._with_optionality(OptionalityMode.UNDEFINABLE)

    def nullable(self) -> Any:
        """Accept None."""
        return self._with_optionality(OptionalityMode.NULLABLE)

    def nullish(self) -> Any:
        """Accept None or UNDEFINED."""
        return self._with_optionality(OptionalityMode.NULLISH)

    def default(self, value: Any) -> Any:
        """
        Replace None/UNDEFINED with ``value``.

        A callable is used as a producer and called on every substitution.
        If it raises, the default does not apply and the input fails.
        """
        return self._with_optionality(OptionalityMode.DEFAULTED, value)

    def required(self) -> Any:
        """Drop any optionality modifier applied earlier."""
        return self._with_optionality(OptionalityMode.REQUIRED)

    def _branch_deferreds(self) -> Iterator[Deferred]:
        if self.branch is not None:
            yield self.branch


@dataclass(frozen=True, slots=True, kw_only=True)
class CheckedSchema(Schema):
    """Definition with a source (type) check and value checks."""

    source: Deferred
    checks: tuple[Deferred, ...] = ()

    def _with_check(self, name: str, *args: Any) -> Any:
        return replace(self, checks=(*self.checks, Deferred(name, args)))

    def refine(self, name: str, *args: Any) -> Any:
        """
        Attach a registered capability by name.

        Usage:
            number_schema().refine("even")
        """
        return self._with_check(name, *args)

    def _deferreds(self, options: BuildOptions) -> Iterator[Deferred]:
        yield self.source
        yield from self.checks
        yield from self._branch_deferreds()

    def _resolved_checks(self, resolved: Resolved) -> list:
        return [resolve_checkable(resolved, d) for d in self.checks]

    def _assemble(self, resolved: Resolved, options: BuildOptions) -> EvaluableSchema:
        evaluate = leaf_evaluator(
            resolve_checkable(resolved, self.source),
            self._resolved_checks(resolved),
            resolve_branch(resolved, self.branch),
        )
        return EvaluableSchema(evaluate, type(self).__name__)


class _LengthMixin:
    __slots__ = ()

    def min_length(self, n: int) -> Any:
        return self._with_check("min_length", n)  # type: ignore[attr-defined]

    def max_length(self, n: int) -> Any:
        return self._with_check("max_length", n)  # type: ignore[attr-defined]

    def length(self, n: int) -> Any:
        return self._with_check("length", n)  # type: ignore[attr-defined]


@dataclass(frozen=True, slots=True, kw_only=True)
class StringSchema(_LengthMixin, CheckedSchema):
    source: Deferred = Deferred("string")

    def starts_with(self, prefix: str) -> StringSchema:
        return self._with_check("starts_with", prefix)

    def ends_with(self, suffix: str) -> StringSchema:
        return self._with_check("ends_with", suffix)

    def matches(self, pattern: str) -> StringSchema:
        return self._with_check("matches", pattern)


@dataclass(frozen=True, slots=True, kw_only=True)
class NumberSchema(CheckedSchema):
    source: Deferred = Deferred("number")

    def min(self, n: int | float) -> NumberSchema:
        return self._with_check("min", n)

    def max(self, n: int | float) -> NumberSchema:
        return self._with_check("max", n)


@dataclass(frozen=True, slots=True, kw_only=True)
class BooleanSchema(CheckedSchema):
    source: Deferred = Deferred("boolean")


@dataclass(frozen=True, slots=True, kw_only=True)
class NullSchema(CheckedSchema):
    source: Deferred = Deferred("null")


@dataclass(frozen=True, slots=True, kw_only=True)
class UndefinedSchema(CheckedSchema):
    source: Deferred = Deferred("undefined")


@dataclass(frozen=True, slots=True, kw_only=True)
class LiteralSchema(CheckedSchema):
    value: Any


@dataclass(frozen=True, slots=True, kw_only=True)
class EnumSchema(CheckedSchema):
    values: tuple[Any, ...]


@dataclass(frozen=True, slots=True, kw_only=True)
class ArraySchema(_LengthMixin, CheckedSchema):
    element: Buildable
    source: Deferred = Deferred("array")

    def _deferreds(self, options: BuildOptions) -> Iterator[Deferred]:
        yield from CheckedSchema._deferreds(self, options)
        yield from self.element._deferreds(options)

    def _assemble(self, resolved: Resolved, options: BuildOptions) -> EvaluableSchema:
        evaluate = array_evaluator(
            resolve_checkable(resolved, self.source),
            self._resolved_checks(resolved),
            self.element._assemble(resolved, options),
            resolve_branch(resolved, self.branch),
        )
        return EvaluableSchema(evaluate, "ArraySchema")


@dataclass(frozen=True, slots=True, kw_only=True)
class ObjectSchema(CheckedSchema):
    """
    Record with declared keys.

    ``shape`` decides what happens to undeclared input keys; ``None`` defers
    to the build options (strip by default).
    """

    entries: tuple[tuple[str, Buildable], ...]
    keys_check: Deferred
    shape: UnknownKeys | None = None
    source: Deferred = Deferred("object")

    @property
    def fields(self) -> dict[str, Buildable]:
        return dict(self.entries)

    def strip(self) -> ObjectSchema:
        return replace(self, shape=UnknownKeys.STRIP)

    def passthrough(self) -> ObjectSchema:
        return replace(self, shape=UnknownKeys.PASSTHROUGH)

    def strict(self) -> ObjectSchema:
        return replace(self, shape=UnknownKeys.STRICT)

    def _shape(self, options: BuildOptions) -> UnknownKeys:
        return self.shape if self.shape is not None else options.unknown_keys

    def _deferreds(self, options: BuildOptions) -> Iterator[Deferred]:
        yield from CheckedSchema._deferreds(self, options)
        if self._shape(options) is UnknownKeys.STRICT:
            yield self.keys_check
        for _, schema in self.entries:
            yield from schema._deferreds(options)

    def _assemble(self, resolved: Resolved, options: BuildOptions) -> EvaluableSchema:
        shape = self._shape(options)
        checks = self._resolved_checks(resolved)
        if shape is UnknownKeys.STRICT:
            checks.append(resolve_checkable(resolved, self.keys_check))
        evaluate = object_evaluator(
            resolve_checkable(resolved, self.source),
            checks,
            [(key, schema._assemble(resolved, options)) for key, schema in self.entries],
            shape,
            resolve_branch(resolved, self.branch),
        )
        return EvaluableSchema(evaluate, "ObjectSchema")


@dataclass(frozen=True, slots=True, kw_only=True)
class UnionSchema(Schema):
    """Alternatives; the best scoring interpretation of the input wins."""

    branches: tuple[Buildable, ...]

    def _deferreds(self, options: BuildOptions) -> Iterator[Deferred]:
        if not self.branches:
            raise BuildError("Union requires at least one schema")
        for schema in self.branches:
            yield from schema._deferreds(options)
        yield from self._branch_deferreds()

    def _assemble(self, resolved: Resolved, options: BuildOptions) -> EvaluableSchema:
        evaluate = union_evaluator(
            [schema._assemble(resolved, options) for schema in self.branches],
            resolve_branch(resolved, self.branch),
        )
        return EvaluableSchema(evaluate, "UnionSchema")


@dataclass(frozen=True, slots=True, kw_only=True)
class TransformedSchema(Buildable):
    inner: Buildable
    fn: Callable[[Any], Any]

    def _deferreds(self, options: BuildOptions) -> Iterator[Deferred]:
        return self.inner._deferreds(options)

    def _assemble(self, resolved: Resolved, options: BuildOptions) -> EvaluableSchema:
        inner = self.inner._assemble(resolved, options)
        return EvaluableSchema(transform_evaluator(inner, self.fn), "TransformedSchema")


@dataclass(frozen=True, slots=True, kw_only=True)
class LazySchema(Buildable):
    """
    Definition produced by a loader at build time.

    The loader may be a coroutine function, in which case only the
    asynchronous build can resolve it.
    """

    loader: Deferred

    def _deferreds(self, options: BuildOptions) -> Iterator[Deferred]:
        yield self.loader

    def _assemble(self, resolved: Resolved, options: BuildOptions) -> EvaluableSchema:
        schema = resolved[self.loader]
        if not isinstance(schema, Buildable):
            raise BuildError(
                f"Lazy loader returned {type(schema).__name__}, expected a schema",
                context={"name": self.loader.name},
            )
        return schema._assemble(resolved, options)


# Builders


def string_schema() -> StringSchema:
    return StringSchema()


def number_schema() -> NumberSchema:
    return NumberSchema()


def boolean_schema() -> BooleanSchema:
    return BooleanSchema()


def null_schema() -> NullSchema:
    return NullSchema()


def undefined_schema() -> UndefinedSchema:
    return UndefinedSchema()


def literal_schema(value: Any) -> LiteralSchema:
    """
    Accept exactly ``value``.

    Usage:
        literal_schema("disabled")
    """
    return LiteralSchema(value=value, source=Deferred("literal", (value,)))


def enum_schema(values: Iterable[Any]) -> EnumSchema:
    """
    Accept any one of ``values``.

    Usage:
        enum_schema(["active", "inactive", "pending"])
    """
    allowed = tuple(values)
    if not allowed:
        raise ValueError("Enum requires at least one value")
    return EnumSchema(values=allowed, source=Deferred("enum", (allowed,)))


def array_schema(element: Buildable) -> ArraySchema:
    return ArraySchema(element=_require_buildable(element, "array_schema()"))


def object_schema(fields: Mapping[str, Buildable]) -> ObjectSchema:
    """
    Record with one child schema per declared key.

    Usage:
        object_schema({"name": string_schema(), "age": number_schema().min(0)})
    """
    if not isinstance(fields, Mapping):
        raise TypeError(f"object_schema() expects a mapping, got {type(fields).__name__}")
    entries = tuple(
        (key, _require_buildable(schema, f"object_schema() key '{key}'"))
        for key, schema in fields.items()
    )
    return ObjectSchema(
        entries=entries,
        keys_check=Deferred("known_keys", (tuple(key for key, _ in entries),)),
    )


def union_schema(branches: Sequence[Buildable]) -> UnionSchema:
    """
    Accept whatever one of ``branches`` accepts.

    An empty union is accepted here and rejected by ``build``.
    """
    return UnionSchema(
        branches=tuple(_require_buildable(b, "union_schema()") for b in branches)
    )


def lazy_schema(loader: Callable[[], Any], name: str = "lazy") -> LazySchema:
    """
    Defer creating a child definition until build time.

    Usage:
        async def load_address():
            return object_schema({"city": string_schema()})

        object_schema({"address": lazy_schema(load_address)})
    """
    return LazySchema(loader=Deferred(name, loader=loader))
