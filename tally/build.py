"""
Build pipeline: schema definition -> evaluator.

Building runs in three phases:

1. collect every Deferred capability referenced by the definition tree,
2. resolve them through the capability registry (in-process for
   ``build_sync``, concurrently with ``asyncio.gather`` for ``build``),
3. assemble plain synchronous closures around the resolved checkables.

Lazy schemas resolve to further definitions, so phase 2 runs in rounds until
nothing new turns up. Both strategies assemble through the same code, so
their evaluators behave identically.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Iterator, Sequence

from .capabilities import CapabilityRegistry, Deferred, capabilities
from .checkables import BranchCheckable, Checkable, CheckTally, deduplicate
from .context import BuildOptions, current_options
from .exceptions import BuildError, ValidationError
from .optionality import presence_message, presence_violations
from .report import (
    Failure,
    MetaData,
    PathSegment,
    Report,
    Success,
    with_data,
    with_path,
)
from .resolve import merge_optionality, resolve_union
from .types import UNDEFINED, CheckId, UnknownKeys, check_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvaluableSchema:
    """
    Built, directly callable validator.

    ``safe_parse`` never raises for invalid input; ``parse`` raises
    ValidationError carrying the failing report.
    """

    evaluate: Callable[[Any], Report]
    kind: str = "schema"

    def __repr__(self) -> str:
        return f"EvaluableSchema({self.kind})"

    def safe_parse(self, input: Any = UNDEFINED) -> Report:
        return self.evaluate(input)

    def parse(self, input: Any = UNDEFINED) -> Any:
        report = self.evaluate(input)
        if report.success:
            return report.data
        raise ValidationError(report)


class Resolved:
    """Resolved capability values keyed by the identity of their Deferred."""

    def __init__(self) -> None:
        self._values: dict[int, tuple[Deferred, Any]] = {}

    def __contains__(self, deferred: Deferred) -> bool:
        return id(deferred) in self._values

    def __getitem__(self, deferred: Deferred) -> Any:
        try:
            return self._values[id(deferred)][1]
        except KeyError:
            raise BuildError(
                f"Capability '{deferred.name}' was not resolved before assembly",
                context={"name": deferred.name},
            ) from None

    def __setitem__(self, deferred: Deferred, value: Any) -> None:
        # Keep the Deferred alive so its id cannot be reused mid-build
        self._values[id(deferred)] = (deferred, value)

    def __len__(self) -> int:
        return len(self._values)


class Buildable:
    """
    Base for every schema definition.

    Subclasses provide ``_deferreds`` (the capabilities they need) and
    ``_assemble`` (turn resolved capabilities into an evaluator).
    """

    __slots__ = ()

    def _deferreds(self, options: BuildOptions) -> Iterator[Deferred]:
        raise NotImplementedError

    def _assemble(self, resolved: Resolved, options: BuildOptions) -> EvaluableSchema:
        raise NotImplementedError

    async def build(
        self,
        options: BuildOptions | None = None,
        registry: CapabilityRegistry | None = None,
    ) -> EvaluableSchema:
        """Build asynchronously, resolving deferred capabilities concurrently."""
        return await build_async(self, options, registry)

    def build_sync(
        self,
        options: BuildOptions | None = None,
        registry: CapabilityRegistry | None = None,
    ) -> EvaluableSchema:
        """Build in-process; fails on capabilities with asynchronous loaders."""
        return build_sync(self, options, registry)

    async def safe_parse(self, input: Any = UNDEFINED) -> Report:
        """Build, then validate. Pays the build cost on every call."""
        evaluator = await self.build()
        return evaluator.safe_parse(input)

    async def parse(self, input: Any = UNDEFINED) -> Any:
        evaluator = await self.build()
        return evaluator.parse(input)

    def transform(self, fn: Callable[[Any], Any]) -> Buildable:
        """
        Post-process successful output with ``fn``.

        ``fn`` only runs after success and its result becomes the new data.
        """
        # Imported here to avoid circular dependency
        from .schemas import TransformedSchema

        return TransformedSchema(inner=self, fn=fn)


# Resolution


def _unique(deferreds: Iterable[Deferred], resolved: Resolved) -> list[Deferred]:
    seen: set[int] = set()
    out = []
    for deferred in deferreds:
        if id(deferred) in seen or deferred in resolved:
            continue
        seen.add(id(deferred))
        out.append(deferred)
    return out


def _next_round(
    pending: Sequence[Deferred], resolved: Resolved, options: BuildOptions
) -> list[Deferred]:
    """Deferreds introduced by values that are themselves definitions."""
    discovered: list[Deferred] = []
    for deferred in pending:
        value = resolved[deferred]
        if isinstance(value, Buildable):
            discovered.extend(value._deferreds(options))
    return _unique(discovered, resolved)


def _finish_build(
    schema: Buildable, resolved: Resolved, options: BuildOptions, rounds: int
) -> EvaluableSchema:
    evaluator = schema._assemble(resolved, options)
    if options.log_builds:
        logger.info(
            "Built %s from %d capabilities in %d rounds",
            evaluator.kind,
            len(resolved),
            rounds,
        )
    return evaluator


def build_sync(
    schema: Buildable,
    options: BuildOptions | None = None,
    registry: CapabilityRegistry | None = None,
) -> EvaluableSchema:
    """
    Build a definition into an evaluator without suspending.

    Raises:
        BuildError: If a capability is missing, asynchronous, or fails to load
    """
    options = options or current_options()
    registry = registry or capabilities
    resolved = Resolved()

    pending = _unique(schema._deferreds(options), resolved)
    rounds = 0
    while pending:
        rounds += 1
        logger.debug("Resolving %d capabilities (round %d, sync)", len(pending), rounds)
        for deferred in pending:
            resolved[deferred] = registry.resolve_sync(deferred)
        pending = _next_round(pending, resolved, options)

    return _finish_build(schema, resolved, options, rounds)


async def build_async(
    schema: Buildable,
    options: BuildOptions | None = None,
    registry: CapabilityRegistry | None = None,
) -> EvaluableSchema:
    """
    Build a definition into an evaluator, awaiting loaders concurrently.

    Every loader of a round settles before the build returns or raises.

    Raises:
        BuildError: If a capability is missing or its loader fails
    """
    options = options or current_options()
    registry = registry or capabilities
    resolved = Resolved()

    pending = _unique(schema._deferreds(options), resolved)
    rounds = 0
    while pending:
        rounds += 1
        logger.debug("Resolving %d capabilities (round %d, async)", len(pending), rounds)
        results = await asyncio.gather(
            *(registry.resolve(d) for d in pending), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        for deferred, value in zip(pending, results):
            resolved[deferred] = value
        pending = _next_round(pending, resolved, options)

    return _finish_build(schema, resolved, options, rounds)


# Assembly


def _expect(value: Any, kind: type, deferred: Deferred) -> Any:
    if not isinstance(value, kind):
        raise BuildError(
            f"Capability '{deferred.name}' resolved to {type(value).__name__}, "
            f"expected {kind.__name__}",
            context={"name": deferred.name},
        )
    return value


def resolve_checkable(resolved: Resolved, deferred: Deferred) -> Checkable:
    """
    Look up a resolved checkable.

    A CUSTOM checkable takes the capability name as its identity, so two
    different registered checks on one schema never replace each other.
    """
    checkable = _expect(resolved[deferred], Checkable, deferred)
    if checkable.id is CheckId.CUSTOM:
        return replace(checkable, id=deferred.name)
    return checkable


def resolve_branch(
    resolved: Resolved, deferred: Deferred | None
) -> BranchCheckable | None:
    if deferred is None:
        return None
    return _expect(resolved[deferred], BranchCheckable, deferred)


def _node_report(
    tally: CheckTally,
    data: Any = UNDEFINED,
    children: list[Report] | None = None,
    children_ok: bool = True,
) -> Report:
    meta = MetaData(
        score=tally.score,
        passed_ids=frozenset(tally.passed),
        failed_ids=frozenset(tally.failed),
        child_reports=tuple(children) if children else None,
        messages=tally.message_factory(),
    )
    if tally.ok and children_ok:
        return Success(data, meta)
    return Failure(meta)


def leaf_evaluator(
    source: Checkable,
    checks: Sequence[Checkable],
    branch: BranchCheckable | None,
) -> Callable[[Any], Report]:
    checks = deduplicate(checks)

    def evaluate(value: Any) -> Report:
        tally = CheckTally()
        # Value checks only make sense once the type is right
        if tally.record(source, value):
            for checkable in checks:
                tally.record(checkable, value)
        report = _node_report(tally, value)
        return merge_optionality(report, branch.evaluate(value) if branch else None)

    return evaluate


def _reject_presence(child: Report, violated: frozenset, key_present: bool) -> Report:
    """Turn a child success into a failure because of its key presence."""
    meta = child.meta
    messages = [
        presence_message(i, key_present) for i in sorted(violated, key=check_name)
    ]
    return Failure(
        MetaData(
            score=meta.score - 2 * len(violated),
            passed_ids=meta.passed_ids - violated,
            failed_ids=meta.failed_ids | violated,
            union_reports=meta.union_reports,
            child_reports=meta.child_reports,
            path=meta.path,
            messages=lambda: list(messages),
        )
    )


def object_evaluator(
    source: Checkable,
    checks: Sequence[Checkable],
    entries: Sequence[tuple[str, EvaluableSchema]],
    unknown_keys: UnknownKeys,
    branch: BranchCheckable | None,
) -> Callable[[Any], Report]:
    checks = deduplicate(checks)
    declared = frozenset(key for key, _ in entries)

    def evaluate(value: Any) -> Report:
        tally = CheckTally()
        if not tally.record(source, value):
            return merge_optionality(
                _node_report(tally), branch.evaluate(value) if branch else None
            )

        for checkable in checks:
            tally.record(checkable, value)

        data: dict[Any, Any] = {}
        children: list[Report] = []
        children_ok = True
        for key, schema in entries:
            present = key in value
            child = schema.safe_parse(value[key] if present else UNDEFINED)
            violated = presence_violations(child, present)
            if violated:
                child = _reject_presence(child, violated, present)
            child = with_path(child, PathSegment.object_property(key))
            children.append(child)
            tally.score += child.meta.score

            if not child.success:
                children_ok = False
            elif present or child.data is not UNDEFINED:
                data[key] = child.data

        if unknown_keys is UnknownKeys.PASSTHROUGH:
            for key, item in value.items():
                if key not in declared:
                    data[key] = item

        report = _node_report(tally, data, children, children_ok)
        return merge_optionality(report, branch.evaluate(value) if branch else None)

    return evaluate


def array_evaluator(
    source: Checkable,
    checks: Sequence[Checkable],
    element: EvaluableSchema,
    branch: BranchCheckable | None,
) -> Callable[[Any], Report]:
    checks = deduplicate(checks)

    def evaluate(value: Any) -> Report:
        tally = CheckTally()
        if not tally.record(source, value):
            return merge_optionality(
                _node_report(tally), branch.evaluate(value) if branch else None
            )

        for checkable in checks:
            tally.record(checkable, value)

        data: list[Any] = []
        children: list[Report] = []
        children_ok = True
        # Elements are evaluated even after a length failure, for diagnostics
        for index, item in enumerate(value):
            child = with_path(element.safe_parse(item), PathSegment.array_element(index))
            children.append(child)
            tally.score += child.meta.score
            if child.success:
                data.append(child.data)
            else:
                children_ok = False

        report = _node_report(tally, data, children, children_ok)
        return merge_optionality(report, branch.evaluate(value) if branch else None)

    return evaluate


def union_evaluator(
    branches: Sequence[EvaluableSchema],
    branch: BranchCheckable | None,
) -> Callable[[Any], Report]:
    if not branches:
        raise BuildError("Union requires at least one schema")

    def evaluate(value: Any) -> Report:
        reports = [schema.safe_parse(value) for schema in branches]
        # Optionality is one more candidate of the union
        if branch is not None:
            reports.append(branch.evaluate(value))
        return resolve_union(reports)

    return evaluate


def transform_evaluator(
    inner: EvaluableSchema, fn: Callable[[Any], Any]
) -> Callable[[Any], Report]:
    def evaluate(value: Any) -> Report:
        report = inner.safe_parse(value)
        if report.success:
            return with_data(report, fn(report.data))
        return report

    return evaluate
