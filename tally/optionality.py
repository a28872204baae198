"""
Optionality branch checkables.

Each optionality mode except REQUIRED is evaluated as a separate branch next
to the schema's main path. A branch that accepts the input short-circuits to
a Success with score +1; one that does not is a Failure with score -1.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from .checkables import BranchCheckable
from .messages import stringify
from .report import Failure, MetaData, Report, Success
from .types import UNDEFINED, CheckId, CheckKey, OptionalityMode, check_name

logger = logging.getLogger(__name__)

# Mode -> capability name used by the registry
BRANCH_CAPABILITIES: dict[OptionalityMode, str] = {
    OptionalityMode.OPTIONAL: "optional",
    OptionalityMode.EXACT_OPTIONAL: "exact_optional",
    OptionalityMode.UNDEFINABLE: "undefinable",
    OptionalityMode.NULLABLE: "nullable",
    OptionalityMode.NULLISH: "nullish",
    OptionalityMode.DEFAULTED: "default",
}

# Branches whose success depends on whether an object key is present
KEY_MUST_BE_ABSENT = frozenset({CheckId.EXACT_OPTIONAL})
KEY_MUST_BE_PRESENT = frozenset(
    {CheckId.NULLISH, CheckId.UNDEFINABLE, CheckId.UNDEFINED}
)


def _branch(
    id: CheckId,
    accepts: Callable[[Any], bool],
    expectation: str,
    produce: Callable[[Any], Any] = lambda v: v,
) -> BranchCheckable:
    def evaluate(value: Any) -> Report:
        if accepts(value):
            try:
                data = produce(value)
            except Exception as e:
                logger.debug("Branch %s raised %r", id, e)
                text = f"Validation error: {e}"
                return Failure(
                    MetaData(
                        score=-1, failed_ids=frozenset({id}), messages=lambda: [text]
                    )
                )
            return Success(data, MetaData(score=1, passed_ids=frozenset({id})))

        def messages() -> list[str]:
            return [f"Expected {expectation} but received {stringify(value)}"]

        return Failure(
            MetaData(score=-1, failed_ids=frozenset({id}), messages=messages)
        )

    return BranchCheckable(id, evaluate)


def optional_branch() -> BranchCheckable:
    return _branch(
        CheckId.OPTIONAL,
        lambda v: v is UNDEFINED,
        "property to be optional (missing or undefined)",
    )


def exact_optional_branch() -> BranchCheckable:
    return _branch(
        CheckId.EXACT_OPTIONAL,
        lambda v: v is UNDEFINED,
        "property to be exactOptional (key missing)",
    )


def undefinable_branch() -> BranchCheckable:
    return _branch(
        CheckId.UNDEFINABLE,
        lambda v: v is UNDEFINED,
        "property to be undefinable (key present with value undefined)",
    )


def nullable_branch() -> BranchCheckable:
    return _branch(
        CheckId.NULLABLE,
        lambda v: v is None,
        "property to be nullable (explicit null)",
    )


def nullish_branch() -> BranchCheckable:
    return _branch(
        CheckId.NULLISH,
        lambda v: v is None or v is UNDEFINED,
        "property to be nullish (null or undefined)",
    )


def default_branch(default: Any) -> BranchCheckable:
    """
    Replace ``None``/UNDEFINED with ``default``.

    A callable default is treated as a producer and called on every use;
    any other value is deep-copied so outputs never share state. A producer
    that raises makes the branch fail with a "Validation error" message.
    """

    def produce(_: Any) -> Any:
        return default() if callable(default) else copy.deepcopy(default)

    return _branch(
        CheckId.DEFAULTED,
        lambda v: v is None or v is UNDEFINED,
        "null or undefined to be replaced by the default",
        produce,
    )


def presence_violations(report: Report, key_present: bool) -> frozenset[CheckKey]:
    """
    Return the passed branch ids that contradict the presence of an object key.

    ``exact_optional`` only accepts an absent key; ``nullish``,
    ``undefinable`` and the ``undefined`` schema require the key to be there.
    """
    if not report.success:
        return frozenset()
    passed = report.meta.passed_ids
    if key_present:
        return passed & KEY_MUST_BE_ABSENT
    return passed & KEY_MUST_BE_PRESENT


def presence_message(id: CheckKey, key_present: bool) -> str:
    if key_present:
        return f"Expected key to be missing for {check_name(id)} but key is present"
    return f"Expected key to be present for {check_name(id)} but key is missing"
