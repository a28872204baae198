"""
Union and branch resolution.

Given several candidate reports for the same input, pick the one that best
explains it and keep the rest as flat alternatives. The same machinery backs
explicit union schemas and the implicit union between a schema and its
optionality branch.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .exceptions import InvariantViolation
from .report import Report, with_meta
from .types import check_name

logger = logging.getLogger(__name__)


def flatten_candidates(reports: Sequence[Report]) -> list[Report]:
    """
    Flatten a tree of union reports into one list of candidates.

    Depth-first, pre-order: each report is followed by the contents of its own
    ``union_reports``. The returned nodes carry no ``union_reports``.
    """
    flattened: list[Report] = []

    def collect(report: Report) -> None:
        nested = report.meta.union_reports
        if nested is None:
            flattened.append(report)
            return
        flattened.append(with_meta(report, union_reports=None))
        for alternative in nested:
            collect(alternative)

    for report in reports:
        collect(report)

    return flattened


def select_preferred(candidates: Sequence[Report]) -> Report:
    """
    Pick the successful candidate with the highest score, else the highest
    scoring failure. Ties keep the earlier candidate.

    The other candidates are reattached, in order, as ``union_reports`` of the
    selected one (omitted when there are none).
    """
    if not candidates:
        raise ValueError("Cannot select from zero candidate reports")

    best_success: int | None = None
    best_overall = 0
    for i, report in enumerate(candidates):
        score = report.meta.score
        if score > candidates[best_overall].meta.score:
            best_overall = i
        if report.success and (
            best_success is None or score > candidates[best_success].meta.score
        ):
            best_success = i

    selected_index = best_overall if best_success is None else best_success
    remainder = tuple(r for i, r in enumerate(candidates) if i != selected_index)
    return with_meta(candidates[selected_index], union_reports=remainder or None)


def resolve_union(reports: Sequence[Report]) -> Report:
    """Flatten then select: the full union resolution."""
    return select_preferred(flatten_candidates(reports))


def merge_optionality(source: Report, branch: Report | None) -> Report:
    """
    Combine a schema's own report with its optionality branch report.

    Exactly one of them may succeed. When both fail the higher score wins
    and the source report wins ties.

    Raises:
        InvariantViolation: if both the source and the branch succeeded
    """
    if branch is None:
        return source

    if source.success and branch.success:
        logger.error(
            "Schema accepted input through both its main path and branch %s",
            sorted(check_name(i) for i in branch.meta.passed_ids),
        )
        raise InvariantViolation(
            "Both source and optionality checkables passed",
            context={
                "source_ids": sorted(check_name(i) for i in source.meta.passed_ids),
                "branch_ids": sorted(check_name(i) for i in branch.meta.passed_ids),
            },
        )

    if source.success:
        winner, other = source, branch
    elif branch.success:
        winner, other = branch, source
    elif source.meta.score >= branch.meta.score:
        winner, other = source, branch
    else:
        winner, other = branch, source

    alternatives = [*(winner.meta.union_reports or ()), other]
    return with_meta(winner, union_reports=tuple(flatten_candidates(alternatives)))
