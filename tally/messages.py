"""
Human-readable rendering of reports.

Issues are collected as ``(path, message)`` pairs along the selected report
and its failed children. Paths render in dotted notation, e.g.
``profile.tags[1]``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .types import UNDEFINED, Issue, IssuePath, check_name

if TYPE_CHECKING:
    from .report import Report


def type_of(value: Any) -> str:
    """Name the kind of a value the way the schema builders name them."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def stringify(value: Any) -> str:
    t = type_of(value)
    if t == "string":
        return f'"{value}"'
    if t in ("null", "undefined"):
        return t
    if t == "boolean":
        return "true" if value else "false"
    if t in ("object", "array"):
        try:
            return json.dumps(value, default=repr)
        except (TypeError, ValueError):
            return repr(value)
    return str(value) if t == "number" else repr(value)


def format_path(path: IssuePath) -> str:
    """Render ``("user", "tags", 0)`` as ``user.tags[0]``."""
    if not path:
        return "<root>"
    out = ""
    for segment in path:
        if isinstance(segment, int):
            out += f"[{segment}]"
        else:
            out += f".{segment}" if out else segment
    return out


def collect_issues(report: Report, prefix: IssuePath = ()) -> list[Issue]:
    """
    Collect ``(path, message)`` pairs explaining why a report failed.

    Only the selected interpretation is explained; alternatives under
    ``union_reports`` are diagnostics, not causes.

    Returns:
        An empty list for a Success, otherwise one entry per failed check
        down the tree.
    """
    if report.success:
        return []

    meta = report.meta
    issues: list[Issue] = [(prefix, m) for m in meta.error_messages()]
    if not issues and meta.failed_ids:
        names = ", ".join(sorted(check_name(i) for i in meta.failed_ids))
        issues.append((prefix, f"Failed checks: {names}"))

    for child in meta.child_reports or ():
        if child.success or child.meta.path is None:
            continue
        issues.extend(collect_issues(child, (*prefix, child.meta.path.value)))

    return issues


def format_report(report: Report) -> str:
    """One line per issue: ``<path>: <message>``."""
    if report.success:
        return "OK"
    issues = collect_issues(report)
    if not issues:
        return "<root>: Validation failed"
    return "\n".join(f"{format_path(path)}: {message}" for path, message in issues)
