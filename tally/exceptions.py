"""
Exception hierarchy for tally.

Only three things ever raise: ``parse`` on an invalid input, a build that
cannot complete, and a schema whose main path and optionality branch both
accept the same input. Every other failure is a Report.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .report import Report


class TallyError(Exception):
    """
    Base exception for tally.

    Attributes:
        context: Dictionary with details about the error (schema kind,
            capability name, ...)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ValidationError(TallyError):
    """Raised by ``parse`` when the input did not validate. Carries the report."""

    def __init__(self, report: Report, message: str | None = None):
        # Imported here to avoid circular dependency
        from .messages import format_report

        super().__init__(
            message or f"Input did not validate:\n{format_report(report)}",
            context={"score": report.meta.score},
        )
        self.report = report


class BuildError(TallyError):
    """Raised when a schema definition cannot be built into an evaluator."""


class CapabilityNotFound(BuildError):
    """Raised when a deferred capability names nothing in the registry."""

    def __init__(self, name: str, available: list[str]):
        super().__init__(
            f"Capability not found: {name}",
            context={"name": name, "available": available},
        )
        self.name = name


class InvariantViolation(TallyError):
    """
    Raised when a schema accepts the same input through two independent paths.

    This is a malformed schema, not a data problem, so it is never folded
    into a Report.
    """
