"""
Tally - score-based schema validation.

Usage:
    from tally import object_schema, string_schema, array_schema

    schema = object_schema({
        "id": string_schema().min_length(3),
        "tags": array_schema(string_schema()).optional(),
    })

    report = schema.build_sync().safe_parse({"id": "user-2"})
    report.success  # True
    report.data     # {'id': 'user-2'}
"""

from .build import Buildable, EvaluableSchema
from .capabilities import CapabilityRegistry, Deferred, capabilities
from .checkables import BranchCheckable, Checkable
from .context import BuildOptions, build_context, current_options
from .exceptions import (
    BuildError,
    CapabilityNotFound,
    InvariantViolation,
    TallyError,
    ValidationError,
)
from .interop import to_pydantic, validate
from .messages import collect_issues, format_report
from .report import Failure, MetaData, PathKind, PathSegment, Report, Success
from .resolve import flatten_candidates, resolve_union, select_preferred
from .schemas import (
    array_schema,
    boolean_schema,
    enum_schema,
    lazy_schema,
    literal_schema,
    null_schema,
    number_schema,
    object_schema,
    string_schema,
    undefined_schema,
    union_schema,
)
from .types import UNDEFINED, CheckId, OptionalityMode, UnknownKeys

__all__ = [
    # Builders
    "string_schema",
    "number_schema",
    "boolean_schema",
    "literal_schema",
    "enum_schema",
    "null_schema",
    "undefined_schema",
    "array_schema",
    "object_schema",
    "union_schema",
    "lazy_schema",
    # Build
    "Buildable",
    "EvaluableSchema",
    "BuildOptions",
    "build_context",
    "current_options",
    # Capabilities
    "Checkable",
    "BranchCheckable",
    "Deferred",
    "CapabilityRegistry",
    "capabilities",
    # Reports
    "Report",
    "Success",
    "Failure",
    "MetaData",
    "PathKind",
    "PathSegment",
    "flatten_candidates",
    "select_preferred",
    "resolve_union",
    "collect_issues",
    "format_report",
    # Types
    "UNDEFINED",
    "CheckId",
    "OptionalityMode",
    "UnknownKeys",
    # Errors
    "TallyError",
    "ValidationError",
    "BuildError",
    "CapabilityNotFound",
    "InvariantViolation",
    # Interop
    "validate",
    "to_pydantic",
]
