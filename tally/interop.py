"""
Interop helpers for tally.

Provides validate() and to_pydantic() functions.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AfterValidator, Field, Strict, create_model

from .build import Buildable
from .capabilities import Deferred
from .report import Report
from .schemas import (
    ArraySchema,
    BooleanSchema,
    EnumSchema,
    LiteralSchema,
    NullSchema,
    NumberSchema,
    ObjectSchema,
    Schema,
    StringSchema,
    TransformedSchema,
    UnionSchema,
)
from .types import OptionalityMode

# Modes where pydantic should accept a missing field
_MAY_BE_MISSING = {
    OptionalityMode.OPTIONAL,
    OptionalityMode.EXACT_OPTIONAL,
    OptionalityMode.UNDEFINABLE,
    OptionalityMode.NULLISH,
}


def validate(data: Any, schema: Buildable) -> Report:
    """
    Build ``schema`` synchronously and validate ``data`` against it.

    Usage:
        report = validate({"name": "Alice"}, object_schema({"name": string_schema()}))
        report.success  # True
    """
    if not isinstance(schema, Buildable):
        raise TypeError(f"validate() expects a schema, got {type(schema).__name__}")
    return schema.build_sync().safe_parse(data)


def to_pydantic(name: str, schema: ObjectSchema) -> type:
    """
    Compile an object schema to a Pydantic model.

    Args:
        name: Name of the generated model class
        schema: Object schema definition

    Returns:
        A Pydantic BaseModel subclass; scalar fields are strict, so values
        are not coerced

    Usage:
        User = to_pydantic("User", object_schema({
            "name": string_schema().min_length(1),
            "email": string_schema().optional(),
        }))
        user = User(name="Alice")
    """
    if not isinstance(schema, ObjectSchema):
        raise TypeError("Schema must be an object schema")

    fields: dict[str, Any] = {}
    for key, child in schema.entries:
        fields[key] = _extract_pydantic_field(child, f"{name}_{key}")

    return create_model(name, **fields)


def _extract_pydantic_field(schema: Buildable, name: str) -> tuple[Any, Any]:
    """Extract Pydantic field type and default from a schema."""
    t = _pydantic_type(schema, name)
    if not isinstance(schema, Schema):
        return (t, ...)

    match schema.optionality:
        case OptionalityMode.REQUIRED:
            return (t, ...)
        case OptionalityMode.NULLABLE:
            return (Optional[t], ...)
        case OptionalityMode.DEFAULTED:
            value = schema.default_value
            if callable(value):
                return (Optional[t], Field(default_factory=value))
            return (Optional[t], Field(default=value))
        case mode if mode in _MAY_BE_MISSING:
            return (Optional[t], None)

    return (Any, None)


def _constraints(checks: tuple[Deferred, ...]) -> dict[str, Any]:
    """Translate built-in value checks to pydantic Field constraints."""
    out: dict[str, Any] = {}
    for deferred in checks:
        match deferred.name, deferred.args:
            case "min_length", (n,):
                out["min_length"] = n
            case "max_length", (n,):
                out["max_length"] = n
            case "length", (n,):
                out["min_length"] = out["max_length"] = n
            case "min", (n,):
                out["ge"] = n
            case "max", (n,):
                out["le"] = n
            case "matches", (pattern,):
                # Checks match at the start of the string
                out["pattern"] = pattern if pattern.startswith("^") else f"^(?:{pattern})"
    return out


def _affix_validators(checks: tuple[Deferred, ...]) -> list[AfterValidator]:
    validators = []
    for deferred in checks:
        match deferred.name, deferred.args:
            case "starts_with", (prefix,):
                validators.append(AfterValidator(_require(str.startswith, prefix)))
            case "ends_with", (suffix,):
                validators.append(AfterValidator(_require(str.endswith, suffix)))
    return validators


def _require(predicate: Any, affix: str) -> Any:
    def check(value: str) -> str:
        if not predicate(value, affix):
            raise ValueError(f"Expected string with affix {affix!r}")
        return value

    return check


def _annotate(t: Any, checks: tuple[Deferred, ...]) -> Any:
    constraints = _constraints(checks)
    validators = _affix_validators(checks)
    if not constraints and not validators:
        return t
    extras = [Field(**constraints)] if constraints else []
    return Annotated[(t, *extras, *validators)]


def _pydantic_type(schema: Buildable, name: str) -> Any:
    match schema:
        case StringSchema(checks=checks):
            return _annotate(Annotated[str, Strict()], checks)
        case NumberSchema(checks=checks):
            return _annotate(Annotated[float, Strict()], checks)
        case BooleanSchema():
            return Annotated[bool, Strict()]
        case NullSchema():
            return type(None)
        case LiteralSchema(value=value):
            return Literal[value]
        case EnumSchema(values=values):
            return Literal[values]
        case ArraySchema(element=element, checks=checks):
            return _annotate(list[_pydantic_type(element, f"{name}_item")], checks)
        case ObjectSchema():
            return to_pydantic(name, schema)
        case UnionSchema(branches=branches):
            options = tuple(
                _pydantic_type(branch, f"{name}_{i}") for i, branch in enumerate(branches)
            )
            return Union[options]
        case TransformedSchema(inner=inner, fn=fn):
            return Annotated[_pydantic_type(inner, name), AfterValidator(fn)]

    raise TypeError(f"{type(schema).__name__} has no pydantic equivalent")
