"""
Context manager for build configuration (e.g., unknown key handling).
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from pydantic import BaseModel, ConfigDict

from .types import UnknownKeys


class BuildOptions(BaseModel):
    """
    Options applied while building a schema into an evaluator.

    Attributes:
        unknown_keys: What object schemas without an explicit shape do with
            undeclared input keys. Defaults to stripping them.
        log_builds: Log a summary of each completed build at INFO level.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    unknown_keys: UnknownKeys = UnknownKeys.STRIP
    log_builds: bool = False


# Context variable for the ambient build options
_build_options: ContextVar[BuildOptions] = ContextVar(
    "build_options", default=BuildOptions()
)


def current_options() -> BuildOptions:
    """Return the build options currently in effect."""
    return _build_options.get()


@contextmanager
def build_context(**overrides: Any):
    """
    Context manager for build configuration.

    Args:
        **overrides: Fields of BuildOptions to change for builds started
            inside the block (validated by pydantic).

    Example:
        from tally import build_context, object_schema, string_schema

        schema = object_schema({"name": string_schema()})

        # Normal: unknown keys are stripped from the output
        schema.build_sync().parse({"name": "Ada", "role": "admin"})
        # {'name': 'Ada'}

        # Passthrough: unknown keys are copied to the output
        with build_context(unknown_keys="passthrough"):
            evaluator = schema.build_sync()
        evaluator.parse({"name": "Ada", "role": "admin"})
        # {'name': 'Ada', 'role': 'admin'}
    """
    options = BuildOptions.model_validate(
        {**current_options().model_dump(), **overrides}
    )
    token = _build_options.set(options)
    try:
        yield options
    finally:
        _build_options.reset(token)
