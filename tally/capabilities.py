"""
Registry of deferred capabilities.

Schema definitions never hold built checkables. They hold ``Deferred``
references that name a capability (``"min_length"`` with args ``(3,)``) and
are resolved when the schema is built. A capability loader may be a plain
callable or a coroutine function; the latter is only usable with the
asynchronous build.

Example:
    from tally import Checkable, CheckId, capabilities, number_schema

    @capabilities.capability("even")
    def even():
        return Checkable(CheckId.CUSTOM, lambda x: x % 2 == 0,
                         lambda x: f"Expected an even number but received {x}")

    schema = number_schema().refine("even")

A CUSTOM checkable is identified by its capability name once built, so the
report of ``schema`` on ``3`` lists ``"even"`` in ``failed_ids``.
"""

from __future__ import annotations

import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from . import checkables as c
from . import optionality as o
from .exceptions import BuildError, CapabilityNotFound

logger = logging.getLogger(__name__)

Loader = Callable[..., Any]


@dataclass(frozen=True, slots=True, eq=False)
class Deferred:
    """
    Unresolved reference to a capability.

    Attributes:
        name: Capability name looked up in the registry
        args: Arguments passed to the loader
        loader: Explicit loader; bypasses the registry when set
    """

    name: str
    args: tuple[Any, ...] = ()
    loader: Loader | None = None

    def __repr__(self) -> str:
        rendered = ", ".join(repr(a) for a in self.args)
        return f"Deferred({self.name}({rendered}))"


class CapabilityRegistry:
    """
    Thread-safe map from capability names to loaders.

    Args:
        name: Registry name for identification in errors and logs
    """

    def __init__(self, name: str = "capabilities"):
        self._name = name
        self._loaders: dict[str, Loader] = {}
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._name

    def register(self, name: str, loader: Loader, allow_overwrite: bool = False) -> None:
        """
        Register a loader under ``name``.

        Raises:
            BuildError: If the name is taken and allow_overwrite is False
        """
        with self._lock:
            if not allow_overwrite and name in self._loaders:
                raise BuildError(
                    f"Capability '{name}' already registered in {self._name}",
                    context={"name": name, "registry": self._name},
                )
            self._loaders[name] = loader
        logger.debug("Registered capability %s in %s", name, self._name)

    def unregister(self, name: str) -> Loader:
        with self._lock:
            if name not in self._loaders:
                raise CapabilityNotFound(name, self.names())
            return self._loaders.pop(name)

    def get(self, name: str) -> Loader:
        with self._lock:
            if name not in self._loaders:
                raise CapabilityNotFound(name, self.names())
            return self._loaders[name]

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._loaders

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._loaders)

    def capability(self, name: str, allow_overwrite: bool = False) -> Callable[[Loader], Loader]:
        """Decorator form of ``register``."""

        def decorator(loader: Loader) -> Loader:
            self.register(name, loader, allow_overwrite=allow_overwrite)
            return loader

        return decorator

    def _loader_for(self, deferred: Deferred) -> Loader:
        return deferred.loader if deferred.loader is not None else self.get(deferred.name)

    def resolve_sync(self, deferred: Deferred) -> Any:
        """
        Resolve a capability in-process.

        Raises:
            BuildError: If the loader is asynchronous, missing, or fails
        """
        loader = self._loader_for(deferred)
        if inspect.iscoroutinefunction(loader):
            raise BuildError(
                f"Capability '{deferred.name}' has an asynchronous loader; use build()",
                context={"name": deferred.name},
            )
        try:
            value = loader(*deferred.args)
        except Exception as e:
            raise BuildError(
                f"Capability '{deferred.name}' failed to load: {e}",
                context={"name": deferred.name},
            ) from e
        if inspect.isawaitable(value):
            if inspect.iscoroutine(value):
                value.close()
            raise BuildError(
                f"Capability '{deferred.name}' returned an awaitable; use build()",
                context={"name": deferred.name},
            )
        return value

    async def resolve(self, deferred: Deferred) -> Any:
        """
        Resolve a capability, awaiting its loader when needed.

        Raises:
            BuildError: If the loader is missing or fails
        """
        loader = self._loader_for(deferred)
        try:
            value = loader(*deferred.args)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            raise BuildError(
                f"Capability '{deferred.name}' failed to load: {e}",
                context={"name": deferred.name},
            ) from e
        return value


def _register_builtins(registry: CapabilityRegistry) -> None:
    builtins: dict[str, Loader] = {
        # source checks
        "string": c.string_check,
        "number": c.number_check,
        "boolean": c.boolean_check,
        "null": c.null_check,
        "undefined": c.undefined_check,
        "object": c.object_check,
        "array": c.array_check,
        "literal": c.literal_check,
        "enum": c.enum_check,
        # value checks
        "min_length": c.min_length,
        "max_length": c.max_length,
        "length": c.length,
        "min": c.min_value,
        "max": c.max_value,
        "starts_with": c.starts_with,
        "ends_with": c.ends_with,
        "matches": c.matches,
        "known_keys": c.known_keys,
        # optionality branches
        "optional": o.optional_branch,
        "exact_optional": o.exact_optional_branch,
        "undefinable": o.undefinable_branch,
        "nullable": o.nullable_branch,
        "nullish": o.nullish_branch,
        "default": o.default_branch,
    }
    for name, loader in builtins.items():
        registry.register(name, loader)


# Default registry used by every schema builder
capabilities = CapabilityRegistry()
_register_builtins(capabilities)
