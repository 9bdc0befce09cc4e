"""Accelerator entries and the registry that indexes them.

An accelerator is a type-specific read/write/invoke function supplied from
outside (usually generated by ``fast_reflect.generator``) that replaces the
generic accessor the cache would otherwise bind for a member.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from fast_reflect.config import ReflectConfig

logger = logging.getLogger(__name__)

FieldReader = Callable[[Any], Any]
FieldWriter = Callable[[Any, Any], None]
MethodInvoker = Callable[[Any, Sequence[Any]], Any]


@dataclass(frozen=True)
class FieldAccelerator:
    """Fast accessors for one field or property.

    Either function may be None, in which case the generic accessor is
    used for that direction.
    """

    name: str
    read: FieldReader | None = None
    write: FieldWriter | None = None


@dataclass(frozen=True)
class MethodAccelerator:
    """Fast invoker for one method overload."""

    name: str
    parameters: tuple[Any, ...]
    invoke: MethodInvoker

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))


@dataclass(frozen=True)
class TypeProvider:
    """A bundle of accelerators for a single owner type."""

    provider_for: type
    fields: tuple[FieldAccelerator, ...] = ()
    methods: tuple[MethodAccelerator, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "methods", tuple(self.methods))


def _check_provider(provider: Any, label: str) -> None:
    """Raise TypeError if ``provider`` doesn't have the accelerator record shape."""
    if not isinstance(provider, TypeProvider):
        raise TypeError(f"Expected {label} to be a TypeProvider, got {type(provider).__name__}")
    if not isinstance(provider.provider_for, type):
        raise TypeError(f"{label}.provider_for must be a class, got {provider.provider_for!r}")
    for entry in provider.fields:
        if not isinstance(entry, FieldAccelerator):
            raise TypeError(f"{label} has a field entry that is not a FieldAccelerator: {entry!r}")
        for fn in (entry.read, entry.write):
            if fn is not None and not callable(fn):
                raise TypeError(f"{label} field '{entry.name}' has a non-callable accessor")
    for entry in provider.methods:
        if not isinstance(entry, MethodAccelerator):
            raise TypeError(f"{label} has a method entry that is not a MethodAccelerator: {entry!r}")
        if not callable(entry.invoke):
            raise TypeError(f"{label} method '{entry.name}' has a non-callable invoker")


class AcceleratorRegistry:
    """Accelerators indexed by owner type and member name."""

    def __init__(self, config: ReflectConfig | None = None) -> None:
        self.config = config if config is not None else ReflectConfig()
        # owner type -> field name -> accelerator
        self._fields: dict[type, dict[str, FieldAccelerator]] = {}
        # owner type -> method name -> overloads in registration order
        self._methods: dict[type, dict[str, tuple[MethodAccelerator, ...]]] = {}

    def register(self, providers: Iterable[TypeProvider]) -> None:
        """Register a batch of provider bundles.

        The batch is validated as a whole before anything is stored, so a
        failing call leaves the registry untouched.

        Raises:
            TypeError: If a bundle or one of its entries has the wrong shape.
            ValueError: If two bundles claim the same owner type, or a bundle
                lists one field name twice.
        """
        staged_fields: dict[type, dict[str, FieldAccelerator]] = {}
        staged_methods: dict[type, dict[str, tuple[MethodAccelerator, ...]]] = {}

        for index, provider in enumerate(providers):
            _check_provider(provider, f"provider #{index}")
            owner = provider.provider_for
            if owner in self._fields or owner in staged_fields:
                raise ValueError(f"Multiple accelerator providers for '{owner.__qualname__}'")

            fields: dict[str, FieldAccelerator] = {}
            for entry in provider.fields:
                if entry.name in fields:
                    raise ValueError(
                        f"Provider for '{owner.__qualname__}' lists field '{entry.name}' twice"
                    )
                fields[entry.name] = entry

            methods: dict[str, list[MethodAccelerator]] = {}
            for entry in provider.methods:
                methods.setdefault(entry.name, []).append(entry)

            staged_fields[owner] = fields
            staged_methods[owner] = {name: tuple(group) for name, group in methods.items()}

        self._fields.update(staged_fields)
        self._methods.update(staged_methods)
        for owner in staged_fields:
            logger.debug(
                "Registered accelerators for %s: %d fields, %d methods",
                owner.__qualname__,
                len(staged_fields[owner]),
                sum(len(group) for group in staged_methods[owner].values()),
            )

    def register_source(self, source: Any) -> None:
        """Register every provider bundle exposed by ``source``.

        ``source`` is a module, class, or mapping. Attributes whose names
        start with the configured provider prefix must be TypeProviders.
        """
        prefix = self.config.provider_prefix
        namespace = source if isinstance(source, Mapping) else vars(source)
        source_name = getattr(source, "__name__", type(source).__name__)

        providers: list[TypeProvider] = []
        for name, value in namespace.items():
            if not name.startswith(prefix):
                continue
            if not isinstance(value, TypeProvider):
                raise TypeError(f"Expected {source_name}.{name} to be a TypeProvider")
            providers.append(value)
        self.register(providers)

    def lookup_field(self, owner: type, name: str) -> FieldAccelerator | None:
        """Return the accelerator for ``owner.name``, or None."""
        return self._fields.get(owner, {}).get(name)

    def lookup_method_candidates(self, owner: type, name: str) -> tuple[MethodAccelerator, ...]:
        """Return every accelerator registered for ``owner.name``, in order."""
        return self._methods.get(owner, {}).get(name, ())

    def select_method(
        self, owner: type, name: str, parameter_types: Sequence[Any]
    ) -> MethodAccelerator | None:
        """Pick the accelerator for one overload of ``owner.name``.

        A lone candidate is used without checking its signature. Otherwise
        the first candidate whose parameter types equal ``parameter_types``
        exactly wins; None means no match.
        """
        candidates = self.lookup_method_candidates(owner, name)
        if len(candidates) == 1:
            return candidates[0]
        wanted = tuple(parameter_types)
        for candidate in candidates:
            if candidate.parameters == wanted:
                return candidate
        return None

    def provider_types(self) -> list[type]:
        """Return every owner type with registered accelerators."""
        return list(self._fields)

    def __contains__(self, owner: type) -> bool:
        return owner in self._fields
