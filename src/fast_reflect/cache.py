"""Resolves classes into memoized ReflectedType descriptors."""

from __future__ import annotations

import logging
import threading
from typing import Any

from fast_reflect import introspect
from fast_reflect.accelerators import AcceleratorRegistry
from fast_reflect.config import ReflectConfig
from fast_reflect.interfaces import ExplicitImplementation
from fast_reflect.members import ReflectedField, ReflectedMethod
from fast_reflect.reflected_type import ReflectedType

logger = logging.getLogger(__name__)


class TypeCache:
    """Builds and caches one ReflectedType per class.

    Each cache is self-contained: two caches never share descriptors, and
    a cache only sees the accelerators of the registry it was given.
    Register accelerators before the first ``get``; descriptors that are
    already built keep the accessors they were built with.
    """

    def __init__(
        self,
        accelerators: AcceleratorRegistry | None = None,
        config: ReflectConfig | None = None,
    ) -> None:
        if config is None:
            config = accelerators.config if accelerators is not None else ReflectConfig()
        self.config = config
        self.accelerators = accelerators if accelerators is not None else AcceleratorRegistry(config)
        self._types: dict[type, ReflectedType] = {}
        # Reentrant: resolving a class recursively resolves its bases on the
        # same thread while the lock is held.
        self._lock = threading.RLock()

    @classmethod
    def from_sources(cls, *sources: Any, config: ReflectConfig | None = None) -> TypeCache:
        """Create a cache whose registry holds the providers found in ``sources``."""
        registry = AcceleratorRegistry(config)
        for source in sources:
            registry.register_source(source)
        return cls(registry, config)

    def get(self, raw_type: type) -> ReflectedType:
        """Return the ReflectedType for ``raw_type``, building it on first use.

        Raises:
            TypeError: If ``raw_type`` is not a class.
        """
        if not isinstance(raw_type, type):
            raise TypeError(f"Expected a class, got {raw_type!r}")

        with self._lock:
            result = self._types.get(raw_type)
            if result is None:
                result = ReflectedType(raw_type)
                # Insert before populating so any cyclic lookup of raw_type
                # resolves to this same (still empty) instance.
                self._types[raw_type] = result
                try:
                    self._populate(result)
                except BaseException:
                    del self._types[raw_type]
                    raise
        return result

    def __contains__(self, raw_type: object) -> bool:
        return raw_type in self._types

    def __len__(self) -> int:
        return len(self._types)

    def _populate(self, result: ReflectedType) -> None:
        raw_type = result.raw_type
        base = introspect.base_type(raw_type)
        if base is not None:
            result.parent = self.get(base)
        result.interfaces = tuple(self.get(i) for i in introspect.interface_types(raw_type))
        result.fields = tuple(self._declared_fields(raw_type))
        result.methods = tuple(self._declared_methods(raw_type))
        logger.debug(
            "Resolved %s: parent=%s, %d interfaces, %d fields, %d methods",
            raw_type.__qualname__,
            base.__qualname__ if base is not None else None,
            len(result.interfaces),
            len(result.fields),
            len(result.methods),
        )

    def _declared_fields(self, raw_type: type) -> list[ReflectedField]:
        annotations = introspect.own_annotations(raw_type)
        fields: list[ReflectedField] = []

        for name in introspect.declared_attribute_names(raw_type, annotations):
            value = raw_type.__dict__.get(name)
            accelerator = self.accelerators.lookup_field(raw_type, name)

            if introspect.is_property_member(value):
                # An overriding property is not local; it shows up on the
                # ancestor that introduced it.
                if introspect.is_override(raw_type, name, value):
                    continue
                fields.append(ReflectedField.for_property(raw_type, name, value, accelerator))
            elif introspect.slot_member(value):
                fields.append(
                    ReflectedField.for_slot(raw_type, name, value, annotations.get(name), accelerator)
                )
            elif name in annotations:
                fields.append(
                    ReflectedField.for_attribute(raw_type, name, annotations[name], accelerator)
                )
            elif introspect.is_data_attribute(value):
                # Unannotated class-level data is a static field
                info = introspect.AnnotationInfo(type(value), is_static=True)
                fields.append(ReflectedField.for_attribute(raw_type, name, info, accelerator))

        return fields

    def _declared_methods(self, raw_type: type) -> list[ReflectedMethod]:
        methods: list[ReflectedMethod] = []

        for name, value in raw_type.__dict__.items():
            if name in introspect.IGNORED_METHODS:
                continue
            explicit = isinstance(value, ExplicitImplementation)
            if not explicit and not introspect.is_routine_member(value):
                continue
            # Overrides are not local; they appear on the ancestor type.
            if not explicit and introspect.is_override(raw_type, name, value):
                continue
            function = introspect.unwrap_routine(value)
            if introspect.is_synthesized(function):
                continue

            def select(parameter_types: tuple[Any, ...], name: str = name) -> Any:
                return self.accelerators.select_method(raw_type, name, parameter_types)

            # One descriptor per @overload signature, all sharing the implementation
            for overload in introspect.overloads_of(function) or [None]:
                methods.append(
                    ReflectedMethod.for_routine(raw_type, name, value, select, self.config, overload)
                )

        return methods
