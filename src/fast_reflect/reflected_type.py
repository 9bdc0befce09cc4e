"""Cached metadata for one class, plus its lookup indices."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, TypeVar

from fast_reflect.interfaces import is_interface
from fast_reflect.members import ReflectedField, ReflectedMember, ReflectedMethod
from fast_reflect.predicates import Predicate, as_matcher

M = TypeVar("M", bound=ReflectedMember)

# predicate id -> (predicate, result); the predicate is held so its id stays unique
PredicateCache = dict[int, tuple[Predicate, tuple[Any, ...]]]


def _group_by_name(members: Iterable[M]) -> dict[str, tuple[M, ...]]:
    groups: dict[str, list[M]] = {}
    for member in members:
        groups.setdefault(member.name, []).append(member)
    return {name: tuple(group) for name, group in groups.items()}


@dataclass(eq=False, repr=False)
class ReflectedType:
    """Metadata for one class.

    Created empty by TypeCache and populated once in place; treat it as
    read-only afterwards. ``fields`` and ``methods`` hold only members
    declared directly on this class.
    """

    raw_type: type
    parent: ReflectedType | None = None
    interfaces: tuple[ReflectedType, ...] = ()
    fields: tuple[ReflectedField, ...] = ()
    methods: tuple[ReflectedMethod, ...] = ()

    # Declared-name indices, built on first declared query
    _declared_field_index: dict[str, ReflectedField] | None = field(default=None, init=False)
    _declared_method_index: dict[str, tuple[ReflectedMethod, ...]] | None = field(
        default=None, init=False
    )
    # Flattened-name indices, built on first flattened query
    _flattened_field_index: dict[str, tuple[ReflectedField, ...]] | None = field(
        default=None, init=False
    )
    _flattened_method_index: dict[str, tuple[ReflectedMethod, ...]] | None = field(
        default=None, init=False
    )
    _declared_fields_by_predicate: PredicateCache = field(default_factory=dict, init=False)
    _declared_methods_by_predicate: PredicateCache = field(default_factory=dict, init=False)
    _flattened_fields_by_predicate: PredicateCache = field(default_factory=dict, init=False)
    _flattened_methods_by_predicate: PredicateCache = field(default_factory=dict, init=False)

    @property
    def name(self) -> str:
        return self.raw_type.__qualname__

    @property
    def is_interface(self) -> bool:
        return is_interface(self.raw_type)

    def lineage(self) -> Iterator[ReflectedType]:
        """Yield this type, then its parent, grandparent, ... up to the root."""
        current: ReflectedType | None = self
        while current is not None:
            yield current
            current = current.parent

    # ---- Index building ----

    def _ensure_declared(self) -> None:
        if self._declared_field_index is not None:
            return
        self._declared_method_index = _group_by_name(self.methods)
        # Assigned last: it doubles as the "initialized" flag
        self._declared_field_index = {f.name: f for f in self.fields}

    def _ensure_flattened(self) -> None:
        if self._flattened_field_index is not None:
            return
        lineage = list(self.lineage())
        self._flattened_method_index = _group_by_name(m for t in lineage for m in t.methods)
        self._flattened_field_index = _group_by_name(f for t in lineage for f in t.fields)

    def _run_predicate(
        self, cache: PredicateCache, predicate: Predicate, members: Iterable[Any]
    ) -> tuple[Any, ...]:
        entry = cache.get(id(predicate))
        if entry is not None and entry[0] is predicate:
            return entry[1]
        matches = as_matcher(predicate)
        result = tuple(m for m in members if matches(m))
        cache[id(predicate)] = (predicate, result)
        return result

    # ---- Declared members ----

    def get_declared_field_by_name(self, name: str) -> ReflectedField | None:
        """Return the field called ``name`` declared on this type, or None."""
        self._ensure_declared()
        return self._declared_field_index.get(name)

    def get_declared_methods_by_name(self, name: str) -> tuple[ReflectedMethod, ...]:
        """Return every overload called ``name`` declared on this type."""
        self._ensure_declared()
        return self._declared_method_index.get(name, ())

    def get_declared_fields_by_predicate(self, predicate: Predicate) -> tuple[ReflectedField, ...]:
        self._ensure_declared()
        return self._run_predicate(self._declared_fields_by_predicate, predicate, self.fields)

    def get_declared_methods_by_predicate(
        self, predicate: Predicate
    ) -> tuple[ReflectedMethod, ...]:
        self._ensure_declared()
        return self._run_predicate(self._declared_methods_by_predicate, predicate, self.methods)

    # ---- Flattened members (this type and every ancestor) ----

    def get_flattened_fields_by_name(self, name: str) -> tuple[ReflectedField, ...]:
        """Return fields called ``name`` on this type and its ancestors.

        Ordered from this type towards the root, so a shadowing field comes
        before the field it shadows.
        """
        self._ensure_flattened()
        return self._flattened_field_index.get(name, ())

    def get_flattened_methods_by_name(self, name: str) -> tuple[ReflectedMethod, ...]:
        self._ensure_flattened()
        return self._flattened_method_index.get(name, ())

    def get_flattened_fields_by_predicate(
        self, predicate: Predicate
    ) -> tuple[ReflectedField, ...]:
        return self._run_predicate(
            self._flattened_fields_by_predicate,
            predicate,
            (f for t in self.lineage() for f in t.fields),
        )

    def get_flattened_methods_by_predicate(
        self, predicate: Predicate
    ) -> tuple[ReflectedMethod, ...]:
        return self._run_predicate(
            self._flattened_methods_by_predicate,
            predicate,
            (m for t in self.lineage() for m in t.methods),
        )

    # ---- Interfaces ----

    def get_interface(self, raw_type: type) -> ReflectedType | None:
        """Return the implemented interface whose class is ``raw_type``, or None."""
        for iface in self.interfaces:
            if iface.raw_type is raw_type:
                return iface
        return None

    def implements(self, raw_type: type) -> bool:
        return self.get_interface(raw_type) is not None

    def __repr__(self) -> str:
        return f"ReflectedType({self.name})"
