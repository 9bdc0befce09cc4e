"""Member predicates for the predicate-based queries on ReflectedType."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Union

from fast_reflect.members import ReflectedField, ReflectedMember, ReflectedMethod


class MemberPredicate(ABC):
    """Decides whether a member belongs in a query result.

    Query results are cached per predicate *instance*, so reuse one
    instance to benefit from the cache.
    """

    @abstractmethod
    def is_match(self, member: ReflectedMember) -> bool:
        ...


class FieldPredicate(MemberPredicate):
    """Predicate that only ever matches fields."""

    def is_match(self, member: ReflectedMember) -> bool:
        if isinstance(member, ReflectedField):
            return self.match_field(member)
        return False

    @abstractmethod
    def match_field(self, field: ReflectedField) -> bool:
        ...


class MethodPredicate(MemberPredicate):
    """Predicate that only ever matches methods."""

    def is_match(self, member: ReflectedMember) -> bool:
        if isinstance(member, ReflectedMethod):
            return self.match_method(member)
        return False

    @abstractmethod
    def match_method(self, method: ReflectedMethod) -> bool:
        ...


Predicate = Union[MemberPredicate, Callable[[Any], bool]]


def as_matcher(predicate: Predicate) -> Callable[[Any], bool]:
    """Return a plain callable for either a MemberPredicate or a function."""
    if isinstance(predicate, MemberPredicate):
        return predicate.is_match
    if callable(predicate):
        return predicate
    raise TypeError(f"Expected a MemberPredicate or callable, got {type(predicate).__name__}")
