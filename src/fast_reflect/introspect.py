"""Queries against Python's own type system.

Everything the cache needs to know about a raw class goes through here:
parent/interface lookup, declared-member enumeration, override and
synthesized-code tests, and annotation resolution.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import inspect
import types
import typing
from dataclasses import dataclass
from typing import Any, Annotated, ClassVar, Final, Iterator

from fast_reflect.interfaces import ExplicitImplementation, is_interface

# Implementation attributes the runtime drops into class namespaces
IGNORED_ATTRIBUTES = frozenset({
    "_is_protocol",
    "_is_runtime_protocol",
    "_abc_impl",
    "_abc_registry",
    "_abc_cache",
    "_abc_negative_cache",
    "_abc_negative_cache_version",
})

IGNORED_METHODS = frozenset({"__annotate__", "__annotate_func__"})


def is_dunder(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


def is_sunder(name: str) -> bool:
    """Return whether ``name`` has the ``_name_`` form enum reserves for itself."""
    return (
        len(name) > 2
        and name[0] == "_" and name[-1] == "_"
        and name[1] != "_" and name[-2] != "_"
    )


def base_type(cls: type) -> type | None:
    """Return the parent class of ``cls``, or None for ``object`` and interfaces.

    The parent is the first base that is not an interface. A class whose
    only bases are interfaces (or ``Generic``) derives from ``object``.
    """
    if cls is object or is_interface(cls):
        return None
    for base in cls.__bases__:
        if base is typing.Generic or is_interface(base):
            continue
        return base
    return object


def interface_types(cls: type) -> tuple[type, ...]:
    """Return every interface ``cls`` implements, directly or through a base."""
    return tuple(klass for klass in cls.__mro__[1:] if is_interface(klass))


def parent_chain(cls: type) -> Iterator[type]:
    """Yield the parent, grandparent, ... of ``cls`` up to ``object``."""
    base = base_type(cls)
    while base is not None:
        yield base
        base = base_type(base)


def is_routine_member(value: Any) -> bool:
    return isinstance(value, (staticmethod, classmethod)) or inspect.isroutine(value)


def is_property_member(value: Any) -> bool:
    return isinstance(value, (property, functools.cached_property))


def is_override(cls: type, name: str, value: Any) -> bool:
    """Return whether ``value`` overrides a definition on a parent class.

    Interfaces are not part of the parent chain, so implementing an
    interface member implicitly is not an override.
    """
    # Static methods are bound through the class that names them, so a
    # redeclaration shadows rather than overrides. Dunder hooks such as
    # __new__ are still looked up through the type.
    if isinstance(value, staticmethod) and not is_dunder(name):
        return False
    matches = is_property_member if is_property_member(value) else is_routine_member
    # Interfaces have no parent, but the runtime still fills in object's hooks
    bases = (object,) if is_interface(cls) else parent_chain(cls)
    for base in bases:
        inherited = base.__dict__.get(name, None)
        if inherited is not None and matches(inherited):
            return True
    return False


# Modules whose functions end up in user classes without being written there
SYNTHESIZING_MODULES = frozenset({"dataclasses", "typing", "collections", "abc", "enum"})


def is_synthesized(function: Any) -> bool:
    """Return whether ``function`` was generated for a class rather than written in it.

    dataclasses, namedtuple and attrs build methods from source strings,
    which leaves a pseudo filename on the code object; other hooks are
    plain functions borrowed from the generating module.
    """
    code = getattr(function, "__code__", None)
    if code is None:
        return False
    filename = code.co_filename
    if filename == "<string>" or filename.startswith("<attrs generated"):
        return True
    return getattr(function, "__module__", None) in SYNTHESIZING_MODULES


def overloads_of(function: Any) -> list[Any]:
    """Return the ``@overload`` signatures registered for ``function``."""
    if not inspect.isfunction(function):
        return []
    return typing.get_overloads(function)


def unwrap_routine(value: Any) -> Any:
    """Return the function behind staticmethod/classmethod/explicit wrappers."""
    if isinstance(value, (staticmethod, classmethod)):
        return value.__func__
    if isinstance(value, ExplicitImplementation):
        return value.function
    return value


def type_hints(obj: Any) -> dict[str, Any]:
    """Resolve annotations of ``obj``, falling back to the raw values."""
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except (NameError, TypeError, AttributeError):
        return dict(getattr(obj, "__annotations__", None) or {})


@dataclass(frozen=True)
class AnnotationInfo:
    """What an attribute annotation says about the attribute."""

    member_type: Any
    is_static: bool = False
    is_final: bool = False
    metadata: tuple[Any, ...] = ()


def describe_annotation(hint: Any) -> AnnotationInfo | None:
    """Split ``ClassVar``/``Final``/``Annotated`` wrappers off ``hint``.

    Returns None for annotations that do not declare a stored attribute
    (``InitVar`` and the ``KW_ONLY`` sentinel).
    """
    if isinstance(hint, dataclasses.InitVar) or hint in (dataclasses.InitVar, dataclasses.KW_ONLY):
        return None
    is_static = False
    is_final = False
    metadata: tuple[Any, ...] = ()
    while True:
        if hint is ClassVar:
            return AnnotationInfo(Any, True, is_final, metadata)
        if hint is Final:
            return AnnotationInfo(Any, is_static, True, metadata)
        origin = typing.get_origin(hint)
        if origin is ClassVar:
            is_static = True
        elif origin is Final:
            is_final = True
        elif origin is Annotated:
            metadata += tuple(hint.__metadata__)
            hint = hint.__origin__
            continue
        else:
            return AnnotationInfo(hint, is_static, is_final, metadata)
        hint = typing.get_args(hint)[0]


def own_annotations(cls: type) -> dict[str, AnnotationInfo]:
    """Return the annotations declared in ``cls``'s own body, resolved."""
    raw = inspect.get_annotations(cls)
    if not raw:
        return {}
    resolved = type_hints(cls)
    result: dict[str, AnnotationInfo] = {}
    for name, annotation in raw.items():
        info = describe_annotation(resolved.get(name, annotation))
        if info is not None:
            result[name] = info
    return result


def is_frozen_dataclass(cls: type) -> bool:
    params = cls.__dict__.get("__dataclass_params__")
    return params is not None and params.frozen


def declared_attribute_names(cls: type, annotations: dict[str, AnnotationInfo]) -> list[str]:
    """Return candidate field names in declaration order, annotations first."""
    names = list(annotations)
    seen = set(names)
    for name in cls.__dict__:
        if name not in seen:
            names.append(name)
            seen.add(name)
    # Enum bookkeeping (_member_map_, _value2member_map_, ...) uses sunder names
    skip_sunder = issubclass(cls, enum.Enum)
    return [
        n for n in names
        if not is_dunder(n)
        and n not in IGNORED_ATTRIBUTES
        and not (skip_sunder and is_sunder(n))
    ]


def is_data_attribute(value: Any) -> bool:
    """Return whether a class-body value is plain data rather than behavior."""
    if is_routine_member(value) or isinstance(value, (type, ExplicitImplementation)):
        return False
    return not hasattr(type(value), "__get__")


def signature_of(function: Any) -> inspect.Signature | None:
    try:
        return inspect.signature(function)
    except (TypeError, ValueError):
        return None


def bound_signature(signature: inspect.Signature | None, skip_first: bool) -> inspect.Signature | None:
    """Drop the receiver (``self``/``cls``) parameter from ``signature``."""
    if signature is None or not skip_first:
        return signature
    params = list(signature.parameters.values())
    return signature.replace(parameters=params[1:])


_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def parameter_types(signature: inspect.Signature | None, hints: dict[str, Any]) -> tuple[Any, ...]:
    """Return the annotations of the positional parameters, ``Any`` where missing.

    Invokers take a positional argument list, so keyword-only and variadic
    parameters are not part of the signature used to tell overloads apart.
    A bare type variable accepts any argument and is reported as ``Any``.
    """
    if signature is None:
        return ()
    result = []
    for p in signature.parameters.values():
        if p.kind not in _POSITIONAL:
            continue
        hint = hints.get(p.name, Any)
        result.append(Any if isinstance(hint, typing.TypeVar) else hint)
    return tuple(result)


def fixed_arity(signature: inspect.Signature | None) -> int | None:
    """Return the positional parameter count of a call that takes exactly that many.

    None when the count can vary: defaults, ``*args``, or no signature at all.
    """
    if signature is None:
        return None
    count = 0
    for p in signature.parameters.values():
        if p.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if p.kind in _POSITIONAL:
            if p.default is not inspect.Parameter.empty:
                return None
            count += 1
    return count


def is_void(return_type: Any) -> bool:
    return return_type is None or return_type is type(None)


def property_type(prop: Any) -> Any:
    getter = prop.fget if isinstance(prop, property) else prop.func
    if getter is None:
        return Any
    return type_hints(getter).get("return", Any)


def slot_member(value: Any) -> bool:
    return isinstance(value, types.MemberDescriptorType)
