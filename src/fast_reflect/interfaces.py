"""Interface markers and explicit interface implementations.

Python has no interface keyword, so a class counts as an interface when it
is a ``typing.Protocol`` or is decorated with :func:`interface`. A method
decorated with :func:`explicit` implements an interface member without
becoming part of the class's public attribute namespace: it is stored on
the class under ``"Interface.method"`` and is only reached through
:func:`dispatch` (which is what the interface view of a ReflectedType uses).
"""

from __future__ import annotations

import types
import typing
from typing import Any, Callable

_INTERFACE_FLAG = "__fast_reflect_interface__"

# Bases that show up in a Protocol's MRO but are not interfaces themselves
_NOT_INTERFACES: tuple[type, ...] = (typing.Protocol, typing.Generic, object)


def interface(cls: type) -> type:
    """Class decorator marking ``cls`` as an interface."""
    if not isinstance(cls, type):
        raise TypeError(f"@interface expects a class, got {cls!r}")
    setattr(cls, _INTERFACE_FLAG, True)
    return cls


def is_interface(cls: Any) -> bool:
    """Return whether ``cls`` itself (not a base) is an interface."""
    if not isinstance(cls, type) or cls in _NOT_INTERFACES:
        return False
    # Both markers live in the class's own namespace, subclasses don't inherit them
    if cls.__dict__.get(_INTERFACE_FLAG, False):
        return True
    return bool(cls.__dict__.get("_is_protocol", False))


def explicit_member_name(iface: type, name: str) -> str:
    """Return the qualified name an explicit implementation is stored under."""
    return f"{iface.__qualname__}.{name}"


class ExplicitImplementation:
    """A method that implements an interface member explicitly.

    Created by :func:`explicit`. When the owning class is created the
    implementation moves itself from ``name`` to the qualified name.
    """

    def __init__(self, iface: type, function: Callable[..., Any]) -> None:
        if not is_interface(iface):
            raise TypeError(f"'{getattr(iface, '__qualname__', iface)}' is not an interface")
        self.interface = iface
        self.function = function
        self.member_name = function.__name__

    @property
    def qualified_name(self) -> str:
        return explicit_member_name(self.interface, self.member_name)

    def __set_name__(self, owner: type, name: str) -> None:
        if self.interface not in owner.__mro__:
            raise TypeError(
                f"'{owner.__qualname__}' does not implement '{self.interface.__qualname__}'"
            )
        self.member_name = name
        delattr(owner, name)
        setattr(owner, self.qualified_name, self)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return types.MethodType(self.function, instance)

    def __repr__(self) -> str:
        return f"<explicit {self.qualified_name}>"


def explicit(iface: type) -> Callable[[Callable[..., Any]], ExplicitImplementation]:
    """Decorator: implement ``iface``'s member of the same name explicitly.

    Raises:
        TypeError: If ``iface`` is not an interface.
    """
    if not is_interface(iface):
        raise TypeError(f"'{getattr(iface, '__qualname__', iface)}' is not an interface")

    def decorate(function: Callable[..., Any]) -> ExplicitImplementation:
        return ExplicitImplementation(iface, function)

    return decorate


def explicit_member(owner: type, iface: type, name: str) -> Callable[..., Any]:
    """Return the unbound function ``owner`` uses to implement ``iface.name``.

    Raises:
        AttributeError: If neither ``owner`` nor its bases implement it explicitly.
    """
    qualified = explicit_member_name(iface, name)
    for klass in owner.__mro__:
        impl = klass.__dict__.get(qualified)
        if isinstance(impl, ExplicitImplementation):
            return impl.function
    raise AttributeError(f"'{owner.__qualname__}' has no explicit implementation of '{qualified}'")


def dispatch(instance: Any, iface: type, name: str) -> Callable[..., Any]:
    """Find the implementation of ``iface.name`` for ``instance``.

    Walks the instance's MRO; the first class holding either an explicit
    implementation or an ordinary attribute called ``name`` wins.
    """
    qualified = explicit_member_name(iface, name)
    cls = type(instance)
    for klass in cls.__mro__:
        attrs = klass.__dict__
        if qualified in attrs:
            return attrs[qualified].__get__(instance, cls)
        if name in attrs:
            return getattr(instance, name)
    raise AttributeError(f"'{cls.__qualname__}' has no implementation of '{qualified}'")
