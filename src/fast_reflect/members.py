"""Field and method descriptors."""

from __future__ import annotations

import functools
import operator
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from fast_reflect import introspect
from fast_reflect.accelerators import (
    FieldAccelerator,
    FieldReader,
    FieldWriter,
    MethodAccelerator,
    MethodInvoker,
)
from fast_reflect.config import ReflectConfig
from fast_reflect.interfaces import ExplicitImplementation, dispatch, is_interface


@dataclass(frozen=True, eq=False)
class ReflectedMember:
    """Base class for members declared on a reflected type."""

    name: str
    declaring_type: type


@dataclass(frozen=True, eq=False, repr=False)
class ReflectedField(ReflectedMember):
    """A field or property on a class.

    Fields cover annotated attributes, ``__slots__`` members and plain
    class-level data; properties cover ``property`` and ``cached_property``.
    """

    raw_member: Any
    member_type: Any
    attributes: tuple[Any, ...]
    is_field: bool
    is_property: bool
    is_auto_property: bool
    is_static: bool
    can_read: bool
    can_write: bool
    raw_reader: FieldReader | None
    raw_writer: FieldWriter | None
    is_accelerated: bool = False

    def read(self, instance: Any) -> Any:
        """Return the value of this field on ``instance``."""
        if not self.can_read:
            raise AttributeError(f"Field '{self._label}' has no getter")
        return self.raw_reader(instance)

    def write(self, instance: Any, value: Any) -> None:
        """Store ``value`` into this field on ``instance``.

        Raises:
            AttributeError: If the field is read-only.
        """
        if not self.can_write:
            raise AttributeError(f"Field '{self._label}' is read-only")
        self.raw_writer(instance, value)

    @property
    def _label(self) -> str:
        return f"{self.declaring_type.__qualname__}.{self.name}"

    def __repr__(self) -> str:
        kind = "property" if self.is_property else "field"
        return f"<ReflectedField {kind} {self._label}>"

    # ---- Construction ----

    @classmethod
    def for_property(
        cls, owner: type, name: str, prop: Any, accelerator: FieldAccelerator | None
    ) -> ReflectedField:
        # Read and write through the attribute, so a subclass's overriding
        # property wins
        if isinstance(prop, functools.cached_property):
            getter: Any = operator.attrgetter(name)
            setter: Any = _attribute_writer(name)
            is_auto = False
        else:
            getter = operator.attrgetter(name) if prop.fget is not None else None
            setter = _attribute_writer(name) if prop.fset is not None else None
            is_auto = (
                prop.fget is not None
                and prop.fset is not None
                and introspect.is_synthesized(prop.fget)
            )
        return cls._bind(
            owner,
            name,
            prop,
            introspect.AnnotationInfo(introspect.property_type(prop)),
            accelerator,
            is_property=True,
            is_auto_property=is_auto,
            reader=getter,
            writer=setter,
        )

    @classmethod
    def for_slot(
        cls,
        owner: type,
        name: str,
        member: Any,
        annotation: introspect.AnnotationInfo | None,
        accelerator: FieldAccelerator | None,
    ) -> ReflectedField:
        # The slot descriptor of the declaring class, so a shadowed base slot
        # still reads its own storage.
        writer = None if introspect.is_frozen_dataclass(owner) else member.__set__
        return cls._bind(
            owner,
            name,
            member,
            annotation or introspect.AnnotationInfo(Any),
            accelerator,
            reader=member.__get__,
            writer=writer,
        )

    @classmethod
    def for_attribute(
        cls,
        owner: type,
        name: str,
        annotation: introspect.AnnotationInfo,
        accelerator: FieldAccelerator | None,
    ) -> ReflectedField:
        writable = not annotation.is_final and not (
            not annotation.is_static and introspect.is_frozen_dataclass(owner)
        )
        if annotation.is_static:
            reader: Any = lambda instance: getattr(owner, name)
            writer: Any = lambda instance, value: setattr(owner, name, value)
        else:
            reader = operator.attrgetter(name)
            writer = _attribute_writer(name)
        return cls._bind(
            owner,
            name,
            owner.__dict__.get(name),
            annotation,
            accelerator,
            reader=reader,
            writer=writer if writable else None,
        )

    @classmethod
    def _bind(
        cls,
        owner: type,
        name: str,
        raw_member: Any,
        annotation: introspect.AnnotationInfo,
        accelerator: FieldAccelerator | None,
        *,
        reader: Any,
        writer: Any,
        is_property: bool = False,
        is_auto_property: bool = False,
    ) -> ReflectedField:
        accelerated = False
        if accelerator is not None:
            if accelerator.read is not None and reader is not None:
                reader = accelerator.read
                accelerated = True
            if accelerator.write is not None and writer is not None:
                writer = accelerator.write
                accelerated = True
        return cls(
            name=name,
            declaring_type=owner,
            raw_member=raw_member,
            member_type=annotation.member_type,
            attributes=annotation.metadata,
            is_field=not is_property,
            is_property=is_property,
            is_auto_property=is_auto_property,
            is_static=annotation.is_static,
            can_read=reader is not None,
            can_write=writer is not None,
            raw_reader=reader,
            raw_writer=writer,
            is_accelerated=accelerated,
        )


def _attribute_writer(name: str) -> FieldWriter:
    def write(instance: Any, value: Any) -> None:
        setattr(instance, name, value)

    return write


@dataclass(frozen=True, eq=False, repr=False)
class ReflectedMethod(ReflectedMember):
    """A method on a class.

    For explicit interface implementations ``name`` is the qualified
    ``"Interface.method"`` key and ``explicit_interface`` is the interface.
    """

    raw_method: Any
    parameter_types: tuple[Any, ...]
    return_type: Any
    is_static: bool
    is_class_method: bool
    explicit_interface: type | None
    raw_invoker: MethodInvoker
    is_accelerated: bool = False

    @property
    def is_void(self) -> bool:
        return introspect.is_void(self.return_type)

    @property
    def member_name(self) -> str:
        """The plain method name, without any interface qualification."""
        return self.name.rpartition(".")[2]

    def invoke(self, instance: Any, args: Sequence[Any] | None = None) -> Any:
        """Call the method on ``instance`` with a positional argument list."""
        return self.raw_invoker(instance, () if args is None else args)

    def __repr__(self) -> str:
        return f"<ReflectedMethod {self.declaring_type.__qualname__}.{self.name}>"

    @classmethod
    def for_routine(
        cls,
        owner: type,
        name: str,
        value: Any,
        accelerators: Callable[[tuple[Any, ...]], MethodAccelerator | None],
        config: ReflectConfig,
        overload: Any = None,
    ) -> ReflectedMethod:
        """Describe the routine ``value`` found in ``owner.__dict__[name]``.

        ``accelerators`` picks the accelerator for a parameter signature.
        When ``overload`` is given, the signature comes from that
        ``@overload`` stub while calls still go to the implementation.
        """
        function = introspect.unwrap_routine(value)
        is_static = isinstance(value, staticmethod)
        is_class_method = isinstance(value, classmethod)
        explicit_interface = value.interface if isinstance(value, ExplicitImplementation) else None

        signature_source = overload if overload is not None else function
        signature = introspect.bound_signature(introspect.signature_of(signature_source), not is_static)
        hints = introspect.type_hints(signature_source)
        parameter_types = introspect.parameter_types(signature, hints)

        accelerator = accelerators(parameter_types)
        if accelerator is not None:
            invoker = accelerator.invoke
        else:
            invoker = _generic_invoker(owner, name, function, is_static, is_class_method)
            if config.check_arguments and signature is not None:
                invoker = _checked_invoker(invoker, signature, f"{owner.__qualname__}.{name}")

        return cls(
            name=name,
            declaring_type=owner,
            raw_method=function,
            parameter_types=parameter_types,
            return_type=hints.get("return", Any),
            is_static=is_static,
            is_class_method=is_class_method,
            explicit_interface=explicit_interface,
            raw_invoker=invoker,
            is_accelerated=accelerator is not None,
        )


def _generic_invoker(
    owner: type, name: str, function: Any, is_static: bool, is_class_method: bool
) -> MethodInvoker:
    """Build the reflection-style invoker used when no accelerator matches."""
    if is_static:
        def invoke(instance: Any, args: Sequence[Any]) -> Any:
            return function(*args)
    elif is_class_method:
        def invoke(instance: Any, args: Sequence[Any]) -> Any:
            target = owner if instance is None else instance
            return getattr(target, name)(*args)
    elif is_interface(owner):
        # Interface members run whichever implementation the instance has,
        # explicit or not.
        def invoke(instance: Any, args: Sequence[Any]) -> Any:
            return dispatch(instance, owner, name)(*args)
    else:
        def invoke(instance: Any, args: Sequence[Any]) -> Any:
            return getattr(instance, name)(*args)
    return invoke


def _checked_invoker(invoker: MethodInvoker, signature: Any, label: str) -> MethodInvoker:
    def invoke(instance: Any, args: Sequence[Any]) -> Any:
        try:
            signature.bind(*args)
        except TypeError as e:
            raise TypeError(f"Cannot invoke {label}: {e}") from e
        return invoker(instance, args)

    return invoke
