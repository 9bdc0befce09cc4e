"""fast_reflect - cached class metadata with pluggable fast accessors."""

from fast_reflect.accelerators import (
    AcceleratorRegistry,
    FieldAccelerator,
    MethodAccelerator,
    TypeProvider,
)
from fast_reflect.cache import TypeCache
from fast_reflect.config import ReflectConfig
from fast_reflect.interfaces import explicit, explicit_member, interface, is_interface
from fast_reflect.members import ReflectedField, ReflectedMember, ReflectedMethod
from fast_reflect.predicates import FieldPredicate, MemberPredicate, MethodPredicate
from fast_reflect.reflected_type import ReflectedType

__all__ = [
    # Main API
    "TypeCache",
    "ReflectConfig",
    "ReflectedType",
    # Members
    "ReflectedMember",
    "ReflectedField",
    "ReflectedMethod",
    # Queries
    "MemberPredicate",
    "FieldPredicate",
    "MethodPredicate",
    # Acceleration
    "AcceleratorRegistry",
    "FieldAccelerator",
    "MethodAccelerator",
    "TypeProvider",
    # Interfaces
    "interface",
    "explicit",
    "explicit_member",
    "is_interface",
]

__version__ = "0.1.0"
