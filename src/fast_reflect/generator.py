"""Generate accelerator provider modules from reflected types.

The generated module defines one ``TypeProvider`` whose accessors touch the
owning class directly, so a TypeCache built with it skips the generic
reflection paths for every declared member.
"""

from __future__ import annotations

import argparse
import importlib
import sys
import types
import typing
from pathlib import Path
from typing import Annotated, Any

from fast_reflect import introspect
from fast_reflect.cache import TypeCache
from fast_reflect.members import ReflectedField, ReflectedMethod
from fast_reflect.reflected_type import ReflectedType

HEADER = [
    "# ***************************************************************************",
    "# *** WARNING: This file was automatically generated by fast_reflect.     ***",
    "# ***          Manual edits may get overwritten.                          ***",
    "# ***************************************************************************",
]


def provider_name_for(raw_type: type) -> str:
    """Return the default provider attribute name for ``raw_type``."""
    safe = f"{raw_type.__module__}.{raw_type.__qualname__}".replace(".", "_")
    return f"provider_{safe}"


class _Writer:
    """Collects source lines and the modules they reference."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.modules: set[str] = set()

    def w(self, indent: int, text: str = "") -> None:
        self.lines.append(("    " * indent + text) if text else "")

    def class_expr(self, cls: type) -> str:
        if "<locals>" in cls.__qualname__:
            raise ValueError(f"Cannot reference local class '{cls.__qualname__}' from generated code")
        if cls.__module__ == "builtins":
            return cls.__qualname__
        self.modules.add(cls.__module__)
        return f"{cls.__module__}.{cls.__qualname__}"

    def type_expr(self, tp: Any) -> str:
        """Return a Python expression that evaluates to the annotation ``tp``.

        Raises:
            ValueError: If ``tp`` cannot be written as an importable expression.
        """
        if tp is None or tp is type(None):
            return "None"
        if tp is Any:
            self.modules.add("typing")
            return "typing.Any"
        if tp is Ellipsis:
            return "..."
        if isinstance(tp, str):
            # Unresolved forward reference; kept as the string it was written as
            return repr(tp)
        if isinstance(tp, list):
            # Callable parameter lists
            return f"[{', '.join(self.type_expr(a) for a in tp)}]"
        if isinstance(tp, typing.TypeVar):
            return self._module_attribute(tp, tp.__name__)

        origin = typing.get_origin(tp)
        args = typing.get_args(tp)
        if origin is types.UnionType:
            return " | ".join(self.type_expr(a) for a in args)
        if origin is typing.Union:
            self.modules.add("typing")
            return f"typing.Union[{', '.join(self.type_expr(a) for a in args)}]"
        if origin is typing.Literal:
            self.modules.add("typing")
            return f"typing.Literal[{', '.join(self.literal_expr(a) for a in args)}]"
        if origin is Annotated:
            self.modules.add("typing")
            metadata = ", ".join(self.literal_expr(m) for m in tp.__metadata__)
            return f"typing.Annotated[{self.type_expr(args[0])}, {metadata}]"
        if origin is not None and args and isinstance(origin, type):
            inner = ", ".join(self.type_expr(a) for a in args)
            return f"{self.class_expr(origin)}[{inner}]"
        if isinstance(tp, type):
            return self.class_expr(tp)
        raise ValueError(f"Cannot write annotation {tp!r} in generated code")

    def literal_expr(self, value: Any) -> str:
        if value is None or isinstance(value, (bool, int, float, str, bytes)):
            return repr(value)
        raise ValueError(f"Cannot write annotation value {value!r} in generated code")

    def _module_attribute(self, obj: Any, name: str) -> str:
        """Reference ``obj`` as ``module.name``; it must be bound there."""
        module_name = getattr(obj, "__module__", None)
        module = sys.modules.get(module_name) if module_name else None
        if module is None or getattr(module, name, None) is not obj:
            raise ValueError(f"Cannot reference {obj!r}: not a module-level name")
        self.modules.add(module_name)
        return f"{module_name}.{name}"


def _field_entry(w: _Writer, owner_expr: str, field: ReflectedField) -> None:
    target = owner_expr if field.is_static else "o"
    w.w(2, "FieldAccelerator(")
    w.w(3, f"{field.name!r},")
    if field.can_read:
        w.w(3, f"read=lambda o: {target}.{field.name},")
    if field.can_write:
        w.w(3, f"write=lambda o, v: setattr({target}, {field.name!r}, v),")
    w.w(2, "),")


def _invoker_function(
    w: _Writer, owner_expr: str, method: ReflectedMethod, function_name: str
) -> None:
    signature = introspect.bound_signature(
        introspect.signature_of(method.raw_method), not method.is_static
    )
    arity = introspect.fixed_arity(signature)
    if arity is None:
        # Defaults or *args: hand the list over and let the call bind it
        unpacked = "*args"
    else:
        unpacked = ", ".join(f"args[{i}]" for i in range(arity))

    if method.explicit_interface is not None:
        # "Interface.method": split on the last separator for the member name
        member = method.name.rpartition(".")[2]
        target = f"_explicit_{function_name}"
        w.w(0, f"{target} = explicit_member(")
        w.w(1, f"{owner_expr}, {w.class_expr(method.explicit_interface)}, {member!r}")
        w.w(0, ")")
        w.w(0)
        call = f"{target}({', '.join(['o'] + ([unpacked] if unpacked else []))})"
    elif method.is_static:
        call = f"{owner_expr}.{method.name}({unpacked})"
    elif method.is_class_method:
        call = f"({owner_expr} if o is None else o).{method.name}({unpacked})"
    else:
        call = f"o.{method.name}({unpacked})"

    w.w(0)
    w.w(0, f"def {function_name}(o, args):")
    if arity is not None:
        label = f"{method.declaring_type.__qualname__}.{method.name}"
        w.w(1, f"if len(args) != {arity}:")
        w.w(2, f'raise TypeError(f"{label}() takes {arity} arguments but {{len(args)}} were given")')
    if method.is_void:
        w.w(1, call)
        w.w(1, "return None")
    else:
        w.w(1, f"return {call}")
    w.w(0)


def generate_provider_source(reflected_type: ReflectedType, provider_name: str | None = None) -> str:
    """Return the source of a module providing accelerators for ``reflected_type``.

    Only members declared on the type itself are covered; inherited members
    belong to the ancestor's provider.

    Raises:
        ValueError: If the type (or a type its members mention) is a local class.
    """
    raw_type = reflected_type.raw_type
    provider_name = provider_name or provider_name_for(raw_type)

    body = _Writer()
    owner_expr = body.class_expr(raw_type)

    invokers: list[tuple[ReflectedMethod, str]] = []
    for index, method in enumerate(reflected_type.methods):
        function_name = f"_invoke_{index}_{method.member_name}"
        _invoker_function(body, owner_expr, method, function_name)
        invokers.append((method, function_name))

    body.w(0)
    body.w(0, f"{provider_name} = TypeProvider(")
    body.w(1, f"provider_for={owner_expr},")
    body.w(1, "fields=[")
    for field in reflected_type.fields:
        _field_entry(body, owner_expr, field)
    body.w(1, "],")
    body.w(1, "methods=[")
    for method, function_name in invokers:
        parameters = "".join(f"{body.type_expr(p)}, " for p in method.parameter_types).rstrip(" ")
        body.w(2, f"MethodAccelerator({method.name!r}, ({parameters}), {function_name}),")
    body.w(1, "],")
    body.w(0, ")")

    out = _Writer()
    for line in HEADER:
        out.w(0, line)
    out.w(0)
    for module in sorted(body.modules):
        out.w(0, f"import {module}")
    out.w(0)
    out.w(0, "from fast_reflect.accelerators import FieldAccelerator, MethodAccelerator, TypeProvider")
    if any(m.explicit_interface is not None for m in reflected_type.methods):
        out.w(0, "from fast_reflect.interfaces import explicit_member")
    out.w(0)
    lines = out.lines + body.lines
    # Collapse runs of blank lines left by the per-method blocks
    collapsed: list[str] = []
    for line in lines:
        if line == "" and len(collapsed) >= 2 and collapsed[-1] == "" and collapsed[-2] == "":
            continue
        collapsed.append(line)
    return "\n".join(collapsed).rstrip("\n") + "\n"


def load_target(target: str) -> type:
    """Import ``"package.module:Qual.Name"`` and return the class.

    Raises:
        ValueError: If the target is malformed or does not name a class.
        ImportError: If the module cannot be imported.
    """
    module_name, sep, qualname = target.partition(":")
    if not sep or not module_name or not qualname:
        raise ValueError(f"Expected 'module:QualName', got '{target}'")
    obj: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise ValueError(f"'{module_name}' has no attribute '{qualname}'") from None
    if not isinstance(obj, type):
        raise ValueError(f"'{target}' is not a class")
    return obj


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate a fast_reflect accelerator provider module for a class"
    )
    parser.add_argument(
        "target",
        help="Class to generate accelerators for, as module:QualName",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="File to write the provider module to (default: stdout)",
    )
    parser.add_argument(
        "-n", "--name",
        type=str,
        default=None,
        help="Attribute name for the generated provider",
    )

    args = parser.parse_args(argv)

    try:
        raw_type = load_target(args.target)
        source = generate_provider_source(TypeCache().get(raw_type), args.name)
    except (ImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output is None:
        sys.stdout.write(source)
    else:
        args.output.write_text(source)
        print(f"Wrote {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
