"""Configuration for type caches and accelerator registries."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReflectConfig:
    """Settings shared by a TypeCache and its AcceleratorRegistry."""

    # Attributes of a provider source whose names start with this are
    # collected by AcceleratorRegistry.register_source.
    provider_prefix: str = "provider_"
    # Generic invokers bind the argument list against the method signature
    # before calling and raise TypeError on a mismatch
    check_arguments: bool = True
