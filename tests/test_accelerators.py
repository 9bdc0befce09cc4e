"""Tests for accelerator registration and accelerated member access."""

import sys
import time
import types

import pytest

from fast_reflect import (
    AcceleratorRegistry,
    FieldAccelerator,
    MethodAccelerator,
    ReflectConfig,
    TypeCache,
    TypeProvider,
)
import sample_types
from sample_types import (
    AccelerationType,
    CallCounts,
    Calculator,
    MyBaseType,
    MyDerivedType,
    provider_acceleration_type,
)


@pytest.fixture(autouse=True)
def reset_counts():
    CallCounts.reset()
    yield
    CallCounts.reset()


@pytest.fixture
def registry():
    return AcceleratorRegistry()


def noop_invoke(o, args):
    return None


class TestRegistration:
    """Registering provider bundles."""

    def test_register(self, registry):
        """A registered bundle is found by owner and member name."""
        registry.register([provider_acceleration_type])
        assert AccelerationType in registry
        assert registry.provider_types() == [AccelerationType]
        assert registry.lookup_field(AccelerationType, "field").name == "field"
        assert len(registry.lookup_method_candidates(AccelerationType, "method")) == 1

    def test_lookup_absent(self, registry):
        """Unknown owners and members look up as None or empty."""
        assert registry.lookup_field(AccelerationType, "field") is None
        assert registry.lookup_method_candidates(AccelerationType, "method") == ()
        registry.register([provider_acceleration_type])
        assert registry.lookup_field(AccelerationType, "other") is None
        assert registry.lookup_method_candidates(AccelerationType, "other") == ()

    def test_lists_become_tuples(self):
        """Provider and accelerator sequences are stored as tuples."""
        provider = TypeProvider(MyBaseType, fields=[], methods=[])
        assert provider.fields == ()
        assert provider.methods == ()
        assert MethodAccelerator("m", [int], noop_invoke).parameters == (int,)

    def test_empty_batch(self, registry):
        """An empty batch registers nothing."""
        registry.register([])
        assert registry.provider_types() == []

    def test_duplicate_in_one_batch(self, registry):
        """Two bundles for one type fail, and neither is registered."""
        first = TypeProvider(MyBaseType, fields=[FieldAccelerator("base_field", read=lambda o: 1)])
        second = TypeProvider(MyBaseType, fields=[FieldAccelerator("base_field", read=lambda o: 2)])
        with pytest.raises(ValueError, match="Multiple accelerator providers for 'MyBaseType'"):
            registry.register([first, second])
        assert MyBaseType not in registry
        assert registry.lookup_field(MyBaseType, "base_field") is None

    def test_duplicate_across_batches(self, registry):
        """A second bundle for a registered type fails and keeps the first."""
        registry.register([provider_acceleration_type])
        with pytest.raises(ValueError, match="Multiple accelerator providers"):
            registry.register([TypeProvider(AccelerationType)])
        assert registry.lookup_field(AccelerationType, "field") is provider_acceleration_type.fields[0]

    def test_batch_is_atomic(self, registry):
        """A failure anywhere in the batch leaves earlier bundles unregistered."""
        good = TypeProvider(MyDerivedType)
        with pytest.raises(ValueError):
            registry.register([good, TypeProvider(MyBaseType), TypeProvider(MyBaseType)])
        assert MyDerivedType not in registry

    def test_duplicate_field_name(self, registry):
        """One bundle cannot accelerate a field twice."""
        provider = TypeProvider(
            MyBaseType,
            fields=[FieldAccelerator("base_field"), FieldAccelerator("base_field")],
        )
        with pytest.raises(ValueError, match="twice"):
            registry.register([provider])

    def test_wrong_shape(self, registry):
        """Batch entries must be TypeProvider instances."""
        with pytest.raises(TypeError, match="TypeProvider"):
            registry.register([object()])

    def test_owner_not_a_class(self, registry):
        """provider_for must be a class."""
        with pytest.raises(TypeError, match="must be a class"):
            registry.register([TypeProvider(provider_for="MyBaseType")])

    def test_bad_entries(self, registry):
        """Malformed field and method entries are rejected."""
        with pytest.raises(TypeError, match="not a FieldAccelerator"):
            registry.register([TypeProvider(MyBaseType, fields=[("base_field", None, None)])])
        with pytest.raises(TypeError, match="non-callable accessor"):
            registry.register([TypeProvider(MyBaseType, fields=[FieldAccelerator("base_field", read=1)])])
        with pytest.raises(TypeError, match="non-callable invoker"):
            registry.register([TypeProvider(MyBaseType, methods=[MethodAccelerator("base_method", (), None)])])
        assert registry.provider_types() == []


class TestRegisterSource:
    """Collecting providers from a module or namespace."""

    def test_module(self, registry):
        """Providers are collected from a module's prefixed attributes."""
        registry.register_source(sample_types)
        assert registry.provider_types() == [AccelerationType]

    def test_mapping(self, registry):
        """Providers are collected from a plain mapping."""
        registry.register_source({"provider_x": provider_acceleration_type, "other": 1})
        assert AccelerationType in registry

    def test_custom_prefix(self):
        """The provider prefix comes from the config."""
        registry = AcceleratorRegistry(ReflectConfig(provider_prefix="fast_"))
        registry.register_source(
            {"fast_acceleration": provider_acceleration_type, "provider_ignored": object()}
        )
        assert AccelerationType in registry

    def test_prefixed_non_provider(self, registry):
        """A prefixed attribute that is not a provider is an error."""
        module = types.ModuleType("broken_providers")
        module.provider_broken = {"provider_for": AccelerationType}
        with pytest.raises(TypeError, match="broken_providers.provider_broken"):
            registry.register_source(module)
        assert registry.provider_types() == []

    def test_from_sources(self):
        """TypeCache.from_sources registers providers before resolving."""
        cache = TypeCache.from_sources(sample_types)
        assert AccelerationType in cache.accelerators
        assert cache.get(AccelerationType).fields[0].is_accelerated


class TestSelectMethod:
    """Choosing among accelerators registered under one method name."""

    def test_single_candidate_unconditional(self, registry):
        """A lone candidate is used even if its parameters don't match."""
        only = MethodAccelerator("child_method", (int, int), noop_invoke)
        registry.register([TypeProvider(MyDerivedType, methods=[only])])
        assert registry.select_method(MyDerivedType, "child_method", (str,)) is only
        assert registry.select_method(MyDerivedType, "child_method", ()) is only

    def test_exact_match(self, registry):
        """Among several candidates the exact parameter match wins."""
        no_args = MethodAccelerator("child_method", (), noop_invoke)
        with_str = MethodAccelerator("child_method", (str,), noop_invoke)
        registry.register([TypeProvider(MyDerivedType, methods=[no_args, with_str])])
        assert registry.select_method(MyDerivedType, "child_method", ()) is no_args
        assert registry.select_method(MyDerivedType, "child_method", [str]) is with_str

    def test_no_match(self, registry):
        """No exact match among several candidates gives None."""
        registry.register([
            TypeProvider(
                MyDerivedType,
                methods=[
                    MethodAccelerator("child_method", (), noop_invoke),
                    MethodAccelerator("child_method", (str,), noop_invoke),
                ],
            )
        ])
        assert registry.select_method(MyDerivedType, "child_method", (int,)) is None

    def test_first_registered_wins(self, registry):
        """Equal signatures resolve to the first registered."""
        first = MethodAccelerator("child_method", (str,), noop_invoke)
        second = MethodAccelerator("child_method", (str,), noop_invoke)
        registry.register([TypeProvider(MyDerivedType, methods=[first, second])])
        assert registry.select_method(MyDerivedType, "child_method", (str,)) is first

    def test_unknown(self, registry):
        """A method with no accelerators gives None."""
        assert registry.select_method(MyDerivedType, "child_method", ()) is None


class TestAcceleratedAccess:
    """Descriptors built by a cache use registered accelerators."""

    def test_field_read_write(self):
        """Accelerated field reads and writes go through the provider."""
        cache = TypeCache.from_sources(sample_types)
        field = cache.get(AccelerationType).get_declared_field_by_name("field")
        assert field.is_accelerated

        obj = AccelerationType()
        obj.field = 10.0
        assert field.read(obj) == 10.0
        assert CallCounts.accelerated == 1

        field.write(obj, 20.0)
        assert obj.field == 20.0
        assert CallCounts.accelerated == 2

    def test_method_invoke(self):
        """Accelerated invocation goes through the provider."""
        cache = TypeCache.from_sources(sample_types)
        (method,) = cache.get(AccelerationType).get_declared_methods_by_name("method")
        assert method.is_accelerated

        obj = AccelerationType()
        obj.field = 3.0
        assert method.invoke(obj) == 3.0
        assert CallCounts.accelerated == 1

    def test_unregistered_cache_is_generic(self):
        """A cache without the provider falls back to generic accessors."""
        cache = TypeCache()
        field = cache.get(AccelerationType).get_declared_field_by_name("field")
        assert not field.is_accelerated

        obj = AccelerationType()
        field.write(obj, 5.0)
        assert field.read(obj) == 5.0
        assert CallCounts.accelerated == 0

    def test_partial_field_accelerator(self, registry):
        """A missing direction keeps the generic accessor."""
        reads = []

        def read(o):
            reads.append(o)
            return o.child_field

        registry.register([TypeProvider(MyDerivedType, fields=[FieldAccelerator("child_field", read=read)])])
        field = TypeCache(registry).get(MyDerivedType).get_declared_field_by_name("child_field")
        obj = MyDerivedType()
        field.write(obj, 2.0)
        assert field.read(obj) == 2.0
        assert reads == [obj]

    def test_accelerator_does_not_add_writer(self, registry):
        """An accelerator cannot make a read-only field writable."""
        registry.register([
            TypeProvider(
                sample_types.PropertyHolder,
                fields=[FieldAccelerator("read_only", read=lambda o: 1, write=lambda o, v: None)],
            )
        ])
        field = TypeCache(registry).get(sample_types.PropertyHolder).get_declared_field_by_name(
            "read_only"
        )
        assert field.is_accelerated
        assert not field.can_write

    def test_overload_selection(self, registry):
        """Each overload descriptor gets the accelerator for its signature."""
        calls = []
        registry.register([
            TypeProvider(
                MyDerivedType,
                methods=[
                    MethodAccelerator("child_method", (), lambda o, args: calls.append("none")),
                    MethodAccelerator("child_method", (str,), lambda o, args: calls.append(args[0])),
                ],
            )
        ])
        no_args, with_str = TypeCache(registry).get(MyDerivedType).get_declared_methods_by_name(
            "child_method"
        )
        assert no_args.is_accelerated and with_str.is_accelerated
        no_args.invoke(MyDerivedType())
        with_str.invoke(MyDerivedType(), ["x"])
        assert calls == ["none", "x"]

    def test_other_types_unaffected(self):
        """Types without a provider keep generic accessors."""
        cache = TypeCache.from_sources(sample_types)
        my_base = cache.get(MyBaseType)
        assert not any(f.is_accelerated for f in my_base.fields)
        assert not any(m.is_accelerated for m in my_base.methods)


class TestPerformance:
    """Accelerated invocation avoids the generic reflection overhead."""

    ITERATIONS = 50_000

    def _time(self, method, obj):
        args = [1, 2]
        best = sys.float_info.max
        for _ in range(3):
            start = time.perf_counter()
            for _ in range(self.ITERATIONS):
                method.invoke(obj, args)
            best = min(best, time.perf_counter() - start)
        return best

    def test_accelerated_is_faster(self, registry):
        """Accelerated invocation is at least twice as fast as the generic path."""
        registry.register([
            TypeProvider(
                Calculator,
                methods=[MethodAccelerator("add", (int, int), lambda o, args: o.add(args[0], args[1]))],
            )
        ])
        (generic,) = TypeCache().get(Calculator).get_declared_methods_by_name("add")
        (accelerated,) = TypeCache(registry).get(Calculator).get_declared_methods_by_name("add")
        assert accelerated.is_accelerated and not generic.is_accelerated

        obj = Calculator()
        assert generic.invoke(obj, [1, 2]) == accelerated.invoke(obj, [1, 2]) == 3

        generic_time = self._time(generic, obj)
        accelerated_time = self._time(accelerated, obj)
        assert accelerated_time * 2 < generic_time
