"""
Tests for the extension registry.
"""
from vibenodes.client.registry import ExtensionRegistry


def test_component_and_function_are_independent():
    """Test a function can be registered before any component is cached"""
    registry = ExtensionRegistry()

    registry.register_function("foo", lambda: 1)

    assert registry.get_function("foo")() == 1
    assert registry.get_component("foo") is None
    assert not registry.is_loaded("foo")


def test_set_and_get_component():
    registry = ExtensionRegistry()
    component = object()

    registry.set_component("foo", component)

    assert registry.get_component("foo") is component
    assert registry.is_loaded("foo")
    assert len(registry) == 1


def test_get_all_functions_is_a_copy():
    registry = ExtensionRegistry()
    registry.register_function("foo", print)

    functions = registry.get_all_functions()
    functions["bar"] = print

    assert registry.get_function("bar") is None
    assert set(registry.get_all_functions()) == {"foo"}


def test_evict():
    registry = ExtensionRegistry()
    registry.set_component("foo", object())
    registry.register_function("foo", print)
    registry.set_component("bar", object())

    registry.evict("foo")
    registry.evict("unknown")

    assert not registry.is_loaded("foo")
    assert registry.get_function("foo") is None
    assert registry.is_loaded("bar")


def test_clear():
    registry = ExtensionRegistry()
    registry.set_component("foo", object())
    registry.register_function("foo", print)

    registry.clear()

    assert len(registry) == 0
    assert registry.get_all_functions() == {}
