"""Tests for the processor registry and node plugins."""

import textwrap

import pytest

from nodeflow import ProcessorRegistry, processor_registry


def test_register_and_get():
    registry = ProcessorRegistry()

    def text(ctx):
        return ctx.value

    registry.register("Text", text)

    assert registry.get("Text") is text
    assert registry["Text"] is text
    assert "Text" in registry
    assert registry.get("Missing") is None
    with pytest.raises(KeyError):
        registry["Missing"]


def test_decorator_registers_and_returns_function():
    registry = ProcessorRegistry()

    @registry.processor("Upper")
    def upper(ctx):
        return str(ctx.value).upper()

    assert registry.get("Upper") is upper
    assert callable(upper)


def test_list_and_unregister():
    registry = ProcessorRegistry()
    registry.register("B", lambda ctx: 2)
    registry.register("A", lambda ctx: 1)

    assert registry.list_node_types() == ["A", "B"]

    registry.unregister("A")

    assert registry.list_node_types() == ["B"]
    assert len(registry) == 1


def test_register_replaces_existing():
    registry = ProcessorRegistry()
    registry.register("A", lambda ctx: 1)

    def replacement(ctx):
        return 2

    registry.register("A", replacement)

    assert registry.get("A") is replacement


def test_register_rejects_non_callable():
    with pytest.raises(TypeError, match="must be callable"):
        ProcessorRegistry().register("A", "not a function")


def test_default_registry_exists():
    assert isinstance(processor_registry, ProcessorRegistry)


def _write_plugin(directory, name, body):
    (directory / f"{name}.py").write_text(textwrap.dedent(body))


def test_load_plugin(tmp_path, monkeypatch):
    _write_plugin(
        tmp_path,
        "nodeflow_pack_text",
        """
        CALLS = []

        def register(registry):
            CALLS.append(registry)
            registry.register("Shout", lambda ctx: str(ctx.value).upper() + "!")
        """,
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    registry = ProcessorRegistry()

    registry.load_plugin("nodeflow_pack_text")
    registry.load_plugin("nodeflow_pack_text")

    import nodeflow_pack_text

    assert "Shout" in registry
    assert registry.loaded_plugins == ["nodeflow_pack_text"]
    assert nodeflow_pack_text.CALLS == [registry]


def test_load_plugin_without_register(tmp_path, monkeypatch):
    _write_plugin(tmp_path, "nodeflow_pack_empty", "VALUE = 1\n")
    monkeypatch.syspath_prepend(str(tmp_path))

    with pytest.raises(AttributeError, match="register"):
        ProcessorRegistry().load_plugin("nodeflow_pack_empty")


def test_load_plugin_missing_module():
    registry = ProcessorRegistry()

    with pytest.raises(ImportError):
        registry.load_plugin("nodeflow_pack_that_does_not_exist")

    assert registry.loaded_plugins == []
