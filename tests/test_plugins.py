"""Tests for watch plugin loading and the plugin registry."""

import pytest

from testwatch_core.plugins import PluginLoadError, PluginRegistry, load_plugins, validate_plugin


class Capability:
    def __init__(self, **attrs):
        self.__dict__.update(attrs)


class TestLoadPlugins:
    def test_loads_file_relative_to_root(self, fixtures_dir):
        registry = load_plugins(["watch_plugin.py"], fixtures_dir)

        assert len(registry) == 1
        plugin = registry[0]
        assert plugin.prompt == "do nothing"
        assert plugin.keys == frozenset({"s"})
        assert plugin.has_enter and not plugin.has_apply
        assert not plugin.has_on_key

    def test_suffix_optional(self, fixtures_dir):
        registry = load_plugins(["watch_plugin"], fixtures_dir)
        assert registry.get("s") is not None

    def test_absolute_path(self, fixtures_dir):
        registry = load_plugins([str(fixtures_dir / "apply_plugin.py")], "/nonexistent")
        assert registry[0].has_apply

    def test_module_attribute_class_is_instantiated(self, fixtures_dir):
        registry = load_plugins(["keyed_plugin.py:KeyRecorderPlugin"], fixtures_dir)

        plugin = registry[0]
        assert plugin.source.keys == []
        assert registry.get("k") is plugin
        assert registry.get("K") is plugin
        assert plugin.display_key == "K/k"

    def test_dotted_module(self, tmp_path, monkeypatch):
        package = tmp_path / "team_watch_plugins"
        package.mkdir()
        (package / "__init__.py").write_text("")
        (package / "skip.py").write_text('key = "k"\nprompt = "skip slow"\n\ndef apply(cfg):\n    return None\n')
        monkeypatch.syspath_prepend(str(tmp_path))

        registry = load_plugins(["team_watch_plugins.skip"], tmp_path / "elsewhere")

        assert registry[0].prompt == "skip slow"

    def test_each_load_gets_fresh_module(self, fixtures_dir):
        first = load_plugins(["watch_plugin.py"], fixtures_dir)[0]
        second = load_plugins(["watch_plugin.py"], fixtures_dir)[0]
        first.source.calls.append("x")
        assert second.source.calls == []

    def test_load_order_kept(self, fixtures_dir):
        registry = load_plugins(["watch_plugin2.py", "watch_plugin.py"], fixtures_dir)
        assert [p.prompt for p in registry] == ["do something else", "do nothing"]
        assert [p.prompt for p in registry.sorted_for_display()] == ["do nothing", "do something else"]

    def test_missing_file(self, fixtures_dir):
        with pytest.raises(PluginLoadError, match="not found"):
            load_plugins(["missing_plugin.py"], fixtures_dir)

    def test_missing_module(self, fixtures_dir):
        with pytest.raises(PluginLoadError, match="Failed to load"):
            load_plugins(["no_such_module_anywhere"], fixtures_dir)

    def test_missing_attribute(self, fixtures_dir):
        with pytest.raises(PluginLoadError, match="has no attribute 'Nope'"):
            load_plugins(["keyed_plugin.py:Nope"], fixtures_dir)

    def test_reserved_key(self, fixtures_dir):
        with pytest.raises(PluginLoadError, match="reserved key 'q'"):
            load_plugins(["reserved_key_plugin.py"], fixtures_dir)

    def test_duplicate_key(self, fixtures_dir):
        with pytest.raises(PluginLoadError, match="both use key 's'"):
            load_plugins(["watch_plugin.py", "duplicate_key_plugin.py"], fixtures_dir)

    def test_no_hooks(self, fixtures_dir):
        with pytest.raises(PluginLoadError, match="must define 'enter' or 'apply'"):
            load_plugins(["no_hooks_plugin.py"], fixtures_dir)


class TestValidatePlugin:
    def test_missing_key(self):
        with pytest.raises(PluginLoadError, match="does not define 'key'"):
            validate_plugin("x", Capability(prompt="p", apply=lambda cfg: None))

    def test_empty_prompt(self):
        with pytest.raises(PluginLoadError, match="non-empty 'prompt'"):
            validate_plugin("x", Capability(key="x", prompt="  ", apply=lambda cfg: None))

    def test_invalid_key(self):
        with pytest.raises(PluginLoadError, match="invalid key"):
            validate_plugin("x", Capability(key="xy", prompt="p", apply=lambda cfg: None))

    def test_code_point_key(self):
        plugin = validate_plugin("x", Capability(key=120, prompt="p", apply=lambda cfg: None))
        assert plugin.keys == frozenset({"x"})

    def test_hooks_resolved_at_call_time(self):
        source = Capability(key="x", prompt="p", apply=lambda cfg: {"a": 1})
        plugin = validate_plugin("x", source)

        source.apply = lambda cfg: {"b": 2}

        assert plugin.apply(None) == {"b": 2}


class TestPluginRegistry:
    def test_empty(self):
        registry = PluginRegistry()
        assert len(registry) == 0
        assert registry.get("s") is None
        assert registry.keys == set()

    def test_keys(self, fixtures_dir):
        registry = load_plugins(["watch_plugin.py", "watch_plugin2.py"], fixtures_dir)
        assert registry.keys == {"s", "d"}
