"""
Tests for plugin system foundation.

Tests plugin lifecycle, registry, and health checks.
"""

import pytest
from typing import Dict, Any

from ha_bridge.extension import Extension
from ha_bridge.plugins.base import BridgePlugin
from ha_bridge.plugins.tooling_provider import ToolingProvider
from ha_bridge.plugins.registry import PluginRegistry


class DummyPlugin(BridgePlugin):
    """Simple test plugin for lifecycle testing."""

    def __init__(self, name: str, config: Dict[str, Any]):
        super().__init__(name, config)
        self.start_called = False
        self.stop_called = False

    def start(self) -> None:
        self.start_called = True
        self._mark_started()

    def stop(self) -> None:
        self.stop_called = True
        self._mark_stopped()

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "message": "Dummy plugin is fine",
            "details": {"start_called": self.start_called}
        }


class FailingPlugin(DummyPlugin):
    def start(self) -> None:
        raise RuntimeError("cannot start")


class BrokenPlugin(DummyPlugin):
    def stop(self) -> None:
        raise RuntimeError("cannot stop")

    def health(self) -> Dict[str, Any]:
        raise RuntimeError("no health")


class DegradedPlugin(DummyPlugin):
    def health(self) -> Dict[str, Any]:
        return {"status": "degraded", "message": "Reconnecting", "details": {}}


class DummyToolingProvider(ToolingProvider):
    """Simple test tooling provider."""

    def __init__(self, name: str, config: Dict[str, Any]):
        super().__init__(name, config)
        self.devices = config.get("devices", {})
        self.extension = Extension("Dummy")
        self.extension.set_instructions(f"{len(self.devices)} devices")
        self.extension.set_function_schemas([{"type": "function", "function": {"name": "toggle"}}])

    def start(self) -> None:
        self._mark_started()

    def stop(self) -> None:
        self._mark_stopped()

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "message": "Tooling provider OK",
            "details": {"device_ids": list(self.devices.keys())}
        }

    def get_snapshot(self) -> Dict[str, Any]:
        return {"devices": self.devices}


class TestPluginBase:
    """Test BridgePlugin base class."""

    def test_plugin_creation(self):
        plugin = DummyPlugin("test", {"foo": "bar"})
        assert plugin.name == "test"
        assert plugin.config == {"foo": "bar"}
        assert not plugin.is_started

    def test_plugin_lifecycle(self):
        plugin = DummyPlugin("test", {})

        plugin.start()
        assert plugin.start_called
        assert plugin.is_started

        plugin.stop()
        assert plugin.stop_called
        assert not plugin.is_started

    def test_plugin_health(self):
        plugin = DummyPlugin("test", {})
        health = plugin.health()
        assert health["status"] == "healthy"
        assert "message" in health
        assert "details" in health


class TestToolingProvider:
    """Test ToolingProvider interface."""

    def test_tooling_provider_creation(self):
        provider = DummyToolingProvider("devices", {"devices": {"light.kitchen": "on"}})
        assert provider.name == "devices"
        assert provider.devices == {"light.kitchen": "on"}

    def test_get_snapshot(self):
        provider = DummyToolingProvider("devices", {"devices": {"a": 1, "b": 2}})
        provider.start()

        snapshot = provider.get_snapshot()
        assert snapshot["devices"] == {"a": 1, "b": 2}

    def test_instructions_and_schemas_come_from_extension(self):
        provider = DummyToolingProvider("devices", {"devices": {"a": 1}})

        assert provider.get_instructions() == "1 devices"
        schemas = provider.get_function_schemas()
        assert [s["function"]["name"] for s in schemas] == ["toggle"]

        # Callers get a copy
        schemas.clear()
        assert len(provider.get_function_schemas()) == 1


class TestPluginRegistry:
    """Test PluginRegistry."""

    def test_registry_creation(self):
        registry = PluginRegistry()
        assert registry.plugin_count == 0
        assert registry.health_all() == {"status": "healthy", "plugins": {}}

    def test_register_plugin_class(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)

        with pytest.raises(ValueError, match="already registered"):
            registry.register_plugin_class("dummy", DummyPlugin)

    def test_create_plugin(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)

        plugin = registry.create_plugin("dummy", {"test": "config"})
        assert isinstance(plugin, DummyPlugin)
        assert plugin.name == "dummy"
        assert plugin.config == {"test": "config"}
        assert registry.plugin_count == 1

    def test_create_unregistered_plugin(self):
        registry = PluginRegistry()

        with pytest.raises(ValueError, match="not registered"):
            registry.create_plugin("nonexistent", {})

    def test_get_plugin(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)
        plugin = registry.create_plugin("dummy", {})

        assert registry.get_plugin("dummy") is plugin
        assert registry.get_plugin("nonexistent") is None

    def test_get_plugins_by_type(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)
        registry.register_plugin_class("tooling", DummyToolingProvider)

        registry.create_plugin("dummy", {})
        registry.create_plugin("tooling", {"devices": {}})

        providers = registry.get_plugins_by_type(ToolingProvider)
        assert len(providers) == 1
        assert isinstance(providers[0], DummyToolingProvider)

        all_plugins = registry.get_plugins_by_type(BridgePlugin)
        assert len(all_plugins) == 2

    def test_start_all(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy1", DummyPlugin)
        registry.register_plugin_class("dummy2", DummyPlugin)

        plugin1 = registry.create_plugin("dummy1", {})
        plugin2 = registry.create_plugin("dummy2", {})

        assert not plugin1.is_started
        assert not plugin2.is_started

        registry.start_all()

        assert plugin1.is_started
        assert plugin2.is_started
        assert plugin1.start_called
        assert plugin2.start_called

    def test_start_all_rolls_back_on_failure(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)
        registry.register_plugin_class("failing", FailingPlugin)

        plugin = registry.create_plugin("dummy", {})
        registry.create_plugin("failing", {})

        with pytest.raises(RuntimeError, match="cannot start"):
            registry.start_all()

        assert plugin.stop_called
        assert not plugin.is_started

    def test_stop_all(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy1", DummyPlugin)
        registry.register_plugin_class("dummy2", DummyPlugin)

        plugin1 = registry.create_plugin("dummy1", {})
        plugin2 = registry.create_plugin("dummy2", {})

        registry.start_all()
        registry.stop_all()

        assert not plugin1.is_started
        assert not plugin2.is_started
        assert plugin1.stop_called
        assert plugin2.stop_called

    def test_stop_all_skips_plugins_never_started(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)
        plugin = registry.create_plugin("dummy", {})

        registry.stop_all()

        assert not plugin.stop_called

    def test_health_all(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)
        registry.register_plugin_class("tooling", DummyToolingProvider)

        registry.create_plugin("dummy", {})
        registry.create_plugin("tooling", {"devices": {}})

        health = registry.health_all()

        assert health["status"] == "healthy"
        assert health["plugins"]["dummy"]["status"] == "healthy"
        assert health["plugins"]["tooling"]["status"] == "healthy"

    def test_health_all_worst_status_wins(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)
        registry.register_plugin_class("degraded", DegradedPlugin)

        registry.create_plugin("dummy", {})
        registry.create_plugin("degraded", {})

        assert registry.health_all()["status"] == "degraded"

    def test_health_error_reported_unhealthy(self):
        registry = PluginRegistry()
        registry.register_plugin_class("degraded", DegradedPlugin)
        registry.register_plugin_class("broken", BrokenPlugin)

        registry.create_plugin("degraded", {})
        registry.create_plugin("broken", {})

        health = registry.health_all()
        assert health["status"] == "unhealthy"
        assert "no health" in health["plugins"]["broken"]["message"]

    def test_stop_all_continues_past_failures(self):
        registry = PluginRegistry()
        registry.register_plugin_class("dummy", DummyPlugin)
        registry.register_plugin_class("broken", BrokenPlugin)

        plugin = registry.create_plugin("dummy", {})
        broken = registry.create_plugin("broken", {})
        registry.start_all()

        registry.stop_all()

        assert plugin.stop_called
        assert not plugin.is_started
        assert not broken.is_started
