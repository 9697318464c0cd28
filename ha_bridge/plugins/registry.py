"""
Plugin registry.

Creates bridge plugins from registered classes and runs their lifecycle
from the FastAPI lifespan.
"""

from typing import Dict, List, Type, Optional, Any
import logging

from ha_bridge.bridge_logging import get_logger
from ha_bridge.plugins.base import BridgePlugin

logger = logging.getLogger(__name__)
log = get_logger("HABRIDGE.Plugins")

_STATUS_RANK = {"healthy": 0, "degraded": 1, "unhealthy": 2}


class PluginRegistry:
    """
    Registry of bridge plugins, keyed by name.

    Plugins start in creation order and stop in reverse.
    """

    def __init__(self):
        self._classes: Dict[str, Type[BridgePlugin]] = {}
        self._plugins: Dict[str, BridgePlugin] = {}

    def register_plugin_class(self, name: str, plugin_class: Type[BridgePlugin]) -> None:
        """
        Raises:
            ValueError: If a class is already registered under name
        """
        if name in self._classes:
            raise ValueError(f"Plugin class '{name}' already registered")
        self._classes[name] = plugin_class

    def create_plugin(self, name: str, config: Dict[str, Any]) -> BridgePlugin:
        """
        Instantiate the class registered under name.

        Raises:
            ValueError: If no class is registered under name
        """
        plugin_class = self._classes.get(name)
        if plugin_class is None:
            raise ValueError(f"Plugin class '{name}' not registered (known: {sorted(self._classes)})")

        plugin = plugin_class(name=name, config=config)
        self._plugins[name] = plugin
        logger.info(f"Created plugin {name} ({plugin_class.__name__})")
        return plugin

    def get_plugin(self, name: str) -> Optional[BridgePlugin]:
        return self._plugins.get(name)

    def get_plugins_by_type(self, plugin_type: Type[BridgePlugin]) -> List[BridgePlugin]:
        return [p for p in self._plugins.values() if isinstance(p, plugin_type)]

    @property
    def plugin_count(self) -> int:
        return len(self._plugins)

    def start_all(self) -> None:
        """
        Start every plugin.

        On the first failure the plugins already started are stopped and the
        exception is re-raised.
        """
        for name, plugin in self._plugins.items():
            try:
                plugin.start()
            except Exception as e:
                log.error("HABRIDGE.Plugins.StartFailed", extra={"fields": {"plugin": name, "error": repr(e)}})
                self.stop_all()
                raise
            plugin._mark_started()

    def stop_all(self) -> None:
        """Stop started plugins in reverse order; a failing stop does not prevent the others."""
        for name, plugin in reversed(list(self._plugins.items())):
            if not plugin.is_started:
                continue
            try:
                plugin.stop()
            except Exception as e:
                log.error("HABRIDGE.Plugins.StopFailed", extra={"fields": {"plugin": name, "error": repr(e)}})
            plugin._mark_stopped()

    def health_all(self) -> Dict[str, Any]:
        """
        Returns:
            {"status": worst plugin status, "plugins": {name: health}}
        """
        plugins: Dict[str, Dict[str, Any]] = {}
        for name, plugin in self._plugins.items():
            try:
                plugins[name] = plugin.health()
            except Exception as e:
                plugins[name] = {"status": "unhealthy", "message": f"Health check error: {e}", "details": {}}

        status = max(
            (h.get("status", "unhealthy") for h in plugins.values()),
            key=lambda s: _STATUS_RANK.get(s, 2),
            default="healthy",
        )
        return {"status": status, "plugins": plugins}
