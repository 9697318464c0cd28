"""
Bridge Plugin System

Plugin lifecycle, tooling providers and the registry that runs them.
"""

from ha_bridge.plugins.base import BridgePlugin
from ha_bridge.plugins.tooling_provider import ToolingProvider
from ha_bridge.plugins.registry import PluginRegistry

__all__ = [
    "BridgePlugin",
    "ToolingProvider",
    "PluginRegistry",
]
