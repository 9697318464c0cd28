"""
Home Assistant Provider Plugin

Mirrors floors, rooms, lights, shutters, sensors and scenes from a Home
Assistant server over its WebSocket API, and sends service calls back.
"""

from ha_bridge.plugins.homeassistant.provider import HomeAssistantProvider

__all__ = ["HomeAssistantProvider"]
