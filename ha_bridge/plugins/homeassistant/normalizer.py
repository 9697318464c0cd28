"""
Home Assistant → bridge normalization logic.

Pure transforms from WebSocket API result payloads into the derived view.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ha_bridge.plugins.homeassistant.models import (
    EntityCaches,
    Floor,
    Light,
    Room,
    Scene,
    Sensor,
    Shutter,
)

logger = logging.getLogger(__name__)


class HomeAssistantNormalizer:
    """
    Normalizes Home Assistant registry listings and state snapshots.

    Registry listings are rebuilt wholesale; state snapshots are merged into
    the caches (entities missing from a snapshot keep their last value).
    """

    # Entity id prefix → derived collection
    LIGHT_PREFIX = "light"
    SHUTTER_PREFIX = "cover"
    SENSOR_PREFIX = "sensor"
    SCENE_PREFIX = "scene"

    @staticmethod
    def _entries(payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, list):
            logger.debug(f"Expected a list payload, got {type(payload).__name__}")
            return []
        return [entry for entry in payload if isinstance(entry, dict)]

    @staticmethod
    def _display_name(entry: Dict[str, Any]) -> Optional[str]:
        # User-assigned name wins over the integration's original name
        return entry.get("name") or entry.get("original_name")

    @classmethod
    def merge_states(cls, caches: EntityCaches, payload: Any) -> int:
        """
        Merge a ``get_states`` result into the caches.

        Returns:
            Number of entities merged
        """
        merged = 0
        for entity in cls._entries(payload):
            entity_id = entity.get("entity_id")
            if not isinstance(entity_id, str):
                continue

            caches.states[entity_id] = entity.get("state")
            attributes = entity.get("attributes")
            if isinstance(attributes, dict) and "unit_of_measurement" in attributes:
                caches.units[entity_id] = attributes["unit_of_measurement"]
            merged += 1

        return merged

    @classmethod
    def normalize_version(cls, payload: Any) -> Optional[str]:
        if isinstance(payload, dict):
            version = payload.get("version")
            return str(version) if version is not None else None
        return None

    @classmethod
    def normalize_floors(cls, payload: Any) -> List[Floor]:
        return [
            Floor(id=floor.get("floor_id"), name=floor.get("name"), level=floor.get("level"))
            for floor in cls._entries(payload)
        ]

    @classmethod
    def normalize_areas(cls, payload: Any) -> List[Room]:
        return [
            Room(id=area.get("area_id"), name=area.get("name"), floor_id=area.get("floor_id"))
            for area in cls._entries(payload)
        ]

    @classmethod
    def normalize_entities(
        cls,
        payload: Any,
        caches: EntityCaches,
    ) -> Tuple[List[Light], List[Shutter], List[Sensor], List[Scene]]:
        """
        Classify an entity registry listing by entity id prefix.

        Args:
            payload: ``config/entity_registry/list`` result
            caches: Current state/unit caches to join against

        Returns:
            (lights, shutters, sensors, scenes), in registry order
        """
        lights: List[Light] = []
        shutters: List[Shutter] = []
        sensors: List[Sensor] = []
        scenes: List[Scene] = []

        for entry in cls._entries(payload):
            entity_id = entry.get("entity_id")
            if not isinstance(entity_id, str):
                continue

            name = cls._display_name(entry)
            area_id = entry.get("area_id")
            state = caches.states.get(entity_id)

            if entity_id.startswith(cls.LIGHT_PREFIX):
                lights.append(Light(id=entity_id, name=name, state=state, area_id=area_id))

            elif entity_id.startswith(cls.SHUTTER_PREFIX):
                shutters.append(Shutter(id=entity_id, name=name, state=state, area_id=area_id))

            elif entity_id.startswith(cls.SENSOR_PREFIX):
                # Sensors without a known value and unit are not reported
                unit = caches.units.get(entity_id)
                if state and unit:
                    sensors.append(Sensor(id=entity_id, name=name, value=state, unit=unit, area_id=area_id))

            elif entity_id.startswith(cls.SCENE_PREFIX):
                scenes.append(Scene(id=entity_id, name=name, area_id=area_id))

        return lights, shutters, sensors, scenes
