"""
Instruction text for the conversational layer.

A fixed preamble followed either by a "no devices" block or by a YAML dump
of the capability models and the live home description.
"""

from typing import TYPE_CHECKING, Any, Dict

import yaml

if TYPE_CHECKING:
    from ha_bridge.plugins.homeassistant.models import HomeView


BASE_INSTRUCTIONS = """
You are a home automation assistant, focused solely on managing connected devices in the home.
When asked to calculate an average, **round to the nearest whole number** without explaining the calculation.
"""

DEFAULT_INSTRUCTIONS = """
Currently, there is no connected devices.
Your sole task is to ask the user to install one or more connected devices in the home before proceeding.
"""


# Static descriptions of each collection, dumped next to the live data so the
# model knows how to read it.
FLOORS_MODEL = {
    "description": "Floors of the home.",
    "properties": {
        "id": "Unique floor identifier.",
        "name": "Floor name.",
        "level": "Floor level, 0 being the ground floor, negative below ground.",
    },
}

ROOMS_MODEL = {
    "description": "Rooms of the home.",
    "properties": {
        "id": "Unique room identifier.",
        "name": "Room name.",
        "floor_id": "Identifier of the floor the room is on, if known.",
    },
}

LIGHTS_MODEL = {
    "description": "Lights of the home. They can be turned on or off.",
    "properties": {
        "id": "Unique light identifier, to use when updating lights.",
        "name": "Light name.",
        "state": "Current state: on, off or unavailable.",
        "area_id": "Identifier of the room the light is in, if known.",
    },
}

SHUTTERS_MODEL = {
    "description": "Shutters of the home. They can be opened, closed or stopped.",
    "properties": {
        "id": "Unique shutter identifier, to use when updating shutters.",
        "name": "Shutter name.",
        "state": "Current state: open, closed, opening, closing or unavailable.",
        "area_id": "Identifier of the room the shutter is in, if known.",
    },
}

SENSORS_MODEL = {
    "description": "Sensors of the home. They are read-only.",
    "properties": {
        "id": "Unique sensor identifier.",
        "name": "Sensor name.",
        "value": "Last measured value.",
        "unit": "Unit of the measured value.",
        "area_id": "Identifier of the room the sensor is in, if known.",
    },
}

SCENES_MODEL = {
    "description": "Scenes of the home. They can be triggered and have no state.",
    "properties": {
        "id": "Unique scene identifier, to use when triggering scenes.",
        "name": "Scene name.",
        "area_id": "Identifier of the room the scene belongs to, if known.",
    },
}

CAPABILITY_MODELS: Dict[str, Dict[str, Any]] = {
    "floors_model": FLOORS_MODEL,
    "rooms_model": ROOMS_MODEL,
    "lights_model": LIGHTS_MODEL,
    "shutters_model": SHUTTERS_MODEL,
    "sensors_model": SENSORS_MODEL,
    "scenes_model": SCENES_MODEL,
}


def render_instructions(view: "HomeView") -> str:
    parts = [BASE_INSTRUCTIONS]
    if view.is_empty():
        parts.append(DEFAULT_INSTRUCTIONS)
    else:
        document = {**CAPABILITY_MODELS, **view.as_dict()}
        parts.append("``` yaml")
        parts.append(yaml.safe_dump(document, sort_keys=False, allow_unicode=True))
        parts.append("```")
    return "\n".join(parts)
