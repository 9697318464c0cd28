"""
LLM Function Definitions and Execution

Function schemas advertised to the conversational layer, and dispatch of
function calls to the callables registered on the extension.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List

from ha_bridge.bridge_logging import get_logger
from ha_bridge.extension import INTERNAL_ERROR, Extension

if TYPE_CHECKING:
    from ha_bridge.plugins.homeassistant.models import HomeView

logger = logging.getLogger(__name__)


# Function definitions in OpenAI format
UPDATE_LIGHTS_FUNCTION = {
    "type": "function",
    "function": {
        "name": "update_lights",
        "description": "Turn one or more lights on or off. Use the light ids listed in the home description.",
        "parameters": {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ["on", "off"],
                    "description": "Whether to turn the lights on or off"
                },
                "ids": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Light ids (e.g., 'light.kitchen')"
                }
            },
            "required": ["action", "ids"]
        }
    }
}

TRIGGER_SCENES_FUNCTION = {
    "type": "function",
    "function": {
        "name": "trigger_scenes",
        "description": "Trigger one or more scenes. Use the scene ids listed in the home description.",
        "parameters": {
            "type": "object",
            "properties": {
                "ids": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Scene ids (e.g., 'scene.movie_night')"
                }
            },
            "required": ["ids"]
        }
    }
}

UPDATE_SHUTTERS_FUNCTION = {
    "type": "function",
    "function": {
        "name": "update_shutters",
        "description": "Open, close or stop one or more shutters. Use the shutter ids listed in the home description.",
        "parameters": {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ["open", "close", "stop"],
                    "description": "Movement to apply to the shutters"
                },
                "ids": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Shutter ids (e.g., 'cover.living_room')"
                }
            },
            "required": ["action", "ids"]
        }
    }
}

FUNCTION_SCHEMAS = [UPDATE_LIGHTS_FUNCTION, TRIGGER_SCENES_FUNCTION, UPDATE_SHUTTERS_FUNCTION]


def advertised_function_schemas(view: "HomeView") -> List[Dict[str, Any]]:
    """
    Function schemas to advertise for a given view.

    All three are advertised whatever the view holds, even when the
    matching collection is empty.
    """
    return list(FUNCTION_SCHEMAS)


def _required_arguments(tool_name: str) -> List[str]:
    for schema in FUNCTION_SCHEMAS:
        function = schema["function"]
        if function["name"] == tool_name:
            return list(function["parameters"]["required"])
    return []


async def execute_tool(
    extension: Extension,
    tool_name: str,
    tool_args: Dict[str, Any],
) -> str:
    """
    Execute a function call against the extension's registered callables.

    Args:
        extension: Extension holding the registered functions
        tool_name: Function to call
        tool_args: Arguments from the function call

    Returns:
        Terminal status string ("Done." or the internal error message)

    Raises:
        KeyError: If no function is registered under tool_name
    """
    log = get_logger("HABRIDGE.LLM.Tools")

    function = extension.get_function(tool_name)
    if function is None:
        raise KeyError(tool_name)

    args = dict(tool_args or {})
    required = _required_arguments(tool_name)
    missing = [name for name in required if name not in args]
    ids = args.get("ids")
    if missing or not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        log.error("HABRIDGE.LLM.Tools.InvalidArguments", extra={"fields": {
            "tool_name": tool_name,
            "missing": missing,
            "args": args,
        }})
        return INTERNAL_ERROR

    # Keys outside the schema are ignored
    if "action" in required:
        result = function(str(args["action"]), ids)
    else:
        result = function(ids)

    log.info("HABRIDGE.LLM.Tools.Executed", extra={"fields": {
        "tool_name": tool_name,
        "action": args.get("action"),
        "count": len(ids),
        "result": result,
    }})
    return result
