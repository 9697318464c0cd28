"""
Home Assistant WebSocket API frames.

Outbound frames are JSON objects with a ``type`` and, for requests, a
connection-local integer ``id``. Inbound frames are discriminated by ``type``:
``auth_required``, ``auth_ok``, ``auth_invalid`` and ``result``.
"""

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

WEBSOCKET_PATH = "/api/websocket"

# Inbound frame types
AUTH_OK = "auth_ok"
AUTH_INVALID = "auth_invalid"
RESULT = "result"

# Request kinds
GET_CONFIG = "get_config"
GET_STATES = "get_states"
FLOOR_REGISTRY_LIST = "config/floor_registry/list"
AREA_REGISTRY_LIST = "config/area_registry/list"
ENTITY_REGISTRY_LIST = "config/entity_registry/list"
CALL_SERVICE = "call_service"

# Issued on every refresh cycle, in this order
REFRESH_REQUESTS = (
    GET_CONFIG,
    GET_STATES,
    FLOOR_REGISTRY_LIST,
    AREA_REGISTRY_LIST,
    ENTITY_REGISTRY_LIST,
)


def websocket_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}{WEBSOCKET_PATH}"


def auth_frame(access_token: str) -> str:
    return json.dumps({"type": "auth", "access_token": access_token})


def request_frame(kind: str, request_id: int, **params: Any) -> str:
    """Build a request frame; extra params are merged at the top level."""
    return json.dumps({"type": kind, "id": request_id, **params})


def service_call_params(domain: str, service: str, entity_id: str) -> Dict[str, Any]:
    return {
        "domain": domain,
        "service": service,
        "target": {"entity_id": entity_id},
    }


def parse_frame(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Decode an inbound frame.

    Returns None for anything that is not a JSON object with a string
    ``type`` (malformed frames are ignored by the connection).
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Dropping non-UTF-8 frame")
            return None

    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug(f"Dropping invalid JSON frame: {str(raw)[:120]}")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        return None
    return data
