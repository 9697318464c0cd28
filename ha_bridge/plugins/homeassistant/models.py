"""
Data models for the Home Assistant connection.

Connection states, the events that drive the state machine, and the
denormalized records published to the conversational layer.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTH_PENDING = "auth_pending"
    AUTHENTICATED = "authenticated"


# --- Events -----------------------------------------------------------------
#
# Socket events carry the session number of the socket that produced them.
# Timer events use session 0 (never stale: a superseded timer is cancelled).


@dataclass(frozen=True)
class ConnectionEvent:
    session: int = 0


@dataclass(frozen=True)
class Opened(ConnectionEvent):
    pass


@dataclass(frozen=True)
class Errored(ConnectionEvent):
    message: str = ""


@dataclass(frozen=True)
class Closed(ConnectionEvent):
    pass


@dataclass(frozen=True)
class MessageReceived(ConnectionEvent):
    raw: str = ""


@dataclass(frozen=True)
class RefreshTimerFired(ConnectionEvent):
    pass


@dataclass(frozen=True)
class ReconnectTimerFired(ConnectionEvent):
    pass


# --- Derived view -----------------------------------------------------------


@dataclass(frozen=True)
class Floor:
    id: str
    name: str
    level: Optional[int]


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    floor_id: Optional[str]  # no referential check against floors


@dataclass(frozen=True)
class Light:
    id: str
    name: Optional[str]
    state: Optional[str]  # None until a state snapshot reported it
    area_id: Optional[str]


@dataclass(frozen=True)
class Shutter:
    id: str
    name: Optional[str]
    state: Optional[str]
    area_id: Optional[str]


@dataclass(frozen=True)
class Sensor:
    id: str
    name: Optional[str]
    value: str
    unit: str
    area_id: Optional[str]


@dataclass(frozen=True)
class Scene:
    id: str
    name: Optional[str]
    area_id: Optional[str]


@dataclass(frozen=True)
class HomeView:
    """
    Snapshot of the derived view.

    Collections are tuples so a published view can be shared with readers
    while the connection keeps rebuilding its own lists.
    """

    floors: tuple = ()
    rooms: tuple = ()
    lights: tuple = ()
    shutters: tuple = ()
    sensors: tuple = ()
    scenes: tuple = ()

    def is_empty(self) -> bool:
        """True when no device collection has entries (floors and rooms do not count)."""
        return not (self.lights or self.shutters or self.sensors or self.scenes)

    def as_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "floors": [asdict(f) for f in self.floors],
            "rooms": [asdict(r) for r in self.rooms],
            "lights": [asdict(l) for l in self.lights],
            "shutters": [asdict(s) for s in self.shutters],
            "sensors": [asdict(s) for s in self.sensors],
            "scenes": [asdict(s) for s in self.scenes],
        }


@dataclass
class EntityCaches:
    """Raw caches fed by state snapshots (entity_id -> value)."""

    states: Dict[str, Any] = field(default_factory=dict)
    units: Dict[str, str] = field(default_factory=dict)

    def clear(self) -> None:
        self.states.clear()
        self.units.clear()
