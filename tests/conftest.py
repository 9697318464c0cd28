"""Shared fixtures: a fake Home Assistant WebSocket server and sample payloads."""

from __future__ import annotations

import asyncio
import copy
import json
from typing import Any

import pytest
from websockets.protocol import State


STATES = [
    {"entity_id": "light.kitchen", "state": "on", "attributes": {"friendly_name": "Kitchen ceiling"}},
    {"entity_id": "light.hall", "state": "off", "attributes": {}},
    {"entity_id": "cover.living_room", "state": "open", "attributes": {"current_position": 100}},
    {"entity_id": "sensor.living_temperature", "state": "21.5", "attributes": {"unit_of_measurement": "°C"}},
    {"entity_id": "sensor.last_boot", "state": "2024-05-01T06:00:00+00:00", "attributes": {}},
    {"entity_id": "scene.movie", "state": "unknown", "attributes": {}},
]

FLOORS = [
    {"floor_id": "ground", "name": "Ground floor", "level": 0, "aliases": [], "icon": None},
    {"floor_id": "first", "name": "First floor", "level": 1, "aliases": [], "icon": None},
]

AREAS = [
    {"area_id": "living_room", "name": "Living room", "floor_id": "ground", "aliases": []},
    {"area_id": "kitchen", "name": "Kitchen", "floor_id": None, "aliases": []},
]

ENTITIES = [
    {"entity_id": "light.kitchen", "name": None, "original_name": "Kitchen ceiling", "area_id": "kitchen"},
    {"entity_id": "light.hall", "name": "Hall", "original_name": "Hall lamp", "area_id": None},
    {"entity_id": "light.garden", "name": None, "original_name": "Garden", "area_id": None},
    {"entity_id": "cover.living_room", "name": None, "original_name": "Living shutter", "area_id": "living_room"},
    {"entity_id": "sensor.living_temperature", "name": "Temperature", "original_name": None, "area_id": "living_room"},
    {"entity_id": "sensor.last_boot", "name": None, "original_name": "Last boot", "area_id": None},
    {"entity_id": "scene.movie", "name": None, "original_name": "Movie night", "area_id": "living_room"},
    {"entity_id": "switch.fan", "name": None, "original_name": "Fan", "area_id": "kitchen"},
]


class FakeSocket:
    """Stands in for a websockets client connection."""

    def __init__(self) -> None:
        self.state = State.OPEN
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, frame: str) -> None:
        self.sent.append(frame)

    async def close(self) -> None:
        self.state = State.CLOSED
        self.closed = True
        self._inbox.put_nowait(None)

    def feed(self, data: Any) -> None:
        self._inbox.put_nowait(data if isinstance(data, str) else json.dumps(data))

    def drop(self) -> None:
        """Simulate the server going away."""
        self._inbox.put_nowait(None)

    @property
    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    @property
    def requests(self) -> list[dict[str, Any]]:
        return [frame for frame in self.frames if "id" in frame]

    def request_id(self, kind: str) -> int:
        """Id of the latest request of the given kind."""
        return [frame["id"] for frame in self.requests if frame["type"] == kind][-1]

    def reply(self, kind: str, result: Any, success: bool = True) -> None:
        self.feed({"id": self.request_id(kind), "type": "result", "success": success, "result": result})

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is None:
            self.state = State.CLOSED
            raise StopAsyncIteration
        return item


class FakeServer:
    """Connector handing out FakeSockets; can refuse a number of attempts."""

    def __init__(self) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []
        self.failures = 0

    async def connect(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if self.failures:
            self.failures -= 1
            raise OSError("Connection refused")
        socket = FakeSocket()
        self.sockets.append(socket)
        return socket

    @property
    def socket(self) -> FakeSocket:
        return self.sockets[-1]


async def _settle(rounds: int = 20) -> None:
    """Let queued tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def ha_payloads() -> dict[str, Any]:
    return copy.deepcopy({
        "config": {"version": "2024.5.1", "location_name": "Home"},
        "states": STATES,
        "floors": FLOORS,
        "areas": AREAS,
        "entities": ENTITIES,
    })


@pytest.fixture
def settle():
    return _settle
