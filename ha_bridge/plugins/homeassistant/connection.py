"""
Home Assistant WebSocket connection.

Owns the single socket to the controller and drives it as a state machine:

    DISCONNECTED --reconnect timer--> CONNECTING --opened--> AUTH_PENDING
    AUTH_PENDING --auth_ok--> AUTHENTICATED (refresh cycle armed)
    any state --closed--> DISCONNECTED (view cleared, reconnect armed)

Every handler runs on the event loop thread, so the pending-request table,
caches and derived view need no locking.
"""

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from ha_bridge.bridge_logging import get_logger
from ha_bridge.extension import DONE, INTERNAL_ERROR
from ha_bridge.plugins.homeassistant import protocol
from ha_bridge.plugins.homeassistant.models import (
    Closed,
    ConnectionEvent,
    ConnectionState,
    EntityCaches,
    Errored,
    Floor,
    HomeView,
    Light,
    MessageReceived,
    Opened,
    ReconnectTimerFired,
    RefreshTimerFired,
    Room,
    Scene,
    Sensor,
    Shutter,
)
from ha_bridge.plugins.homeassistant.normalizer import HomeAssistantNormalizer

logger = logging.getLogger(__name__)
log = get_logger("HABRIDGE.Connection")

UNREACHABLE_MESSAGE = "Server unreachable"
AUTH_FAILURE_MESSAGE = "Authentication failure"

LIGHT_ACTIONS = ("on", "off")
SHUTTER_ACTIONS = ("open", "close", "stop")

Connector = Callable[[str], Awaitable[Any]]


class HomeAssistantConnection:
    """
    Connection & synchronization manager for the Home Assistant WebSocket API.

    Responsibilities:
    - Socket lifecycle (connect, authenticate, constant-delay reconnect)
    - Periodic refresh of config, states and registries
    - Reconciliation of results into the derived view
    - Fire-and-forget service calls (lights, shutters, scenes)
    """

    # (state, event type) → handler name
    _TRANSITIONS = {
        (ConnectionState.DISCONNECTED, ReconnectTimerFired): "_open_session",
        (ConnectionState.CONNECTING, Opened): "_authenticate",
        (ConnectionState.AUTH_PENDING, MessageReceived): "_handle_auth_message",
        (ConnectionState.AUTHENTICATED, MessageReceived): "_handle_message",
        (ConnectionState.AUTHENTICATED, RefreshTimerFired): "_refresh",
    }

    # Handled whatever the current state
    _ANY_STATE = {
        Errored: "_report_error",
        Closed: "_teardown",
    }

    def __init__(
        self,
        ws_base_url: str,
        access_token: str,
        *,
        reconnect_delay_s: float = 5.0,
        refresh_interval_s: float = 60.0,
        open_timeout_s: float = 10.0,
        connector: Optional[Connector] = None,
    ):
        self.url = protocol.websocket_url(ws_base_url)
        self._access_token = access_token
        self.reconnect_delay_s = reconnect_delay_s
        self.refresh_interval_s = refresh_interval_s
        self.open_timeout_s = open_timeout_s
        self._connector: Connector = connector or self._open_socket

        self.state = ConnectionState.DISCONNECTED
        self.software_version: Optional[str] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False
        self._session = 0
        self._session_task: Optional[asyncio.Task] = None
        self._socket: Any = None
        self._outbox: Optional[asyncio.Queue] = None
        self._close_requested = False

        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._refresh_handle: Optional[asyncio.TimerHandle] = None

        # Request id → request kind, for the current socket only
        self._next_id = 1
        self._pending: Dict[int, str] = {}

        self._caches = EntityCaches()
        self._floors: List[Floor] = []
        self._rooms: List[Room] = []
        self._lights: List[Light] = []
        self._shutters: List[Shutter] = []
        self._sensors: List[Sensor] = []
        self._scenes: List[Scene] = []

        self._view_callback: Callable[[HomeView], None] = lambda view: None
        self._version_callback: Callable[[str], None] = lambda version: None
        self._error_callback: Callable[[str], None] = lambda message: None
        self._clear_errors_callback: Callable[[], None] = lambda: None

    # --- Callbacks ------------------------------------------------------

    def set_view_callback(self, callback: Callable[[HomeView], None]) -> None:
        """Called synchronously after every reconciliation and teardown."""
        self._view_callback = callback

    def set_version_callback(self, callback: Callable[[str], None]) -> None:
        self._version_callback = callback

    def set_error_callback(self, callback: Callable[[str], None]) -> None:
        self._error_callback = callback

    def set_clear_errors_callback(self, callback: Callable[[], None]) -> None:
        self._clear_errors_callback = callback

    # --- Lifecycle ------------------------------------------------------

    def start(self) -> None:
        """
        Start connecting. Must be called from the event loop thread.

        Starting is an immediate reconnect tick: the first attempt goes
        through the same transition as every later one.
        """
        if self._running:
            return

        self._loop = asyncio.get_running_loop()
        self._running = True
        log.info("HABRIDGE.Connection.Starting", extra={"fields": {
            "url": self.url,
            "reconnect_delay_s": self.reconnect_delay_s,
            "refresh_interval_s": self.refresh_interval_s,
        }})
        self.dispatch(ReconnectTimerFired())

    def stop(self) -> None:
        """Stop the connection. No reconnect is scheduled afterwards."""
        if not self._running:
            return

        self._running = False
        self._cancel_reconnect()
        self._cancel_refresh()

        # Late events from the current socket become stale
        self._session += 1
        task = self._session_task
        if task is not None and not task.done():
            task.cancel()

        self._socket = None
        self._outbox = None
        self.state = ConnectionState.DISCONNECTED
        self._reset()
        self._publish()
        logger.info("Home Assistant connection stopped")

    async def wait_closed(self) -> None:
        """Wait for the socket task cancelled by stop() to finish."""
        task = self._session_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # --- State machine --------------------------------------------------

    def dispatch(self, event: ConnectionEvent) -> None:
        """Apply one event to the state machine."""
        if event.session and event.session != self._session:
            logger.debug(f"Dropping stale {type(event).__name__} from session {event.session}")
            return

        event_type = type(event)
        handler_name = self._TRANSITIONS.get((self.state, event_type)) or self._ANY_STATE.get(event_type)
        if handler_name is None:
            logger.debug(f"Ignoring {event_type.__name__} in state {self.state.value}")
            return

        try:
            getattr(self, handler_name)(event)
        except Exception as e:
            log.error("HABRIDGE.Connection.HandlerError", extra={"fields": {
                "state": self.state.value,
                "event": event_type.__name__,
                "error": repr(e),
            }})

    def _open_session(self, event: ReconnectTimerFired) -> None:
        if not self._running:
            return

        self._cancel_reconnect()
        self._reset()
        self._session += 1
        self._close_requested = False
        self.state = ConnectionState.CONNECTING

        log.info("HABRIDGE.Connection.Connecting", extra={"fields": {
            "url": self.url,
            "session": self._session,
        }})
        self._session_task = self._loop.create_task(self._run_session(self._session))

    def _authenticate(self, event: Opened) -> None:
        self.state = ConnectionState.AUTH_PENDING
        self._next_id = 1
        self._pending.clear()

        logger.info(f"Connected to {self.url}, authenticating")
        self._outbox.put_nowait(protocol.auth_frame(self._access_token))

    def _handle_auth_message(self, event: MessageReceived) -> None:
        data = protocol.parse_frame(event.raw)
        if data is None:
            return

        frame_type = data["type"]
        if frame_type == protocol.AUTH_OK:
            self.state = ConnectionState.AUTHENTICATED
            log.info("HABRIDGE.Connection.Authenticated", extra={"fields": {
                "ha_version": data.get("ha_version"),
            }})
            self._clear_errors_callback()
            self._refresh(event)

        elif frame_type == protocol.AUTH_INVALID:
            message = data.get("message") or AUTH_FAILURE_MESSAGE
            log.error("HABRIDGE.Connection.AuthFailed", extra={"fields": {"message": message}})
            self._error_callback(message)

            # Never retry authentication on the same socket
            self._next_id = 1
            self._pending.clear()
            self._schedule_reconnect()
            self._close_requested = True

        else:
            logger.debug(f"Ignoring {frame_type} before authentication")

    def _handle_message(self, event: MessageReceived) -> None:
        data = protocol.parse_frame(event.raw)
        if data is None or data["type"] != protocol.RESULT:
            return

        request_id = data.get("id")
        kind = self._pending.pop(request_id, None) if isinstance(request_id, int) else None

        if not data.get("success"):
            log.warning("HABRIDGE.Connection.RequestFailed", extra={"fields": {
                "id": request_id,
                "kind": kind,
                "error": data.get("error"),
            }})
            return

        if kind is None:
            logger.debug(f"Ignoring result for unknown request id {request_id!r}")
            return

        self._reconcile(kind, data.get("result"))
        self._publish()

    def _refresh(self, event: ConnectionEvent) -> None:
        self._cancel_refresh()

        sent = sum(1 for kind in protocol.REFRESH_REQUESTS if self.call(kind))
        logger.debug(f"Refresh cycle: {sent}/{len(protocol.REFRESH_REQUESTS)} requests sent")

        self._refresh_handle = self._loop.call_later(
            self.refresh_interval_s, self.dispatch, RefreshTimerFired()
        )

    def _report_error(self, event: Errored) -> None:
        log.error("HABRIDGE.Connection.Error", extra={"fields": {
            "url": self.url,
            "state": self.state.value,
            "error": event.message,
        }})
        if event.message:
            self._error_callback(event.message)

    def _teardown(self, event: Closed) -> None:
        previous = self.state
        self.state = ConnectionState.DISCONNECTED
        self._socket = None
        self._outbox = None

        self._reset()
        self._cancel_refresh()
        self._schedule_reconnect()

        log.warning("HABRIDGE.Connection.Disconnected", extra={"fields": {
            "url": self.url,
            "previous_state": previous.value,
            "retry_in_s": self.reconnect_delay_s,
        }})
        self._publish()
        self._error_callback(UNREACHABLE_MESSAGE)

    # --- Reconciliation -------------------------------------------------

    def _reconcile(self, kind: str, payload: Any) -> None:
        if kind == protocol.GET_CONFIG:
            version = HomeAssistantNormalizer.normalize_version(payload)
            if version is not None:
                self.software_version = version
                self._version_callback(version)

        elif kind == protocol.GET_STATES:
            merged = HomeAssistantNormalizer.merge_states(self._caches, payload)
            logger.debug(f"Merged {merged} entity states")

        elif kind == protocol.FLOOR_REGISTRY_LIST:
            self._floors = HomeAssistantNormalizer.normalize_floors(payload)

        elif kind == protocol.AREA_REGISTRY_LIST:
            self._rooms = HomeAssistantNormalizer.normalize_areas(payload)

        elif kind == protocol.ENTITY_REGISTRY_LIST:
            (
                self._lights,
                self._shutters,
                self._sensors,
                self._scenes,
            ) = HomeAssistantNormalizer.normalize_entities(payload, self._caches)

            log.info("HABRIDGE.Connection.Reconciled", extra={"fields": {
                "floors": len(self._floors),
                "rooms": len(self._rooms),
                "lights": len(self._lights),
                "shutters": len(self._shutters),
                "sensors": len(self._sensors),
                "scenes": len(self._scenes),
            }})

        else:
            log.info("HABRIDGE.Connection.Result", extra={"fields": {
                "kind": kind,
                "result": payload,
            }})

    @property
    def view(self) -> HomeView:
        return HomeView(
            floors=tuple(self._floors),
            rooms=tuple(self._rooms),
            lights=tuple(self._lights),
            shutters=tuple(self._shutters),
            sensors=tuple(self._sensors),
            scenes=tuple(self._scenes),
        )

    def _publish(self) -> None:
        try:
            self._view_callback(self.view)
        except Exception as e:
            log.error("HABRIDGE.Connection.PublishError", extra={"fields": {
                "state": self.state.value,
                "error": repr(e),
            }})

    def _reset(self) -> None:
        self._next_id = 1
        self._pending.clear()
        self._caches.clear()
        self._floors = []
        self._rooms = []
        self._lights = []
        self._shutters = []
        self._sensors = []
        self._scenes = []

    # --- Requests -------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._socket is not None and self._outbox is not None and self._socket.state is State.OPEN

    @property
    def pending_request_count(self) -> int:
        return len(self._pending)

    def call(self, kind: str, **params: Any) -> bool:
        """
        Queue a request frame on the open socket.

        Returns:
            False when the socket is not open (nothing is queued)
        """
        if not self.is_open:
            return False

        request_id = self._next_id
        self._outbox.put_nowait(protocol.request_frame(kind, request_id, **params))
        self._pending[request_id] = kind
        self._next_id += 1
        return True

    def trigger_scenes(self, ids: Iterable[str]) -> str:
        return self._call_services("scene", "turn_on", ids)

    def update_lights(self, action: str, ids: Iterable[str]) -> str:
        if action not in LIGHT_ACTIONS:
            log.error("HABRIDGE.Connection.InvalidAction", extra={"fields": {"domain": "light", "action": action}})
            return INTERNAL_ERROR
        return self._call_services("light", f"turn_{action}", ids)

    def update_shutters(self, action: str, ids: Iterable[str]) -> str:
        if action not in SHUTTER_ACTIONS:
            log.error("HABRIDGE.Connection.InvalidAction", extra={"fields": {"domain": "cover", "action": action}})
            return INTERNAL_ERROR
        return self._call_services("cover", f"{action}_cover", ids)

    def _call_services(self, domain: str, service: str, ids: Iterable[str]) -> str:
        """
        Send one ``call_service`` frame per entity id.

        Stops at the first id that cannot be sent; frames already queued are
        not recalled. Success means "sent", not "applied".
        """
        for entity_id in ids:
            params = protocol.service_call_params(domain, service, entity_id)
            if not self.call(protocol.CALL_SERVICE, **params):
                log.error("HABRIDGE.Connection.CommandNotSent", extra={"fields": {
                    "domain": domain,
                    "service": service,
                    "entity_id": entity_id,
                    "state": self.state.value,
                }})
                return INTERNAL_ERROR

            log.info("HABRIDGE.Connection.CommandSent", extra={"fields": {
                "domain": domain,
                "service": service,
                "entity_id": entity_id,
            }})
        return DONE

    # --- Timers ---------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if not self._running:
            return
        self._cancel_reconnect()
        self._reconnect_handle = self._loop.call_later(
            self.reconnect_delay_s, self.dispatch, ReconnectTimerFired()
        )

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _cancel_refresh(self) -> None:
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None

    # --- Socket I/O -----------------------------------------------------

    async def _open_socket(self, url: str) -> Any:
        # Registry listings of large installations exceed the 1 MiB default
        return await ws_connect(url, open_timeout=self.open_timeout_s, max_size=None)

    async def _run_session(self, session: int) -> None:
        try:
            socket = await self._connector(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self.dispatch(Errored(session, message=str(e) or type(e).__name__))
            self.dispatch(Closed(session))
            return

        if session != self._session:
            await socket.close()
            return

        outbox: asyncio.Queue = asyncio.Queue()
        writer = asyncio.create_task(self._write_loop(socket, outbox))
        self._socket = socket
        self._outbox = outbox

        try:
            self.dispatch(Opened(session))
            async for raw in socket:
                self.dispatch(MessageReceived(session, raw=raw))
                if self._close_requested and session == self._session:
                    break
        except ConnectionClosed as e:
            self.dispatch(Errored(session, message=str(e)))
        finally:
            writer.cancel()
            await socket.close()
            self.dispatch(Closed(session))

    async def _write_loop(self, socket: Any, outbox: asyncio.Queue) -> None:
        while True:
            frame = await outbox.get()
            try:
                await socket.send(frame)
            except ConnectionClosed:
                # The reader reports the close
                return
