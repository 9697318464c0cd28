"""
Home Assistant Provider - main plugin implementation.

Runs the WebSocket connection and republishes its view to the extension.
"""

import logging
from typing import Any, Dict, List, Optional

from ha_bridge.bridge_logging import get_logger
from ha_bridge.config import HomeAssistantConfig, validate_homeassistant_config
from ha_bridge.extension import INTERNAL_ERROR, Extension, Parameter
from ha_bridge.llm.instructions import render_instructions
from ha_bridge.llm.tools import advertised_function_schemas
from ha_bridge.plugins.tooling_provider import ToolingProvider
from ha_bridge.plugins.homeassistant.connection import HomeAssistantConnection
from ha_bridge.plugins.homeassistant.models import ConnectionState, HomeView

logger = logging.getLogger(__name__)


def build_extension(ws_base_url: Optional[str] = None, access_token: Optional[str] = None) -> Extension:
    """Extension manifest for Home Assistant."""
    ws_base_url_parameter = Parameter(
        name="WS_BASE_URL",
        description="The Web Socket base URL of your Home Assistant server.",
        possible_values=["ws://home-assistant:8123", "wss://home-assistant.mydomain.net"],
        type="url",
        value=ws_base_url,
    )
    access_token_parameter = Parameter(
        name="ACCESS_TOKEN",
        description="The generated long-lived access token.",
        possible_values=["eyJhbGciOiJIUzI1NiIs..."],
        type="password",
        value=access_token,
    )

    return Extension(
        "Home Assistant",
        website="https://www.home-assistant.io/",
        category="home_automation",
        icon=(
            "https://play-lh.googleusercontent.com/bGn6qxUHwqZmgtv7RwgxCzl4Uy26SFQrJljVmoOvoIKWa-"
            "Xty8s0vOUWcgovUAEAKXnI"
        ),
        features=[
            "Lights: Check status, turn on/off",
            "Shutters: Check status, open, close and stop",
            "Scene: Trigger",
            "Sensors: Check status",
        ],
        installation_steps=[
            "Open Home Assistant from a web browser with admin permissions.",
            "Open the `Profile` page by clicking on your username at the bottom left.",
            "Navigate to `Security` tab and scroll down to `Long-lived access tokens` card.",
            "Click on the button `Create Token`, name the token and validate.",
            "Use the generated token to setup the parameter or the environment variable `ACCESS_TOKEN`.",
        ],
        parameters=[ws_base_url_parameter, access_token_parameter],
    )


class HomeAssistantProvider(ToolingProvider):
    """
    Home Assistant Provider plugin.

    Keeps the extension in sync with the live home description and exposes
    update_lights / trigger_scenes / update_shutters as functions.
    """

    def __init__(self, name: str, config: Dict[str, Any]):
        super().__init__(name, config)

        self.ha_config = HomeAssistantConfig(
            ws_base_url=str(config.get("ws_base_url") or "").rstrip("/"),
            access_token=str(config.get("access_token") or ""),
            reconnect_delay_s=float(config.get("reconnect_delay_s", 5.0)),
            refresh_interval_s=float(config.get("refresh_interval_s", 60.0)),
            open_timeout_s=float(config.get("open_timeout_s", 10.0)),
        )
        self.extension = build_extension(self.ha_config.ws_base_url, self.ha_config.access_token)
        self.extension.set_functions([self.trigger_scenes, self.update_lights, self.update_shutters])

        self.connection: Optional[HomeAssistantConnection] = None
        self._view = HomeView()

        # Published before any connection: "no devices" and all schemas
        self._on_view(self._view)

    def start(self) -> None:
        """Validate configuration and start connecting."""
        log = get_logger("HABRIDGE.HomeAssistant")

        try:
            validate_homeassistant_config(self.ha_config)
        except ValueError as e:
            log.error("HABRIDGE.HomeAssistant.InvalidConfig", extra={"fields": {"error": str(e)}})
            self.extension.add_error(str(e))
            raise

        self.connection = HomeAssistantConnection(
            self.ha_config.ws_base_url,
            self.ha_config.access_token,
            reconnect_delay_s=self.ha_config.reconnect_delay_s,
            refresh_interval_s=self.ha_config.refresh_interval_s,
            open_timeout_s=self.ha_config.open_timeout_s,
            connector=self.config.get("connector"),
        )
        self.connection.set_view_callback(self._on_view)
        self.connection.set_version_callback(self.extension.set_software_version)
        self.connection.set_error_callback(self.extension.add_error)
        self.connection.set_clear_errors_callback(self.extension.clear_errors)

        self.extension.enabled = True
        self.connection.start()

        self._mark_started()
        logger.info(f"HomeAssistantProvider started for {self.connection.url}")

    def stop(self) -> None:
        """Stop the connection; the extension falls back to "no devices"."""
        logger.info("Stopping HomeAssistantProvider")

        if self.connection is not None:
            self.connection.stop()

        self.extension.enabled = False
        self._mark_stopped()

    async def wait_closed(self) -> None:
        if self.connection is not None:
            await self.connection.wait_closed()

    def health(self) -> Dict[str, Any]:
        state = self.connection.state if self.connection else ConnectionState.DISCONNECTED
        status = "healthy" if state is ConnectionState.AUTHENTICATED else "degraded"
        view = self._view

        return {
            "status": status,
            "message": f"{state.value}, {len(view.lights)} lights, {len(view.shutters)} shutters, "
                       f"{len(view.sensors)} sensors, {len(view.scenes)} scenes",
            "details": {
                "state": state.value,
                "url": self.connection.url if self.connection else None,
                "software_version": self.extension.software_version,
                "errors": self.extension.errors,
                "pending_requests": self.connection.pending_request_count if self.connection else 0,
            },
        }

    def get_snapshot(self) -> Dict[str, Any]:
        state = self.connection.state if self.connection else ConnectionState.DISCONNECTED
        return {
            "state": state.value,
            "software_version": self.extension.software_version,
            **self._view.as_dict(),
        }

    def _on_view(self, view: HomeView) -> None:
        """Republish instructions and function schemas for a new view."""
        self._view = view
        self.extension.set_instructions(render_instructions(view))
        self.extension.set_function_schemas(advertised_function_schemas(view))

    # --- Functions ------------------------------------------------------

    def trigger_scenes(self, ids: List[str]) -> str:
        if self.connection is None:
            return INTERNAL_ERROR
        return self.connection.trigger_scenes(ids)

    def update_lights(self, action: str, ids: List[str]) -> str:
        if self.connection is None:
            return INTERNAL_ERROR
        return self.connection.update_lights(action, ids)

    def update_shutters(self, action: str, ids: List[str]) -> str:
        if self.connection is None:
            return INTERNAL_ERROR
        return self.connection.update_shutters(action, ids)
