from __future__ import annotations

import contextlib
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException

from ha_bridge.bridge_logging import get_logger
from ha_bridge.config import bridge_enabled, load_homeassistant_config
from ha_bridge.llm.tools import execute_tool
from ha_bridge.plugins.registry import PluginRegistry
from ha_bridge.plugins.homeassistant import HomeAssistantProvider


log = get_logger("HABRIDGE")

PLUGIN_NAME = "homeassistant"


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.plugin_registry = PluginRegistry()
    try:
        if bridge_enabled():
            app.state.plugin_registry.register_plugin_class(PLUGIN_NAME, HomeAssistantProvider)
            cfg = load_homeassistant_config()
            app.state.plugin_registry.create_plugin(PLUGIN_NAME, asdict(cfg))
            log.info(
                "HABRIDGE.Plugins.Enabled",
                extra={
                    "fields": {
                        "ws_base_url": cfg.ws_base_url,
                        "reconnect_delay_s": cfg.reconnect_delay_s,
                        "refresh_interval_s": cfg.refresh_interval_s,
                    }
                },
            )
            app.state.plugin_registry.start_all()
        else:
            log.info("HABRIDGE.Plugins.Disabled", extra={"fields": {}})
    except Exception as e:
        # Never fail server startup due to the controller configuration.
        log.error("HABRIDGE.Plugins.NotEnabled", extra={"fields": {"error": repr(e)}})

    yield

    plugin_registry = getattr(app.state, "plugin_registry", None)
    if plugin_registry is not None:
        try:
            log.info("HABRIDGE.Plugins.Stopping")
            plugin_registry.stop_all()
            for plugin in plugin_registry.get_plugins_by_type(HomeAssistantProvider):
                with contextlib.suppress(Exception):
                    await plugin.wait_closed()
            log.info("HABRIDGE.Plugins.Stopped")
        except Exception as e:
            log.error("HABRIDGE.Plugins.StopError", extra={"fields": {"error": repr(e)}})


app = FastAPI(title="Home Assistant bridge", lifespan=lifespan)


def _provider(*, require_started: bool = True) -> HomeAssistantProvider:
    plugin_registry = getattr(app.state, "plugin_registry", None)
    if plugin_registry is None:
        raise HTTPException(status_code=503, detail="Plugin system not enabled")

    provider = plugin_registry.get_plugin(PLUGIN_NAME)
    if provider is None or not isinstance(provider, HomeAssistantProvider):
        raise HTTPException(status_code=503, detail="Home Assistant provider not available")

    if require_started and not provider.is_started:
        raise HTTPException(status_code=503, detail="Home Assistant provider not started")

    return provider


@app.get("/healthz")
async def healthz() -> dict[str, Any]:
    response: dict[str, Any] = {"status": "ok"}

    plugin_registry = getattr(app.state, "plugin_registry", None)
    if plugin_registry is not None and plugin_registry.plugin_count > 0:
        response["plugins"] = plugin_registry.health_all()

    return response


@app.get("/api/extension")
async def get_extension() -> dict[str, Any]:
    """Manifest, parameters, errors and controller version."""
    return _provider(require_started=False).extension.describe()


@app.get("/api/instructions")
async def get_instructions() -> dict[str, Any]:
    return {"instructions": _provider(require_started=False).get_instructions()}


@app.get("/api/functions")
async def get_functions() -> list[dict[str, Any]]:
    return _provider(require_started=False).get_function_schemas()


@app.post("/api/functions/{name}")
async def call_function(name: str, request: dict[str, Any]) -> dict[str, Any]:
    """
    Call an advertised function.

    Request body:
        {
            "args": dict    # e.g. {"action": "on", "ids": ["light.kitchen"]}
        }

    Response:
        {"result": "Done."} or {"result": "Error during internal request."}
    """
    provider = _provider(require_started=False)

    args = request.get("args", {})
    if not isinstance(args, dict):
        raise HTTPException(status_code=400, detail="Invalid 'args' parameter (must be dict)")

    try:
        result = await execute_tool(provider.extension, name, args)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown function: {name}")

    return {"result": result}


@app.get("/api/homeassistant/snapshot")
async def get_snapshot() -> dict[str, Any]:
    """Derived view and connection state."""
    return _provider().get_snapshot()
