"""
Environment configuration for the Home Assistant bridge.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class HomeAssistantConfig:
    ws_base_url: str
    access_token: str
    reconnect_delay_s: float = 5.0
    refresh_interval_s: float = 60.0
    open_timeout_s: float = 10.0


def _opt_float(name: str, default: float) -> float:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def bridge_enabled() -> bool:
    return os.environ.get("HA_BRIDGE_ENABLED", "1").strip().lower() in _TRUTHY


def load_homeassistant_config() -> HomeAssistantConfig:
    return HomeAssistantConfig(
        ws_base_url=os.environ.get("WS_BASE_URL", "").strip().rstrip("/"),
        access_token=os.environ.get("ACCESS_TOKEN", "").strip(),
        reconnect_delay_s=_opt_float("HA_BRIDGE_RECONNECT_DELAY_S", 5.0),
        refresh_interval_s=_opt_float("HA_BRIDGE_REFRESH_INTERVAL_S", 60.0),
        open_timeout_s=_opt_float("HA_BRIDGE_OPEN_TIMEOUT_S", 10.0),
    )


def validate_homeassistant_config(cfg: HomeAssistantConfig) -> None:
    """Raise ValueError when the connection parameters cannot be used."""
    if not cfg.ws_base_url:
        raise ValueError("WS_BASE_URL is required")
    if not cfg.ws_base_url.startswith(("ws://", "wss://")):
        raise ValueError(f"WS_BASE_URL must start with ws:// or wss:// (got {cfg.ws_base_url!r})")
    if not cfg.access_token:
        raise ValueError("ACCESS_TOKEN is required")
    if cfg.reconnect_delay_s <= 0:
        raise ValueError("HA_BRIDGE_RECONNECT_DELAY_S must be positive")
    if cfg.refresh_interval_s <= 0:
        raise ValueError("HA_BRIDGE_REFRESH_INTERVAL_S must be positive")
