"""
Base plugin interface for the bridge.

All plugins implement the same start/stop/health lifecycle.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)


class BridgePlugin(ABC):
    """
    Base class for bridge plugins.

    Lifecycle:
    - start(): Open connections, arm timers. Called from the event loop.
    - stop(): Cancel timers, close connections. Must be idempotent.
    - health(): Report current status
    """

    def __init__(self, name: str, config: Dict[str, Any]):
        """
        Args:
            name: Unique plugin identifier
            config: Plugin-specific configuration dict
        """
        self.name = name
        self.config = config
        self._started = False
        self._logger = logging.getLogger(f"ha_bridge.plugin.{name}")

    @abstractmethod
    def start(self) -> None:
        """
        Start the plugin.

        Raises:
            Exception: If the configuration cannot be used
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop the plugin."""

    @abstractmethod
    def health(self) -> Dict[str, Any]:
        """
        Report plugin health.

        Returns:
            {
                "status": "healthy" | "degraded" | "unhealthy",
                "message": str,
                "details": dict
            }
        """

    def _mark_started(self) -> None:
        self._started = True
        self._logger.info(f"Plugin {self.name} started")

    def _mark_stopped(self) -> None:
        self._started = False
        self._logger.info(f"Plugin {self.name} stopped")

    @property
    def is_started(self) -> bool:
        return self._started
