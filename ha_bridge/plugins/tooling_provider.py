"""
Tooling Provider interface.

Tooling Providers feed the conversational layer: a live description of
what they control, and the functions it may call.
"""

from abc import abstractmethod
from typing import Any, Dict, List

from ha_bridge.extension import Extension
from ha_bridge.plugins.base import BridgePlugin


class ToolingProvider(BridgePlugin):
    """
    Base class for tooling providers.

    Every provider publishes into its own Extension:
    - instructions: text describing the current devices
    - function schemas: the functions advertised to the LLM
    - functions: the callables behind those schemas

    Function calls MUST NOT block: they report whether the request was
    sent, never wait for the device.
    """

    extension: Extension

    @abstractmethod
    def get_snapshot(self) -> Dict[str, Any]:
        """
        Get the current device description.

        Returns:
            JSON-compatible dict, safe to hand to concurrent readers.
        """

    def get_function_schemas(self) -> List[Dict[str, Any]]:
        return list(self.extension.function_schemas)

    def get_instructions(self) -> str:
        return self.extension.instructions
