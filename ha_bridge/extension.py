"""
Host-facing extension surface.

Holds everything the conversational layer reads: the manifest, connection
parameters, current errors, controller version, rendered instructions and
the advertised function schemas, plus the callables behind them.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

# Terminal status strings returned by registered functions
DONE = "Done."
INTERNAL_ERROR = "Error during internal request."


@dataclass
class Parameter:
    """A configuration value collected by the host."""

    name: str
    description: str = ""
    possible_values: List[str] = field(default_factory=list)
    type: str = "text"  # "text", "url" or "password"
    value: Optional[str] = None

    def describe(self) -> Dict[str, Any]:
        """Public description; password values are never exposed."""
        has_value = bool(self.value)
        return {
            "name": self.name,
            "description": self.description,
            "possible_values": list(self.possible_values),
            "type": self.type,
            "value": ("********" if has_value else None) if self.type == "password" else self.value,
        }


class Extension:
    """
    State published to the host.

    Errors are an ordered list without duplicates; the last one is the
    error currently displayed.
    """

    def __init__(
        self,
        name: str,
        *,
        website: str = "",
        category: str = "",
        icon: str = "",
        features: Optional[List[str]] = None,
        installation_steps: Optional[List[str]] = None,
        parameters: Optional[List[Parameter]] = None,
    ):
        self.name = name
        self.website = website
        self.category = category
        self.icon = icon
        self.features = list(features or [])
        self.installation_steps = list(installation_steps or [])
        self.parameters = list(parameters or [])

        self.enabled = False
        self.software_version: Optional[str] = None
        self.instructions = ""
        self.function_schemas: List[Dict[str, Any]] = []
        self._errors: List[str] = []
        self._functions: Dict[str, Callable[..., str]] = {}

    # --- Errors ---------------------------------------------------------

    def add_error(self, message: str) -> None:
        if message in self._errors:
            self._errors.remove(message)
        self._errors.append(message)

    def clear_errors(self) -> None:
        self._errors.clear()

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    @property
    def error(self) -> Optional[str]:
        return self._errors[-1] if self._errors else None

    # --- Published state ------------------------------------------------

    def set_software_version(self, version: str) -> None:
        self.software_version = version

    def set_instructions(self, instructions: str) -> None:
        self.instructions = instructions

    def set_function_schemas(self, schemas: List[Dict[str, Any]]) -> None:
        self.function_schemas = list(schemas)

    def set_functions(self, functions: List[Callable[..., str]]) -> None:
        """Register callables under their ``__name__``."""
        self._functions = {fn.__name__: fn for fn in functions}

    @property
    def function_names(self) -> List[str]:
        return list(self._functions.keys())

    def get_function(self, name: str) -> Optional[Callable[..., str]]:
        return self._functions.get(name)

    def get_parameter(self, name: str) -> Optional[Parameter]:
        return next((p for p in self.parameters if p.name == name), None)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "website": self.website,
            "category": self.category,
            "icon": self.icon,
            "features": list(self.features),
            "installation_steps": list(self.installation_steps),
            "parameters": [p.describe() for p in self.parameters],
            "enabled": self.enabled,
            "software_version": self.software_version,
            "error": self.error,
            "errors": self.errors,
            "functions": self.function_names,
        }
