"""Data objects exchanged with the Mixing Station app."""

import logging
from enum import Enum
from typing import Any, Optional, Union

from pymixingstation.errors import MixingStationResponseError

ValueType = Union[str, int, float, bool]

_LOGGER = logging.getLogger(__name__)


class ConnectionState(Enum):
    """State of the websocket owned by the connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class TopState(Enum):
    """Top level session state of the app towards its mixer."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class AppState:
    """Last app state pushed by Mixing Station on /app/state."""

    def __init__(self, state: str, top_state: TopState, message: Optional[str] = None,
                 progress: Optional[float] = None):
        self._state = state
        self._top_state = top_state
        self._message = message
        self._progress = progress

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> "AppState":
        raw_top_state = body.get("topState", TopState.IDLE.value)
        try:
            top_state = TopState(raw_top_state)
        except ValueError:
            _LOGGER.warning(f"Unknown top state '{raw_top_state}', treating as idle")
            top_state = TopState.IDLE
        return cls(
            state=body.get("state", ""),
            top_state=top_state,
            message=body.get("msg"),
            progress=body.get("progress"),
        )

    @property
    def state(self) -> str:
        return self._state

    @property
    def top_state(self) -> TopState:
        return self._top_state

    @property
    def message(self) -> Optional[str]:
        return self._message

    @property
    def progress(self) -> Optional[float]:
        return self._progress

    @property
    def is_mixer_connected(self) -> bool:
        """Whether the app currently has a mixer (or offline session) running."""
        return self._top_state is TopState.CONNECTED

    def __repr__(self):
        return f"AppState(state={self._state!r}, top_state={self._top_state.value})"


class Value:
    """A parameter value as returned by /console/data/get."""

    def __init__(self, value: ValueType, value_format: str = "val"):
        self.value = value
        self.format = value_format

    @classmethod
    def from_dict(cls, body: Any) -> "Value":
        if not isinstance(body, dict):
            raise MixingStationResponseError(f"Expected a value object, got {body!r}")
        return cls(body.get("value"), body.get("format", "val"))

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return self.value == other.value and self.format == other.format

    def __repr__(self):
        return f"Value({self.value!r}, {self.format!r})"


class EnumValue:
    """One discrete state of an enumerated parameter."""

    def __init__(self, enum_id: int, name: str):
        self.id = enum_id
        self.name = name

    def __repr__(self):
        return f"EnumValue({self.id!r}, {self.name!r})"


class ValueDefinition:
    """Definition of a parameter (type, range and enum list) from /console/data/definitions2."""

    def __init__(self, value_type: Optional[str], enums: Optional[list[EnumValue]] = None,
                 minimum: Optional[float] = None, maximum: Optional[float] = None,
                 unit: Optional[str] = None):
        self.type = value_type
        self.enums = enums
        self.min = minimum
        self.max = maximum
        self.unit = unit

    @classmethod
    def from_dict(cls, body: Optional[dict[str, Any]]) -> Optional["ValueDefinition"]:
        """Build from a definitions2 response body, None if the body has no value definition."""
        if not isinstance(body, dict):
            return None
        value = body.get("value")
        if not isinstance(value, dict):
            return None
        enums = value.get("enums")
        if isinstance(enums, list):
            # Entries that aren't objects are skipped
            enums = [
                EnumValue(entry.get("id"), entry.get("name", ""))
                for entry in enums
                if isinstance(entry, dict)
            ]
        else:
            enums = None
        return cls(
            value_type=value.get("type"),
            enums=enums,
            minimum=value.get("min"),
            maximum=value.get("max"),
            unit=value.get("unit"),
        )

    def next_enum_id(self, current_id) -> Optional[int]:
        """Id of the enum after current_id in declared order, wrapping to the first.

        Returns None if the parameter has no enums or current_id isn't one of them.
        """
        if not self.enums:
            return None
        for index, entry in enumerate(self.enums):
            if entry.id == current_id:
                return self.enums[(index + 1) % len(self.enums)].id
        return None


class DataPaths:
    """Tree of all parameter paths of the current mixer (/console/data/paths)."""

    def __init__(self, tree: Optional[dict[str, Any]]):
        self._tree = tree or {}

    @property
    def tree(self) -> dict[str, Any]:
        return self._tree

    def value_paths(self) -> list[str]:
        """Flatten the tree into dot separated parameter paths, e.g. ch.0.mix.on."""
        return self._collect(self._tree.get("child") or {}, "")

    def _collect(self, children: dict[str, Any], prefix: str) -> list[str]:
        paths: list[str] = []
        for key, child in children.items():
            if not isinstance(child, dict):
                continue
            if "val" in child:
                paths.extend(f"{prefix}{key}.{name}" for name in child["val"])
            if "child" in child:
                paths.extend(self._collect(child["child"], f"{prefix}{key}."))
        return paths


class Console:
    """A console type the app can connect to or simulate offline."""

    def __init__(self, console_id: int, manufacturer: str, name: str,
                 models: Optional[list[str]] = None,
                 supported_hardware_models: Optional[list[str]] = None,
                 model_enums: Optional[list[EnumValue]] = None):
        self.console_id = console_id
        self.manufacturer = manufacturer
        self.name = name
        self.models = models or []
        self.supported_hardware_models = supported_hardware_models or []
        self.model_enums = model_enums or []

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> "Console":
        return cls(
            console_id=body.get("consoleId"),
            manufacturer=body.get("manufacturer", ""),
            name=body.get("name", ""),
            models=body.get("models"),
            supported_hardware_models=body.get("supportedHardwareModels"),
            model_enums=[
                EnumValue(entry.get("id"), entry.get("name", ""))
                for entry in body.get("modelEnums") or []
            ],
        )

    @property
    def label(self) -> str:
        return f"{self.manufacturer} {self.name}"

    def __repr__(self):
        return f"Console({self.console_id!r}, {self.label!r})"


class ConsoleList:
    """Consoles reported by /app/mixers/available."""

    def __init__(self, consoles: list[Console]):
        self.consoles = consoles

    @classmethod
    def from_dict(cls, body: Optional[dict[str, Any]]) -> "ConsoleList":
        consoles = (body or {}).get("consoles") or []
        return cls([Console.from_dict(entry) for entry in consoles])

    def get(self, console_id: int) -> Optional[Console]:
        for console in self.consoles:
            if console.console_id == console_id:
                return console
        return None


class VariableDefinition:
    """A host variable mirroring one subscribed path."""

    def __init__(self, variable_id: str, name: str):
        self.variable_id = variable_id
        self.name = name

    @staticmethod
    def variable_id_for(path: str) -> str:
        return "mixer_" + path.replace(".", "-")

    @classmethod
    def for_path(cls, path: str) -> "VariableDefinition":
        return cls(cls.variable_id_for(path), f"Mixer: {path}")

    def __eq__(self, other):
        if not isinstance(other, VariableDefinition):
            return NotImplemented
        return self.variable_id == other.variable_id and self.name == other.name

    def __repr__(self):
        return f"VariableDefinition({self.variable_id!r}, {self.name!r})"
