from abc import ABC, abstractmethod
from typing import List
import logging

from pymixingstation.model import AppState, ValueType, VariableDefinition


class MixingStationListener(ABC):

    @abstractmethod
    def connected(self):
        pass

    @abstractmethod
    def connection_lost(self, reason: str):
        pass

    def app_state_changed(self, state: AppState):
        """Called on every /app/state push."""
        pass

    def value_changed(self, path: str, value: ValueType):
        """Called when a value push or get response for path arrives."""
        pass

    def observers_changed(self, observer_ids: list[str]):
        """Called once per value change with every observer watching the changed path."""
        pass

    def variable_definitions_changed(self, definitions: list[VariableDefinition]):
        """Called when the set of subscribed paths (and so of variables) changes."""
        pass

    def variable_values_changed(self, values: dict[str, ValueType]):
        # By default, do nothing but can be overwritten to be notified of these messages.
        pass


class MultiplexingListener(MixingStationListener):

    _listeners: List[MixingStationListener]

    def __init__(self):
        self._listeners = []
        self._logger = logging.getLogger(__name__)

    def _dispatch(self, method: str, *args):
        # Iterate over a copy, listeners may unregister themselves while being notified
        for listener in list(self._listeners):
            try:
                getattr(listener, method)(*args)
            except Exception as e:
                self._logger.error(f"Exception in {method}() callback of {listener!r}: {e}", exc_info=True)

    def connected(self):
        self._dispatch("connected")

    def connection_lost(self, reason: str):
        self._dispatch("connection_lost", reason)

    def app_state_changed(self, state: AppState):
        self._dispatch("app_state_changed", state)

    def value_changed(self, path: str, value: ValueType):
        self._dispatch("value_changed", path, value)

    def observers_changed(self, observer_ids: list[str]):
        self._dispatch("observers_changed", observer_ids)

    def variable_definitions_changed(self, definitions: list[VariableDefinition]):
        self._dispatch("variable_definitions_changed", definitions)

    def variable_values_changed(self, values: dict[str, ValueType]):
        self._dispatch("variable_values_changed", values)

    def register_listener(self, listener: MixingStationListener):
        self._listeners.append(listener)

    def unregister_listener(self, listener: MixingStationListener):
        if listener in self._listeners:
            self._listeners.remove(listener)
        else:
            self._logger.info("Listener isn't registered")


class LoggingListener(MixingStationListener):

    def __init__(self, logger=logging):
        self.logger = logger

    def connected(self):
        self.logger.info("Connected")

    def connection_lost(self, reason: str):
        self.logger.info(f"Connection lost: {reason}")

    def app_state_changed(self, state: AppState):
        self.logger.info(f"App state: {state.state} ({state.top_state.value})")

    def value_changed(self, path: str, value: ValueType):
        self.logger.info(f"{path} changed to: {value}")

    def observers_changed(self, observer_ids: list[str]):
        self.logger.debug(f"Observers to refresh: {observer_ids}")

    def variable_definitions_changed(self, definitions: list[VariableDefinition]):
        self.logger.info(f"Variables: {[d.variable_id for d in definitions]}")

    def variable_values_changed(self, values: dict[str, ValueType]):
        for variable_id, value in values.items():
            self.logger.debug(f"Variable {variable_id}: {value}")
