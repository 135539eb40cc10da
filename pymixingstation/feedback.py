"""Reference counted subscriptions and the value cache behind them.

Many observers (feedbacks in the host) may watch the same path. The app only
needs one subscription per path: it is made for the first observer and dropped
with the last one.
"""

import logging
from typing import TYPE_CHECKING, Optional

from pymixingstation.listener import MixingStationListener
from pymixingstation.model import AppState, ValueType, VariableDefinition

if TYPE_CHECKING:
    from pymixingstation.mixer import MixingStation


class FeedbackHandler(MixingStationListener):
    """Tracks observers per path, keeps the last value of every subscribed path
    and publishes changes to the client's listeners."""

    def __init__(self, mixer: "MixingStation", callback: MixingStationListener):
        self._logger = logging.getLogger(__name__)
        self._mixer = mixer
        self._callback = callback
        # observer id -> path
        self._observers: dict[str, str] = {}
        # path -> number of observers
        self._subscriptions: dict[str, int] = {}
        # path -> last value received
        self._value_cache: dict[str, ValueType] = {}

    # ========== Observers ==========

    def add_observer(self, observer_id: str, path: str):
        if observer_id in self._observers:
            # Might get called multiple times during host initialization
            self._logger.debug(f"Observer {observer_id} already subscribed")
            return
        self._observers[observer_id] = path

        if path in self._subscriptions:
            self._subscriptions[path] += 1
        else:
            self._subscriptions[path] = 1
            # Not connected is fine, subscriptions are (re)sent on every connect
            self._mixer.subscribe(path)
        self._publish_variable_definitions()

    def remove_observer(self, observer_id: str, path: str):
        registered = self._observers.get(observer_id)
        if registered != path:
            # Unknown or already removed
            self._logger.warning(f"Observer {observer_id} isn't registered for {path}")
            return
        del self._observers[observer_id]
        if path not in self._subscriptions:
            self._logger.warning(f"No subscription found for {path} but expected one")
            return

        self._subscriptions[path] -= 1
        if self._subscriptions[path] == 0:
            del self._subscriptions[path]
            self._mixer.unsubscribe(path)
            self._publish_variable_definitions()

    @property
    def subscribed_paths(self) -> list[str]:
        return list(self._subscriptions.keys())

    def usage_count(self, path: str) -> int:
        return self._subscriptions.get(path, 0)

    def observers_for(self, path: str) -> list[str]:
        return [observer_id for observer_id, observed in self._observers.items() if observed == path]

    # ========== Values ==========

    def get_value(self, path: str) -> Optional[ValueType]:
        """Last value received for path, None if nothing was received yet."""
        return self._value_cache.get(path)

    def get_feedback_state(self, path: str) -> bool:
        """Value of path interpreted as on/off, False while disconnected."""
        if not self._mixer.is_connected():
            return False
        value = self.get_value(path)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value > 0.5
        return False

    def notify_observers(self, path: str, value: ValueType):
        # Cached whether subscribed or not, get responses for unwatched paths land here too
        self._value_cache[path] = value
        observer_ids = self.observers_for(path)
        if observer_ids:
            self._callback.observers_changed(observer_ids)
        self._callback.variable_values_changed({VariableDefinition.variable_id_for(path): value})

    # ========== Variables ==========

    def variable_definitions(self) -> list[VariableDefinition]:
        """One variable per subscribed path."""
        return [VariableDefinition.for_path(path) for path in self._subscriptions]

    def _publish_variable_definitions(self):
        self._callback.variable_definitions_changed(self.variable_definitions())

    # ========== MixingStationListener ==========

    def connected(self):
        if self._subscriptions:
            self._logger.info(f"Restoring {len(self._subscriptions)} subscriptions")
        for path in self._subscriptions:
            self._mixer.subscribe(path)

    def connection_lost(self, reason: str):
        pass

    def app_state_changed(self, state: AppState):
        pass

    def value_changed(self, path: str, value: ValueType):
        self.notify_observers(path, value)
