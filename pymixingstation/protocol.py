import json
import logging
from typing import Any, Optional

from pymixingstation.connection import PRIORITY_READ, PRIORITY_WRITE
from pymixingstation.correlator import DEFAULT_REQUEST_TIMEOUT, RequestCorrelator
from pymixingstation.errors import MixingStationDisconnected
from pymixingstation.listener import MixingStationListener
from pymixingstation.model import AppState, TopState

# Mixing Station speaks JSON over the websocket, one object per text frame:
# {"path": "/console/data/get/ch.0.mix.on/val", "method": "GET", "body": {...}, "error": "..."}
# Requests and responses share the same path and method, there is no request id.

METHOD_GET = "GET"
METHOD_POST = "POST"

# Pushed whenever the app changes state, also the response to GET /app/state
APP_STATE = "/app/state"
# Value responses and live pushes for subscribed values: /console/data/get/{path}/{format}
VALUE_RESPONSE = "/console/data/get/"
VALUE_FORMAT = "val"

DATA_SET = "/console/data/set/"
DATA_SUBSCRIBE = "/console/data/subscribe"
DATA_UNSUBSCRIBE = "/console/data/unsubscribe"
DATA_DEFINITIONS = "/console/data/definitions2/"
DATA_PATHS = "/console/data/paths"
MIXERS_AVAILABLE = "/app/mixers/available"
MIXERS_CONNECT = "/app/mixers/connect"
MIXERS_OFFLINE = "/app/mixers/offline"


class MixingStationMessage:
    """Request, response and push envelope."""

    def __init__(self, path: str, method: str, body: Any = None, error: Optional[str] = None):
        self.path = path
        self.method = method
        self.body = body
        self.error = error

    def to_json(self) -> str:
        return json.dumps({"path": self.path, "method": self.method, "body": self.body})

    @classmethod
    def from_json(cls, data: str) -> "MixingStationMessage":
        """Decode a text frame.

        Raises:
            ValueError: The frame isn't a JSON object with a string path and method.
        """
        decoded = json.loads(data)
        if not isinstance(decoded, dict):
            raise ValueError(f"Expected a JSON object, got {type(decoded).__name__}")
        path = decoded.get("path")
        method = decoded.get("method")
        if not isinstance(path, str) or not isinstance(method, str):
            raise ValueError("Message without path or method")
        return cls(path, method, decoded.get("body"), decoded.get("error"))

    def __repr__(self):
        return f"MixingStationMessage({self.method} {self.path})"


class MixingStationProtocol:
    """Routes frames between the connection, pending requests and listeners.

    Inbound frames update the app state, are forwarded as value changes and are
    offered to the request correlator. Outbound requests go through the
    correlator so callers can await the response.
    """

    def __init__(self, callback: MixingStationListener,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self._logger = logging.getLogger(__name__)
        self._callback = callback
        self._transport = None
        self._app_state = AppState("idle", TopState.IDLE)
        self._correlator = RequestCorrelator(self.send, request_timeout)

    @property
    def app_state(self) -> AppState:
        return self._app_state

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    # ========== Connection callbacks ==========

    def connection_made(self, transport):
        self._transport = transport
        self._logger.info("Requesting current app state")
        self.send(APP_STATE, METHOD_GET)
        self._callback.connected()

    def connection_lost(self, reason: str):
        self._transport = None
        self._correlator.fail_all(MixingStationDisconnected(reason))
        self._callback.connection_lost(reason)

    def text_received(self, data: str):
        self._logger.debug(f"RECV: {data}")
        try:
            message = MixingStationMessage.from_json(data)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError as well
            self._logger.warning(f"Dropping malformed frame ({e}): {data[:200]}")
            return
        self._process_received_message(message)

    def _process_received_message(self, message: MixingStationMessage):
        if message.error:
            self._logger.warning(f"Error response: {message.path}: {message.error}")
            return

        if message.path == APP_STATE:
            if isinstance(message.body, dict):
                self._app_state = AppState.from_dict(message.body)
                self._logger.info(f"App state: {self._app_state.state} ({self._app_state.top_state.value})")
                self._callback.app_state_changed(self._app_state)
            else:
                self._logger.warning(f"App state without body: {message.body!r}")

        if message.path.startswith(VALUE_RESPONSE):
            path = self.value_path_from_response(message.path)
            if isinstance(message.body, dict) and "value" in message.body:
                self._callback.value_changed(path, message.body["value"])
            else:
                self._logger.warning(f"Value message for {path} without value: {message.body!r}")

        self._correlator.resolve(message)

    # ========== Sending ==========

    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_connected()

    def send(self, path: str, method: str, body: Any = None) -> bool:
        """Send a frame without waiting for a response. Returns False if not connected."""
        if not self.is_connected():
            self._logger.debug(f"Not connected, not sending {method} {path}")
            return False
        priority = PRIORITY_WRITE if method == METHOD_POST else PRIORITY_READ
        return self._transport.write(MixingStationMessage(path, method, body).to_json(), priority)

    async def request(self, path: str, method: str, body: Any = None,
                      timeout: Optional[float] = None) -> MixingStationMessage:
        """Send a frame and wait for the response with the same path and method."""
        return await self._correlator.request(path, method, body, timeout)

    # ========== Wire paths ==========

    @staticmethod
    def value_path_from_response(response_path: str) -> str:
        """/console/data/get/ch.0.mix.on/val -> ch.0.mix.on"""
        path = response_path[len(VALUE_RESPONSE):]
        suffix = "/" + VALUE_FORMAT
        if path.endswith(suffix):
            path = path[:-len(suffix)]
        return path

    @staticmethod
    def command_get_value(path: str) -> str:
        return f"{VALUE_RESPONSE}{path}/{VALUE_FORMAT}"

    @staticmethod
    def command_set_value(path: str) -> str:
        return f"{DATA_SET}{path}/{VALUE_FORMAT}"

    @staticmethod
    def command_value_definition(path: str) -> str:
        return f"{DATA_DEFINITIONS}{path}"

    @staticmethod
    def subscription_body(path: str) -> dict[str, str]:
        return {"path": path, "format": VALUE_FORMAT}
