"""Mixing Station client.

This module contains the high-level client with:
- Typed requests (values, definitions, data paths, available mixers)
- Fire-and-forget commands (set value, subscribe, connect to mixer, offline mode)
- Toggling of boolean and enumerated values
- Creation of the connection, protocol and feedback handler

Connection lifecycle and push events reach external listeners through a
MultiplexingListener."""

import logging
from typing import Optional

import aiohttp

from pymixingstation.connection import (
    DEFAULT_PING_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_TIME,
    MixingStationConnection,
)
from pymixingstation.correlator import DEFAULT_REQUEST_TIMEOUT
from pymixingstation.errors import MixingStationError
from pymixingstation.feedback import FeedbackHandler
from pymixingstation.listener import MixingStationListener, MultiplexingListener
from pymixingstation.model import (
    AppState,
    ConsoleList,
    DataPaths,
    Value,
    ValueDefinition,
    ValueType,
)
from pymixingstation.protocol import (
    DATA_PATHS,
    DATA_SUBSCRIBE,
    DATA_UNSUBSCRIBE,
    METHOD_GET,
    METHOD_POST,
    MIXERS_AVAILABLE,
    MIXERS_CONNECT,
    MIXERS_OFFLINE,
    MixingStationProtocol,
)


class MixingStation:
    """High-level Mixing Station client.

    This class:
    - Creates and manages the MixingStationProtocol and MixingStationConnection
    - Translates typed operations to wire paths
    - Owns the FeedbackHandler that reference counts subscriptions
    """

    def __init__(self, hostname="localhost", port=DEFAULT_PORT, ping_interval=DEFAULT_PING_INTERVAL,
                 reconnect_time=DEFAULT_RECONNECT_TIME, request_timeout=DEFAULT_REQUEST_TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        """Initialize client.

        Args:
            hostname: Host running Mixing Station
            port: Mixing Station REST port (usually 8080)
            ping_interval: Seconds between keep-alive pings
            reconnect_time: Seconds to wait between reconnection attempts
            request_timeout: Seconds to wait for a response before giving up
            session: Optional aiohttp session to open the websocket with
        """
        self._hostname: str = hostname
        self._port = port
        self._logger = logging.getLogger(__name__)

        # Create multiplexing listener for external listeners
        self._multiplex_callback = MultiplexingListener()

        self._protocol = MixingStationProtocol(self._multiplex_callback, request_timeout)
        self._connection = MixingStationConnection(
            hostname,
            port,
            self._protocol,
            ping_interval=ping_interval,
            reconnect_time=reconnect_time,
            session=session,
        )

        # Register feedback handler to cache values and restore subscriptions on reconnect
        self.feedback = FeedbackHandler(self, self._multiplex_callback)
        self._multiplex_callback.register_listener(self.feedback)

    # ========== Connection ==========

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def port(self) -> int:
        return self._port

    @property
    def app_state(self) -> AppState:
        """Last app state received from Mixing Station."""
        return self._protocol.app_state

    @property
    def connection(self) -> MixingStationConnection:
        return self._connection

    def is_connected(self) -> bool:
        return self._connection.is_connected()

    def register_listener(self, listener: MixingStationListener):
        """Register external listener for client events."""
        self._multiplex_callback.register_listener(listener)

    def unregister_listener(self, listener: MixingStationListener):
        """Unregister external listener."""
        self._multiplex_callback.unregister_listener(listener)

    def connect(self):
        """Connect in the background; reconnects automatically until closed."""
        self._connection.connect()

    async def async_connect(self):
        """Connect to Mixing Station; reconnects automatically until closed."""
        await self._connection.async_connect()

    def close(self):
        """Close the connection and stop reconnection attempts."""
        self._connection.close()

    async def async_close(self):
        """Close the connection, stop reconnection attempts and wait for the socket to close."""
        await self._connection.async_close()

    # ========== Commands ==========

    def subscribe(self, path: str) -> bool:
        self._logger.debug(f"Subscribe: {path}")
        return self._protocol.send(DATA_SUBSCRIBE, METHOD_POST, MixingStationProtocol.subscription_body(path))

    def unsubscribe(self, path: str) -> bool:
        self._logger.debug(f"Unsubscribe: {path}")
        return self._protocol.send(DATA_UNSUBSCRIBE, METHOD_POST, MixingStationProtocol.subscription_body(path))

    def set_value(self, path: str, value: ValueType) -> bool:
        """Set a parameter. Returns False if not connected."""
        self._logger.info(f"Set value - {path} to: {value}")
        return self._protocol.send(MixingStationProtocol.command_set_value(path), METHOD_POST, {"value": value})

    def connect_to_mixer(self, console_id: int, host: str) -> bool:
        """Ask the app to connect to a mixer of the given console type."""
        self._logger.info(f"Connect to mixer - console {console_id} at {host}")
        return self._protocol.send(MIXERS_CONNECT, METHOD_POST, {"consoleId": console_id, "ip": host})

    def start_offline_mode(self, console_id: int, model_id: int) -> bool:
        """Ask the app to start an offline session for the given console and model."""
        self._logger.info(f"Start offline mode - console {console_id} model {model_id}")
        return self._protocol.send(MIXERS_OFFLINE, METHOD_POST, {"consoleId": console_id, "modelId": model_id})

    # ========== Requests ==========

    async def get_value(self, path: str) -> Value:
        """Read a parameter.

        Raises:
            MixingStationResponseError: The response body isn't a value object.
        """
        message = await self._protocol.request(MixingStationProtocol.command_get_value(path), METHOD_GET)
        return Value.from_dict(message.body)

    async def get_value_definition(self, path: str) -> Optional[ValueDefinition]:
        """Definition of a parameter, None if the app has none for it."""
        message = await self._protocol.request(MixingStationProtocol.command_value_definition(path), METHOD_GET)
        return ValueDefinition.from_dict(message.body)

    async def get_all_data_paths(self) -> DataPaths:
        message = await self._protocol.request(DATA_PATHS, METHOD_GET)
        return DataPaths(message.body)

    async def get_available_mixers(self) -> ConsoleList:
        message = await self._protocol.request(MIXERS_AVAILABLE, METHOD_GET)
        return ConsoleList.from_dict(message.body)

    async def toggle_value(self, path: str) -> Optional[ValueType]:
        """Invert a boolean, or step an enumerated value to its next enum (wrapping around).

        Never raises; failures are logged and nothing is sent.

        Returns:
            The value that was sent, None if nothing was sent.
        """
        # We don't necessarily have the current state cached
        try:
            current = await self.get_value(path)
        except MixingStationError as e:
            self._logger.warning(f"Can't toggle {path}, reading current value failed: {e}")
            return None

        # bool before int: bool is a subclass of int
        if isinstance(current.value, bool):
            new_value = not current.value
        elif isinstance(current.value, (int, float)):
            try:
                definition = await self.get_value_definition(path)
            except MixingStationError as e:
                self._logger.warning(f"Can't toggle {path}, reading definition failed: {e}")
                return None
            if definition is None:
                self._logger.warning(f"Value has no definition {path}")
                return None
            if definition.enums is None:
                self._logger.warning(f"Unsupported type for toggle {definition.type}")
                return None
            new_value = definition.next_enum_id(current.value)
            if new_value is None:
                self._logger.warning(f"Current value {current.value} of {path} isn't one of its enums")
                return None
        else:
            self._logger.warning(f"Unsupported type for toggle {type(current.value).__name__}")
            return None

        if not self.set_value(path, new_value):
            self._logger.warning(f"Can't toggle {path}, not connected")
            return None
        return new_value
