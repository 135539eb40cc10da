"""Websocket transport to the Mixing Station app.

Owns the single socket plus the tasks around it:
- Reader task feeding text frames to the protocol
- Command worker writing queued frames in priority order
- Keep-alive pings
- Reconnect delay after an unexpected close
"""

import asyncio
import logging
from asyncio import PriorityQueue, Task
from typing import Any, Optional

import aiohttp

from pymixingstation.model import ConnectionState

# Command priority levels (lower number = higher priority)
# State-changing POSTs go ahead of queued GET queries so user actions aren't held
# up behind a burst of reads. Within one priority frames keep their queue order.
PRIORITY_WRITE = 10
PRIORITY_READ = 20

DEFAULT_PORT = 8080
DEFAULT_PING_INTERVAL = 1.0
DEFAULT_RECONNECT_TIME = 1.0


class MixingStationConnection:
    """Persistent websocket connection with keep-alive and automatic reconnection.

    The protocol object receives the lifecycle callbacks, in the style of an
    asyncio.Protocol:
    - connection_made(connection)
    - text_received(data)
    - connection_lost(reason)
    """

    def __init__(self, hostname, port, protocol, ping_interval=DEFAULT_PING_INTERVAL,
                 reconnect_time=DEFAULT_RECONNECT_TIME,
                 session: Optional[aiohttp.ClientSession] = None):
        """Initialize connection.

        Args:
            hostname: Host running Mixing Station
            port: Mixing Station REST/websocket port (usually 8080)
            protocol: Receiver of connection callbacks and text frames
            ping_interval: Seconds between keep-alive pings
            reconnect_time: Seconds to wait before reconnecting after a close
            session: aiohttp session to use, one is created (and closed) if omitted
        """
        self._hostname: str = hostname
        self._port = port
        self._protocol = protocol
        self._ping_interval = ping_interval
        self._reconnect_time = reconnect_time

        self._logger = logging.getLogger(__name__)

        self._session = session
        self._owns_session = session is None

        # Connection state
        self._state = ConnectionState.DISCONNECTED
        self._active = False
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

        # Tasks
        self._connect_task: Optional[Task[Any]] = None
        self._reader_task: Optional[Task[Any]] = None
        self._ping_task: Optional[Task[Any]] = None
        self._command_worker_task: Optional[Task[Any]] = None
        self._reconnect_task: Optional[Task[Any]] = None
        self._close_task: Optional[Task[Any]] = None

        # Outbound frames for the current socket, recreated on every connect
        self._command_queue: Optional[PriorityQueue] = None
        self._command_sequence_number: int = 0

    @property
    def url(self) -> str:
        return f"ws://{self._hostname}:{self._port}"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def active(self) -> bool:
        """Whether the connection should be kept up (connect called, close not called)."""
        return self._active

    def is_connected(self) -> bool:
        """True only when the socket is open and ready to write."""
        return (
            self._state is ConnectionState.OPEN
            and self._ws is not None
            and not self._ws.closed
        )

    # ========== Lifecycle ==========

    def connect(self):
        """Start connecting without waiting for the handshake."""
        self._cancel_task(self._connect_task)
        self._connect_task = asyncio.get_running_loop().create_task(self.async_connect())

    async def async_connect(self):
        """Open the websocket. Failures are logged and retried, never raised."""
        if self._active:
            # Already running: drop the current socket and start over
            self._logger.debug(f"Already connected to {self.url}, reconnecting")
            self._active = False
            self._cancel_task(self._reconnect_task)
            await self._drop_socket("Reconnect requested")
        self._active = True
        await self._open()

    def close(self):
        """Stop the connection and any reconnection without waiting for the socket to close."""
        self._active = False
        self._cancel_task(self._reconnect_task)
        self._cancel_task(self._connect_task)
        self._close_task = asyncio.get_running_loop().create_task(self.async_close())

    async def async_close(self):
        """Stop the connection and any reconnection. Safe to call more than once."""
        self._logger.debug(f"Disconnect from {self.url}")
        self._active = False
        self._cancel_task(self._reconnect_task)
        self._cancel_task(self._connect_task)
        self._reconnect_task = None
        await self._drop_socket("Connection closed by client")
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _drop_socket(self, reason: str):
        ws = self._ws
        reader_task = self._reader_task
        self._reader_task = None
        if self._state is not ConnectionState.DISCONNECTED:
            self._connection_lost(reason)
        self._cancel_task(reader_task)
        if ws is not None and not ws.closed:
            await ws.close()

    async def _open(self):
        self._state = ConnectionState.CONNECTING
        self._logger.debug(f"Connect to {self.url}")
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        try:
            ws = await self._session.ws_connect(self.url, autoping=True, heartbeat=None, compress=0)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            self._logger.error(f"Websocket error connecting to {self.url}: {e}")
            if self._state is ConnectionState.CONNECTING:
                self._connection_lost(str(e) or e.__class__.__name__)
            return

        if not self._active:
            # close() was called during the handshake
            self._state = ConnectionState.DISCONNECTED
            await ws.close()
            return

        self._ws = ws
        self._state = ConnectionState.OPEN
        self._logger.info(f"Connection Made: {self.url}")

        loop = asyncio.get_running_loop()
        self._command_queue = PriorityQueue()
        self._command_worker_task = loop.create_task(self._command_worker(ws, self._command_queue))
        self._ping_task = loop.create_task(self._keep_alive(ws))
        self._reader_task = loop.create_task(self._read_loop(ws))

        try:
            self._protocol.connection_made(self)
        except Exception as e:
            self._logger.error(f"Exception in connection_made() callback: {e}", exc_info=True)

    def _connection_lost(self, reason: str):
        """Tear down the current socket's tasks, notify the protocol and schedule a reconnect."""
        self._state = ConnectionState.DISCONNECTED
        self._ws = None
        self._cancel_task(self._ping_task)
        self._ping_task = None
        self._cancel_task(self._command_worker_task)
        self._command_worker_task = None
        if self._command_queue is not None and not self._command_queue.empty():
            self._logger.warning(f"Dropping {self._command_queue.qsize()} unsent frames")
        self._command_queue = None

        if self._active:
            self._logger.warning(
                f"Connection lost: {reason}, will try to reconnect in {self._reconnect_time} seconds"
            )
        else:
            # Only info in here as close has been called.
            self._logger.info(f"Connection lost: {reason}, not reconnecting")

        # Notify protocol, but don't let callback exceptions prevent reconnection
        try:
            self._protocol.connection_lost(reason)
        except Exception as e:
            self._logger.error(f"Exception in connection_lost() callback: {e}", exc_info=True)

        if self._active:
            self._reconnect_task = asyncio.get_running_loop().create_task(self._wait_to_reconnect())

    async def _wait_to_reconnect(self):
        """Make one reconnect attempt after the reconnect delay."""
        await asyncio.sleep(self._reconnect_time)
        if not self._active:
            # Closed in the meantime
            return
        self._logger.debug("Reconnecting...")
        await self._open()

    # ========== Reading ==========

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse):
        reason = None
        try:
            while True:
                msg = await ws.receive()
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._protocol.text_received(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    continue
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._logger.error(f"Websocket error: {ws.exception()}")
                    reason = str(ws.exception())
                    break
                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    reason = self._describe_close(msg.data, msg.extra)
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.error(f"Unexpected error in read loop: {e}", exc_info=True)
            reason = str(e)

        if self._ws is ws:
            self._reader_task = None
            if reason is None:
                reason = self._describe_close(ws.close_code, None)
            self._connection_lost(reason)

    @staticmethod
    def _describe_close(code, reason) -> str:
        message = f"Code {code}"
        if reason:
            message = f"{reason} {message}"
        return message

    # ========== Writing ==========

    def write(self, data: str, priority: int = PRIORITY_WRITE) -> bool:
        """Queue a text frame for the current socket.

        Frames are sent by priority, then in queue order, so a PRIORITY_WRITE frame
        overtakes PRIORITY_READ frames queued before it. Order is only kept among
        frames of the same priority.

        Returns False without effect if not connected.
        """
        if not self.is_connected() or self._command_queue is None:
            return False
        self._command_sequence_number += 1
        self._command_queue.put_nowait((priority, self._command_sequence_number, data))
        return True

    async def _command_worker(self, ws: aiohttp.ClientWebSocketResponse, queue: PriorityQueue):
        """Worker task that writes all outgoing frames from the priority queue."""
        while True:
            try:
                priority, sequence_number, data = await queue.get()
                try:
                    self._logger.debug(f"SEND: #{sequence_number} (priority={priority}): {data}")
                    await ws.send_str(data)
                except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                    self._logger.error(f"SEND FAILED: #{sequence_number}: {e}")
                    # The reader notices the close and handles the lost connection
                    await ws.close()
                    break
                finally:
                    queue.task_done()
            except asyncio.CancelledError:
                self._logger.debug("Command worker cancelled")
                break

    # ========== Keep-alive ==========

    async def _keep_alive(self, ws: aiohttp.ClientWebSocketResponse):
        """Ping periodically, best effort."""
        while not ws.closed:
            await asyncio.sleep(self._ping_interval)
            try:
                await ws.ping()
            except Exception as e:
                self._logger.debug(f"Ping failed: {e}")

    @staticmethod
    def _cancel_task(task: Optional[Task[Any]]):
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
