"""
Shared fixtures for the test suite.

The websocket is replaced by FakeWebSocket / FakeSession: no network is used.
Frames written by the client land in FakeWebSocket.sent, frames "from the app"
are pushed with FakeWebSocket.push().
"""

import asyncio
import json
from typing import Any, Callable, NamedTuple, Optional

import aiohttp
import pytest
import pytest_asyncio

from pymixingstation.listener import MixingStationListener
from pymixingstation.mixer import MixingStation


class FakeMessage(NamedTuple):
    type: aiohttp.WSMsgType
    data: Any
    extra: Optional[str] = None


class FakeWebSocket:
    """Stands in for aiohttp.ClientWebSocketResponse."""

    def __init__(self):
        self.sent: list[str] = []
        self.pings = 0
        self.closed = False
        self.close_code: Optional[int] = None
        # (path, method) -> body replied automatically when such a request is sent
        self.auto_reply: dict[tuple[str, str], Any] = {}
        # Make send_str fail as on a half-closed socket
        self.fail_sends = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def receive(self):
        return await self._incoming.get()

    async def send_str(self, data: str):
        if self.closed or self.fail_sends:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(data)
        message = json.loads(data)
        key = (message["path"], message["method"])
        if key in self.auto_reply:
            self.push({"path": key[0], "method": key[1], "body": self.auto_reply[key]})

    async def ping(self):
        self.pings += 1

    async def close(self):
        if not self.closed:
            self.closed = True
            self.close_code = 1000
            self._incoming.put_nowait(FakeMessage(aiohttp.WSMsgType.CLOSED, None))
        return True

    def exception(self):
        return None

    # ========== Test helpers ==========

    def push(self, message):
        data = message if isinstance(message, str) else json.dumps(message)
        self._incoming.put_nowait(FakeMessage(aiohttp.WSMsgType.TEXT, data))

    def push_binary(self, data: bytes):
        self._incoming.put_nowait(FakeMessage(aiohttp.WSMsgType.BINARY, data))

    def server_close(self, code: int = 1001, reason: str = ""):
        self.closed = True
        self.close_code = code
        self._incoming.put_nowait(FakeMessage(aiohttp.WSMsgType.CLOSE, code, reason))

    def sent_messages(self) -> list[dict]:
        return [json.loads(data) for data in self.sent]

    def sent_to(self, path: str) -> list[dict]:
        return [message for message in self.sent_messages() if message["path"] == path]


class FakeSession:
    """Stands in for aiohttp.ClientSession."""

    def __init__(self):
        self.sockets: list[FakeWebSocket] = []
        self.urls: list[str] = []
        self.connect_attempts = 0
        # Number of upcoming ws_connect calls that fail
        self.failures = 0
        self.closed = False

    async def ws_connect(self, url, **kwargs):
        self.connect_attempts += 1
        self.urls.append(url)
        if self.failures > 0:
            self.failures -= 1
            raise aiohttp.ClientConnectionError("Connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    async def close(self):
        self.closed = True

    @property
    def ws(self) -> FakeWebSocket:
        return self.sockets[-1]


class RecordingListener(MixingStationListener):
    """Records every callback as a tuple (name, *args)."""

    def __init__(self):
        self.events: list[tuple] = []

    def connected(self):
        self.events.append(("connected",))

    def connection_lost(self, reason: str):
        self.events.append(("connection_lost", reason))

    def app_state_changed(self, state):
        self.events.append(("app_state_changed", state))

    def value_changed(self, path, value):
        self.events.append(("value_changed", path, value))

    def observers_changed(self, observer_ids):
        self.events.append(("observers_changed", list(observer_ids)))

    def variable_definitions_changed(self, definitions):
        self.events.append(("variable_definitions_changed", list(definitions)))

    def variable_values_changed(self, values):
        self.events.append(("variable_values_changed", dict(values)))

    def named(self, name: str) -> list[tuple]:
        return [event for event in self.events if event[0] == name]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0):
    """Poll predicate until it holds, fail the test after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest_asyncio.fixture
async def mixer(session, listener):
    """A MixingStation connected to a FakeWebSocket."""
    client = MixingStation(
        "mixing-station.local",
        8080,
        ping_interval=60.0,
        reconnect_time=0.01,
        request_timeout=0.5,
        session=session,
    )
    client.register_listener(listener)
    await client.async_connect()
    yield client
    await client.async_close()
