"""Matches outbound requests to inbound responses by (path, method).

Mixing Station doesn't echo request ids, a response is identified by carrying the
same path and method as its request. Waiters for the same (path, method) are kept
in a FIFO queue so each inbound frame resolves exactly one of them, oldest first.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Optional

from pymixingstation.errors import MixingStationDisconnected, MixingStationTimeout

DEFAULT_REQUEST_TIMEOUT = 10.0


class RequestCorrelator:

    def __init__(self, send: Callable[[str, str, Any], bool],
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        """
        Args:
            send: Fire-and-forget sender, returns False if the frame couldn't be sent
            request_timeout: Default seconds to wait for a response
        """
        self._logger = logging.getLogger(__name__)
        self._send = send
        self._request_timeout = request_timeout
        # (path, method) -> waiters in issue order
        self._pending: dict[tuple[str, str], deque[asyncio.Future]] = {}

    @property
    def request_timeout(self) -> float:
        return self._request_timeout

    @property
    def pending_count(self) -> int:
        return sum(
            1 for waiters in self._pending.values() for waiter in waiters if not waiter.done()
        )

    async def request(self, path: str, method: str, body: Any = None,
                      timeout: Optional[float] = None):
        """Send a request and wait for the first unclaimed response with the same path and method.

        Raises:
            MixingStationDisconnected: The frame couldn't be sent or the connection
                dropped before the response arrived.
            MixingStationTimeout: No response within timeout seconds.
        """
        if timeout is None:
            timeout = self._request_timeout
        key = (path, method)
        waiter = asyncio.get_running_loop().create_future()
        # Register before sending, the response may be processed before send() returns
        self._pending.setdefault(key, deque()).append(waiter)
        try:
            if not self._send(path, method, body):
                raise MixingStationDisconnected(f"Can't send {method} {path}, not connected")
            try:
                return await asyncio.wait_for(waiter, timeout)
            except asyncio.TimeoutError:
                self._logger.warning(f"Request {method} {path} timed out after {timeout}s")
                raise MixingStationTimeout(path, method, timeout) from None
        finally:
            self._discard(key, waiter)

    def resolve(self, message) -> bool:
        """Hand message to the oldest waiter for its (path, method).

        Returns True if a waiter took the message.
        """
        key = (message.path, message.method)
        waiters = self._pending.get(key)
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_result(message)
                if not waiters:
                    del self._pending[key]
                return True
        self._pending.pop(key, None)
        return False

    def fail_all(self, exc: Exception):
        """Fail every outstanding waiter with exc."""
        pending = self._pending
        self._pending = {}
        failed = 0
        for waiters in pending.values():
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(exc)
                    failed += 1
        if failed:
            self._logger.info(f"Failed {failed} pending requests: {exc}")

    def _discard(self, key: tuple[str, str], waiter: asyncio.Future):
        waiters = self._pending.get(key)
        if not waiters:
            return
        if waiter in waiters:
            waiters.remove(waiter)
        if not waiters:
            del self._pending[key]
