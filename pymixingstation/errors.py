import asyncio


class MixingStationError(Exception):
    """Base class for errors raised by the Mixing Station client."""


class MixingStationDisconnected(MixingStationError):
    """Raised when a request can't be sent or the connection dropped while waiting."""

    def __init__(self, reason: str = "Not connected"):
        super().__init__(reason)
        self.reason = reason


class MixingStationTimeout(MixingStationError, asyncio.TimeoutError):
    """Raised when no response arrived for a request in time."""

    def __init__(self, path: str, method: str, timeout: float):
        super().__init__(f"No response for {method} {path} within {timeout}s")
        self.path = path
        self.method = method
        self.timeout = timeout


class MixingStationResponseError(MixingStationError):
    """Raised when a response body doesn't have the expected shape."""
