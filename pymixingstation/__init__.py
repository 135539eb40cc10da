"""pymixingstation Python Package

Python library for controlling mixers through the Mixing Station app.
"""

from pymixingstation.errors import (
    MixingStationDisconnected,
    MixingStationError,
    MixingStationResponseError,
    MixingStationTimeout,
)
from pymixingstation.feedback import FeedbackHandler
from pymixingstation.listener import LoggingListener, MixingStationListener, MultiplexingListener
from pymixingstation.mixer import MixingStation
from pymixingstation.model import AppState, ConnectionState, TopState, Value, ValueDefinition

__all__ = [
    "AppState",
    "ConnectionState",
    "FeedbackHandler",
    "LoggingListener",
    "MixingStation",
    "MixingStationDisconnected",
    "MixingStationError",
    "MixingStationListener",
    "MixingStationResponseError",
    "MixingStationTimeout",
    "MultiplexingListener",
    "TopState",
    "Value",
    "ValueDefinition",
]
