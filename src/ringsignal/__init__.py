"""Ringsignal implements synchronous signals and slots for Python.

Slots are called in connection order, may safely connect, disconnect or re-emit
while being called, and their return values can be aggregated.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ringsignal")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "Aggregator",
    "AlwaysContinue",
    "CollationAggregator",
    "Connection",
    "ContinueWhile",
    "Controller",
    "CounterAggregator",
    "EmissionInfo",
    "LastAggregator",
    "ScopedConnection",
    "Signal",
    "SignalInstance",
    "VoidAggregator",
    "__version__",
]

from ._aggregation import (
    Aggregator,
    AlwaysContinue,
    CollationAggregator,
    ContinueWhile,
    Controller,
    CounterAggregator,
    LastAggregator,
    VoidAggregator,
)
from ._connection import Connection, ScopedConnection
from ._signal import EmissionInfo, Signal, SignalInstance
