"""Aggregators and controllers: the two policy objects of an emission.

An *aggregator* folds the return values of the slots called during one emission
into the single value returned by `emit()`.  A *controller* decides, after each
slot, whether the emission should go on.  Both are created fresh for each
emission (pass a new instance, or a class, to `SignalInstance.emit`).

For signals whose slots return nothing (a *void* signature) both are called
without a value: `accept()` and `decide()`.  Otherwise they receive the value
returned by the slot: `accept(value)` and `decide(value)`.  The controller
always sees the value *before* the aggregator does.

```python
from ringsignal import CollationAggregator, ContinueWhile, SignalInstance

sig = SignalInstance(returns=bool)
sig.connect(lambda: True)
sig.connect(lambda: False)
sig.connect(lambda: True)  # never called

sig.emit(aggregator=CollationAggregator, controller=ContinueWhile(True))
# [True, False]
```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = [
    "AlwaysContinue",
    "Aggregator",
    "CollationAggregator",
    "ContinueWhile",
    "Controller",
    "CounterAggregator",
    "LastAggregator",
    "VoidAggregator",
]

_T = TypeVar("_T")
_R_co = TypeVar("_R_co", covariant=True)


class Aggregator(Protocol[_R_co]):
    """Protocol for objects that collect slot return values during an emission.

    `accept` is called exactly once for each slot that is called, in order.
    `result` is called exactly once, when the emission is over, and its return
    value is returned from `emit()`.
    """

    def accept(self, *value: Any) -> None: ...

    def result(self) -> _R_co: ...


class Controller(Protocol):
    """Protocol for objects deciding whether an emission continues.

    `decide` is called exactly once for each slot that is called, and returns
    `True` to carry on with the next slot, or `False` to stop after this one.
    """

    def decide(self, *value: Any) -> bool: ...


# ---------------------------- Aggregators ----------------------------


class VoidAggregator:
    """Ignore all slot return values.  `result()` returns `None`.

    This is the default aggregator for signals without a return type.
    """

    def accept(self, *_: Any) -> None:
        pass

    def result(self) -> None:
        return None


class LastAggregator(Generic[_T]):
    """Keep only the value returned by the last slot called.

    Parameters
    ----------
    initial : Any
        Returned by `result()` if no slot was called.  By default `None`.
        (When used as the *default* aggregator, a signal passes a value-initialized
        instance of its return type here, e.g. `0` for `int`.)
    """

    def __init__(self, initial: _T | None = None) -> None:
        self._latest = initial

    def accept(self, value: _T) -> None:
        self._latest = value

    def result(self) -> _T | None:
        return self._latest


class CollationAggregator(Generic[_T]):
    """Collect all slot return values, in calling order, in a container.

    Parameters
    ----------
    factory : Callable[[], Any]
        Zero-argument callable creating the (empty) container.  The container must
        have an `append` method.  By default `list`.
    """

    def __init__(self, factory: Callable[[], Any] = list) -> None:
        self._result = factory()

    def accept(self, value: _T) -> None:
        self._result.append(value)

    def result(self) -> Any:
        return self._result


class CounterAggregator:
    """Count the number of slots called.  Return values are ignored."""

    def __init__(self) -> None:
        self._count = 0

    def accept(self, *_: Any) -> None:
        self._count += 1

    def result(self) -> int:
        return self._count


# ---------------------------- Controllers ----------------------------


class AlwaysContinue:
    """Continue the emission regardless of slot return values (the default)."""

    def decide(self, *_: Any) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ContinueWhile:
    """Continue the emission only while slots return a value equal to `expected`.

    `ContinueWhile(True)` runs slots *until* one returns something other than `True`;
    `ContinueWhile(False)` runs slots until one returns something other than `False`.
    The slot returning the unexpected value is still called (and aggregated).
    """

    def __init__(self, expected: Any = True) -> None:
        self.expected = expected

    def decide(self, value: Any) -> bool:
        return bool(value == self.expected)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.expected!r})"
