"""Test helpers recording the emissions of a signal."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, NoReturn
from unittest.mock import Mock

from ringsignal import SignalInstance

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from contextlib import AbstractContextManager
    from typing import Any

    from typing_extensions import Self

    from ringsignal import EmissionInfo


__all__ = [
    "SignalTester",
    "assert_emitted",
    "assert_emitted_once",
    "assert_emitted_once_with",
    "assert_emitted_with",
    "assert_ever_emitted_with",
    "assert_not_emitted",
]

_UNSET = object()


class SignalTester:
    """Record the emissions of a signal, then assert things about them.

    While recording (between `connect()` and `disconnect()`, or inside a `with`
    block), each emission calls `mock` with the emitted args, and appends the
    number of active slots at that moment to `slot_counts`.  Recording goes
    through the debug hook of the signal instance, not through a slot, so the
    tester changes neither `len(signal)` nor what `emit()` returns.

    ```python
    t = Thermostat()
    with SignalTester(t.reading) as tester:
        t.reading.emit(21.5)
    tester.assert_emitted_once_with(21.5)
    ```

    Parameters
    ----------
    signal : SignalInstance
        The signal to record.
    """

    def __init__(self, signal: SignalInstance) -> None:
        if not isinstance(signal, SignalInstance):
            raise TypeError(f"Expected a SignalInstance, not {type(signal)}")
        self.signal_instance = signal
        self.mock = Mock()
        self.slot_counts: list[int] = []
        self._previous_hook: Any = _UNSET
        self._recording = False

    def reset(self) -> None:
        """Forget all recorded emissions."""
        self.mock.reset_mock()
        self.slot_counts.clear()

    @property
    def signal_name(self) -> str:
        return self.signal_instance.name or "signal"

    @property
    def emit_count(self) -> int:
        return self.mock.call_count

    @property
    def emit_args(self) -> tuple[Any, ...]:
        """Args of the last emission, `()` if there was none."""
        call = self.mock.call_args
        return () if call is None else tuple(call.args)

    @property
    def emit_args_list(self) -> list[tuple[Any, ...]]:
        return [tuple(call.args) for call in self.mock.call_args_list]

    def _record(self, info: EmissionInfo) -> None:
        if self._recording:
            self.mock(*info.args)
            self.slot_counts.append(len(info.signal))
        previous = self._previous_hook
        if previous is _UNSET:
            previous = SignalInstance._debug_hook
        if previous is not None:
            previous(info)

    def connect(self) -> None:
        """Start recording."""
        if self._recording:
            return
        sig = self.signal_instance
        self._previous_hook = sig.__dict__.get("_debug_hook", _UNSET)
        sig._debug_hook = self._record  # type: ignore[misc]
        self._recording = True

    def disconnect(self) -> None:
        """Stop recording."""
        if not self._recording:
            return
        self._recording = False
        sig = self.signal_instance
        if sig.__dict__.get("_debug_hook") != self._record:
            # a hook installed after ours is still in place, and will hand control
            # back to `_record` when removed: keep chaining, without recording
            return
        if self._previous_hook is _UNSET:
            del sig._debug_hook
        else:
            sig._debug_hook = self._previous_hook  # type: ignore[misc]
        self._previous_hook = _UNSET

    def __enter__(self) -> Self:
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.disconnect()

    def _fail(self, expected: str, actual: str) -> NoReturn:
        raise AssertionError(f"Expected {self.signal_name!r} {expected}, but {actual}.")

    def _how_often(self) -> str:
        n = self.emit_count
        if n == 0:
            return "it was never emitted"
        return "it was emitted once" if n == 1 else f"it was emitted {n} times"

    def assert_not_emitted(self) -> None:
        if self.emit_count:
            self._fail("not to be emitted", self._how_often())

    def assert_emitted(self) -> None:
        if not self.emit_count:
            self._fail("to be emitted", self._how_often())

    def assert_emitted_once(self) -> None:
        if self.emit_count != 1:
            self._fail("to be emitted once", self._how_often())

    def assert_emitted_with(self, /, *args: Any) -> None:
        """Assert that the *last* emission had `args`."""
        if not self.emit_count:
            self._fail(f"to be emitted with {args!r}", self._how_often())
        if self.emit_args != args:
            self._fail(
                f"to be emitted last with {args!r}",
                f"the last emission was {self.emit_args!r}",
            )

    def assert_emitted_once_with(self, /, *args: Any) -> None:
        self.assert_emitted_once()
        if self.emit_args != args:
            self._fail(
                f"to be emitted once with {args!r}",
                f"it was emitted with {self.emit_args!r}",
            )

    def assert_ever_emitted_with(self, /, *args: Any) -> None:
        """Assert that *some* emission had `args`."""
        if args not in self.emit_args_list:
            actual = (
                f"the emissions were {self.emit_args_list!r}"
                if self.emit_count
                else self._how_often()
            )
            self._fail(f"to be emitted with {args!r} at some point", actual)

    def assert_slot_count(self, n: int, /) -> None:
        """Assert that the last emission found `n` active slots."""
        if not self.slot_counts:
            self._fail(f"to be emitted to {n} slot(s)", self._how_often())
        if self.slot_counts[-1] != n:
            self._fail(
                f"to be emitted to {n} slot(s)",
                f"the last emission found {self.slot_counts[-1]}",
            )


@contextmanager
def _checked(
    signal: SignalInstance, check: Callable[[SignalTester], None]
) -> Iterator[SignalTester]:
    with SignalTester(signal) as tester:
        yield tester
    check(tester)


def assert_emitted(signal: SignalInstance) -> AbstractContextManager[SignalTester]:
    """Context manager asserting that `signal` is emitted within it."""
    return _checked(signal, SignalTester.assert_emitted)


def assert_emitted_once(
    signal: SignalInstance,
) -> AbstractContextManager[SignalTester]:
    """Context manager asserting that `signal` is emitted exactly once within it."""
    return _checked(signal, SignalTester.assert_emitted_once)


def assert_not_emitted(
    signal: SignalInstance,
) -> AbstractContextManager[SignalTester]:
    """Context manager asserting that `signal` is not emitted within it."""
    return _checked(signal, SignalTester.assert_not_emitted)


def assert_emitted_with(
    signal: SignalInstance, *args: Any
) -> AbstractContextManager[SignalTester]:
    """Context manager asserting that the last emission within it had `args`."""
    return _checked(signal, lambda tester: tester.assert_emitted_with(*args))


def assert_emitted_once_with(
    signal: SignalInstance, *args: Any
) -> AbstractContextManager[SignalTester]:
    """Context manager asserting exactly one emission within it, with `args`."""
    return _checked(signal, lambda tester: tester.assert_emitted_once_with(*args))


def assert_ever_emitted_with(
    signal: SignalInstance, *args: Any
) -> AbstractContextManager[SignalTester]:
    """Context manager asserting that some emission within it had `args`."""
    return _checked(signal, lambda tester: tester.assert_ever_emitted_with(*args))
