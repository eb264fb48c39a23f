"""Debugging helpers: watch emissions without connecting anything."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from ._signal import EmissionInfo, SignalInstance

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

__all__ = ["iter_signal_instances", "monitor_events"]

_UNSET = object()


def _print_emission(info: EmissionInfo) -> None:
    n = len(info.signal)
    print(f"{info.signal.name}.emit{info.args!r} -> {n} slot{'' if n == 1 else 's'}")


@contextmanager
def monitor_events(
    obj: Any | None = None,
    logger: Callable[[EmissionInfo], Any] = _print_emission,
    include_private_attrs: bool = False,
) -> Iterator[None]:
    """Report every emission to `logger` while the context is active.

    The logger is installed as a debug hook, which `emit()` calls before any slot:
    monitoring connects no slot, so it neither shows up in `len(signal)` nor takes
    part in the aggregation of slot return values.  Blocked signals are not
    reported.

    Parameters
    ----------
    obj : Any, optional
        Watch the signal instances found on `obj` (see `iter_signal_instances`).
        By default, every `SignalInstance`.
    logger : Callable[[EmissionInfo], Any]
        Called with an `EmissionInfo` for each emission.  By default, prints the
        signal name, the emitted args and the number of active slots.
    include_private_attrs : bool
        Also watch signals stored under names starting with an underscore.
    """
    if obj is None:
        previous_global = SignalInstance._debug_hook
        SignalInstance._debug_hook = logger  # type: ignore[assignment]
        try:
            yield
        finally:
            SignalInstance._debug_hook = previous_global  # type: ignore[assignment]
        return

    # instance attributes shadow the class-level hook
    replaced = [
        (sig, sig.__dict__.get("_debug_hook", _UNSET))
        for sig in iter_signal_instances(obj, include_private_attrs)
    ]
    for sig, _ in replaced:
        sig._debug_hook = logger  # type: ignore[misc]
    try:
        yield
    finally:
        for sig, previous in replaced:
            if previous is _UNSET:
                del sig._debug_hook
            else:
                sig._debug_hook = previous  # type: ignore[misc]


def iter_signal_instances(
    obj: Any, include_private_attrs: bool = False
) -> Iterator[SignalInstance]:
    """Yield each `SignalInstance` that is an attribute of `obj`.

    Accessing a `Signal` declared on the class of `obj` creates its instance.
    """
    for name in dir(obj):
        if name.startswith("_") and not include_private_attrs:
            continue
        try:
            value = getattr(obj, name)
        except Exception:  # properties may raise anything
            continue
        if isinstance(value, SignalInstance):
            yield value
