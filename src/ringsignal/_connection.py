"""Handles to a single signal-slot connection."""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from typing_extensions import Self

    from ._ring import _Node
    from ._signal import SignalInstance

__all__ = ["Connection", "ScopedConnection"]


def _dead_signal() -> None:
    return None


class Connection:
    """A handle identifying one connection made by `SignalInstance.connect`.

    A `Connection` pairs a (weakly referenced) signal with the identity of the
    connection inside that signal.  It never owns the connection: copies of a
    `Connection` all refer to the same one, and whichever is used first to
    `disconnect()` it wins (the others will then return `False`).

    ```python
    sig = SignalInstance((int,))
    conn = sig.connect(print)
    assert conn.connected()
    assert conn.disconnect()
    assert not conn.disconnect()
    ```

    Parameters
    ----------
    signal : SignalInstance | None
        The signal that made this connection.
    node : Any
        Opaque identity of the connection inside `signal`.  `None` makes an
        *inert* connection that is never connected.
    """

    __slots__ = ("_node", "_signal_ref")

    def __init__(self, signal: SignalInstance | None, node: _Node | None) -> None:
        self._signal_ref: Callable[[], SignalInstance | None] = (
            _dead_signal if signal is None else weakref.ref(signal)
        )
        self._node = node

    @property
    def signal(self) -> SignalInstance | None:
        """The signal this connection belongs to, or `None` if it no longer exists."""
        return self._signal_ref()

    def connected(self) -> bool:
        """Return `True` if the slot is still connected to the signal."""
        signal = self._signal_ref()
        return False if signal is None else signal.connected(self)

    def disconnect(self) -> bool:
        """Disconnect the slot from the signal.

        Returns `True` if this call disconnected the slot, and `False` if it was
        not connected (anymore).
        """
        signal = self._signal_ref()
        return False if signal is None else signal.disconnect(self)

    def __bool__(self) -> bool:
        return self.connected()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Connection):
            return (
                self._node is other._node
                and self._signal_ref() is other._signal_ref()
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash(id(self._node))

    def __repr__(self) -> str:
        state = "connected" if self.connected() else "disconnected"
        return f"<{type(self).__name__} ({state}) to {self._signal_ref()!r}>"


class ScopedConnection(Connection):
    """A `Connection` that disconnects itself when it goes out of scope.

    The slot is disconnected when the `ScopedConnection` is garbage collected, or
    when leaving a `with` block:

    ```python
    with ScopedConnection(sig.connect(on_change)):
        sig.emit(1)  # on_change is called
    sig.emit(2)  # on_change is no longer connected
    ```

    Use `release()` to hand the connection back (as a plain `Connection`) without
    disconnecting it.  Disconnecting manually first is fine: the disconnection at
    the end of the scope is then a no-op.
    """

    __slots__ = ("_owns",)

    def __init__(self, connection: Connection) -> None:
        if not isinstance(connection, Connection):
            raise TypeError(
                f"ScopedConnection requires a Connection, not {type(connection)}"
            )
        if isinstance(connection, ScopedConnection):
            # take over the duty to disconnect
            connection._owns = False
        self._signal_ref = connection._signal_ref
        self._node = connection._node
        self._owns = True

    def release(self) -> Connection:
        """Give up the duty to disconnect, returning an equivalent `Connection`."""
        self._owns = False
        conn = Connection(None, self._node)
        conn._signal_ref = self._signal_ref
        return conn

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        if self._owns:
            self._owns = False
            self.disconnect()

    def __del__(self) -> None:
        if getattr(self, "_owns", False):
            self._owns = False
            self.disconnect()

    def __copy__(self) -> ScopedConnection:
        raise TypeError(f"{type(self).__name__!r} objects cannot be copied")

    def __deepcopy__(self, memo: dict) -> ScopedConnection:
        raise TypeError(f"{type(self).__name__!r} objects cannot be copied")
