"""The connection ring: a circular doubly linked list with a sentinel node.

Each connected slot lives in a `_Node`.  The node object is the identity of the
connection, and a [`Connection`][ringsignal.Connection] keeps a reference to it.
Iteration always starts at `sentinel.next` and stops when it gets back to the
sentinel, so nodes appended (immediately before the sentinel) while iterating are
still reached by the live iteration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._weak_callback import WeakCallback

__all__ = ["ConnectionRing"]


class _Node:
    """A single connection in the ring.

    `slot` is `None` for the sentinel, and for connections that have been
    deactivated (but not yet unlinked).
    """

    __slots__ = ("next", "prev", "slot")

    def __init__(self, slot: WeakCallback | None = None) -> None:
        self.slot = slot
        self.next: _Node | None = self
        self.prev: _Node | None = self

    @property
    def active(self) -> bool:
        return self.slot is not None

    def __repr__(self) -> str:
        state = "active" if self.slot is not None else "inactive"
        return f"<_Node {state} {self.slot!r} at {hex(id(self))}>"


class ConnectionRing:
    """Doubly linked ring of connection nodes, in insertion order."""

    __slots__ = ("_sentinel",)

    def __init__(self) -> None:
        self._sentinel = _Node()

    @property
    def sentinel(self) -> _Node:
        """The node marking both ends of the ring.  Never holds a slot."""
        return self._sentinel

    @property
    def first(self) -> _Node:
        """The first node after the sentinel (the sentinel itself if empty)."""
        return self._sentinel.next  # type: ignore[return-value]

    def insert(self, slot: WeakCallback) -> _Node:
        """Append a new active node holding `slot` at the tail of the ring."""
        node = _Node(slot)
        tail = self._sentinel.prev
        node.prev = tail
        node.next = self._sentinel
        tail.next = node  # type: ignore[union-attr]
        self._sentinel.prev = node
        return node

    def unlink(self, node: _Node) -> _Node:
        """Remove `node` from the ring, clearing its links and its slot."""
        if node is self._sentinel:
            raise ValueError("Cannot unlink the sentinel node")
        node.next.prev = node.prev  # type: ignore[union-attr]
        node.prev.next = node.next  # type: ignore[union-attr]
        node.next = node.prev = None
        node.slot = None
        return node

    def deactivate(self, node: _Node) -> bool:
        """Mark `node` for removal.  Return False if it was already inactive."""
        if node.slot is None:
            return False
        node.slot = None
        return True

    def sweep(self) -> int:
        """Unlink every deactivated node, returning the number removed."""
        removed = 0
        node = self.first
        while node is not self._sentinel:
            next_node = node.next
            if node.slot is None:
                self.unlink(node)
                removed += 1
            node = next_node  # type: ignore[assignment]
        return removed

    def clear(self) -> None:
        """Unlink all nodes, in ring order."""
        while self.first is not self._sentinel:
            self.unlink(self.first)

    def __del__(self) -> None:
        # nodes and sentinel reference each other: unlink them so that the slots
        # they hold are released together with the ring
        self.clear()

    def __contains__(self, node: Any) -> bool:
        """Return True if `node` (by identity) is currently linked in this ring."""
        if node is None or node is self._sentinel:
            return False
        return any(n is node for n in self)

    def __iter__(self) -> Iterator[_Node]:
        """Iterate over linked nodes (active or not), tolerating appends."""
        node = self.first
        while node is not self._sentinel:
            yield node
            node = node.next  # type: ignore[assignment]

    def __len__(self) -> int:
        """Return the number of *active* nodes."""
        return sum(1 for n in self if n.slot is not None)

    def __bool__(self) -> bool:
        return self._sentinel.next is not self._sentinel

    def __repr__(self) -> str:
        return f"<{type(self).__name__} with {len(self)} active connection(s)>"
