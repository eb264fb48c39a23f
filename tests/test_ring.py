import pytest

from ringsignal._ring import ConnectionRing


def _check_links(ring: ConnectionRing) -> None:
    node = ring.sentinel
    while True:
        assert node.next.prev is node
        assert node.prev.next is node
        node = node.next
        if node is ring.sentinel:
            break


def test_empty_ring():
    ring = ConnectionRing()
    assert not ring
    assert len(ring) == 0
    assert ring.first is ring.sentinel
    assert list(ring) == []
    assert ring.sentinel not in ring
    assert None not in ring
    _check_links(ring)


def test_insert_appends_in_order():
    ring = ConnectionRing()
    a = ring.insert("a")
    b = ring.insert("b")
    c = ring.insert("c")
    assert list(ring) == [a, b, c]
    assert [n.slot for n in ring] == ["a", "b", "c"]
    assert ring.first is a
    assert ring.sentinel.prev is c
    assert len(ring) == 3
    assert all(n in ring for n in (a, b, c))
    _check_links(ring)


def test_unlink():
    ring = ConnectionRing()
    a, b, c = (ring.insert(x) for x in "abc")
    assert ring.unlink(b) is b
    assert b.next is None and b.prev is None and b.slot is None
    assert list(ring) == [a, c]
    assert b not in ring
    _check_links(ring)

    with pytest.raises(ValueError, match="sentinel"):
        ring.unlink(ring.sentinel)


def test_deactivate_and_sweep():
    ring = ConnectionRing()
    a, b, c, d = (ring.insert(x) for x in "abcd")
    assert ring.deactivate(b)
    assert not ring.deactivate(b)
    assert ring.deactivate(d)

    # still linked, but no longer counted
    assert b in ring and d in ring
    assert len(ring) == 2
    assert list(ring) == [a, b, c, d]

    assert ring.sweep() == 2
    assert list(ring) == [a, c]
    assert ring.sweep() == 0
    _check_links(ring)


def test_iteration_sees_appended_nodes():
    ring = ConnectionRing()
    ring.insert(0)
    seen = []
    for node in ring:
        seen.append(node.slot)
        if node.slot < 3:
            ring.insert(node.slot + 1)
    assert seen == [0, 1, 2, 3]


def test_clear():
    ring = ConnectionRing()
    nodes = [ring.insert(x) for x in range(5)]
    ring.clear()
    assert not ring
    assert not any(n in ring for n in nodes)
    _check_links(ring)
    assert "0 active" in repr(ring)


def test_dropping_ring_unlinks_nodes():
    ring = ConnectionRing()
    nodes = [ring.insert(x) for x in "ab"]
    del ring
    assert all(n.next is None and n.prev is None and n.slot is None for n in nodes)
