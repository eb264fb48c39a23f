import copy
import gc
from unittest.mock import Mock

import pytest

from ringsignal import Connection, ScopedConnection, SignalInstance


def test_connection_equality_and_hash():
    sig = SignalInstance()
    c1 = sig.connect(Mock())
    c2 = sig.connect(Mock())
    same = Connection(sig, c1._node)

    assert c1 == same
    assert hash(c1) == hash(same)
    assert c1 != c2
    assert c1 != "c1"
    assert len({c1, c2, same}) == 2

    # a copy refers to the same connection
    dup = copy.copy(c1)
    assert dup == c1
    assert dup.disconnect()
    assert not c1.connected()
    assert not c1.disconnect()


def test_connection_bool():
    sig = SignalInstance()
    conn = sig.connect(Mock())
    assert conn
    conn.disconnect()
    assert not conn
    assert "disconnected" in repr(conn)


def test_empty_connections_are_distinct_per_signal():
    sig1, sig2 = SignalInstance(), SignalInstance()
    assert Connection(sig1, None) == Connection(sig1, None)
    assert Connection(sig1, None) != Connection(sig2, None)
    assert not Connection(None, None).connected()
    assert not Connection(None, None).disconnect()


def test_scoped_connection_context():
    mock = Mock()
    sig = SignalInstance((int,))
    with ScopedConnection(sig.connect(mock)) as scoped:
        assert scoped.connected()
        sig.emit(1)
    sig.emit(2)
    mock.assert_called_once_with(1)
    assert not scoped.connected()


def test_scoped_connection_out_of_scope():
    mock = Mock()
    sig = SignalInstance()
    scoped = ScopedConnection(sig.connect(mock))
    assert len(sig) == 1
    del scoped
    gc.collect()
    assert len(sig) == 0


def test_scoped_connection_release():
    mock = Mock()
    sig = SignalInstance()
    scoped = ScopedConnection(sig.connect(mock))
    plain = scoped.release()
    assert type(plain) is Connection
    assert plain == scoped
    del scoped
    gc.collect()
    assert plain.connected()
    sig.emit()
    mock.assert_called_once()


def test_scoped_connection_manual_disconnect():
    sig = SignalInstance()
    other = sig.connect(Mock())
    scoped = ScopedConnection(sig.connect(Mock()))
    assert scoped.disconnect()
    del scoped
    gc.collect()
    # the other connection is untouched
    assert other.connected()
    assert len(sig) == 1


def test_scoped_connection_not_copyable():
    sig = SignalInstance()
    scoped = ScopedConnection(sig.connect(Mock()))
    with pytest.raises(TypeError):
        copy.copy(scoped)
    with pytest.raises(TypeError):
        copy.deepcopy(scoped)

    with pytest.raises(TypeError, match="requires a Connection"):
        ScopedConnection(object())  # type: ignore[arg-type]


def test_scoped_connection_during_emission():
    calls = []
    sig = SignalInstance()

    def first():
        calls.append("first")
        with ScopedConnection(sig.connect(lambda: calls.append("temp"))):
            pass

    sig.connect(first)
    sig.emit()
    sig.emit()
    # connected and deactivated within `first`, so never called
    assert calls == ["first", "first"]
    assert len(list(sig._ring)) == 1


def test_scoped_connection_outlives_signal():
    sig = SignalInstance()
    scoped = ScopedConnection(sig.connect(Mock()))
    del sig
    gc.collect()
    assert scoped.signal is None
    with scoped:
        pass
    assert not scoped.disconnect()


def test_scoped_connection_moved():
    mock = Mock()
    sig = SignalInstance()
    first = ScopedConnection(sig.connect(mock))
    second = ScopedConnection(first)
    assert second == first

    # the duty to disconnect went along with the move
    del first
    gc.collect()
    assert second.connected()
    sig.emit()
    mock.assert_called_once()

    del second
    gc.collect()
    assert len(sig) == 0
