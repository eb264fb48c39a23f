import re

import pytest

import ringsignal.testing as rt
from ringsignal import Signal, SignalInstance
from ringsignal.utils import monitor_events


class Thermostat:
    reset = Signal()
    temperature = Signal(float)
    validate = Signal(float, returns=bool)


def test_assert_emitted_family() -> None:
    t = Thermostat()

    with rt.assert_emitted(t.reset) as tester:
        t.reset.emit()
    assert isinstance(tester, rt.SignalTester)

    with pytest.raises(
        AssertionError, match="Expected 'reset' to be emitted, but it was never emitted"
    ):
        with rt.assert_emitted(t.reset):
            pass

    with pytest.raises(
        AssertionError,
        match="Expected 'reset' to be emitted once, but it was emitted 3 times.",
    ):
        with rt.assert_emitted_once(t.reset):
            for _ in range(3):
                t.reset.emit()

    with rt.assert_not_emitted(t.reset):
        pass
    with pytest.raises(
        AssertionError,
        match="Expected 'reset' not to be emitted, but it was emitted once.",
    ):
        with rt.assert_not_emitted(t.reset):
            t.reset.emit()


def test_assert_emitted_with_args() -> None:
    t = Thermostat()
    with rt.assert_emitted_with(t.temperature, 21.5):
        t.temperature.emit(19.0)
        t.temperature.emit(21.5)

    with pytest.raises(
        AssertionError,
        match=re.escape(
            "Expected 'temperature' to be emitted last with (21.5,), "
            "but the last emission was (19.0,)."
        ),
    ):
        with rt.assert_emitted_with(t.temperature, 21.5):
            t.temperature.emit(19.0)

    with rt.assert_emitted_once_with(t.temperature, 20.0):
        t.temperature.emit(20.0)

    with pytest.raises(
        AssertionError,
        match=re.escape(
            "Expected 'temperature' to be emitted once with (20.0,), "
            "but it was emitted with (18.0,)."
        ),
    ):
        with rt.assert_emitted_once_with(t.temperature, 20.0):
            t.temperature.emit(18.0)

    with rt.assert_ever_emitted_with(t.temperature, 20.0):
        t.temperature.emit(18.0)
        t.temperature.emit(20.0)
        t.temperature.emit(22.0)

    with pytest.raises(
        AssertionError,
        match=re.escape(
            "Expected 'temperature' to be emitted with (20.0,) at some point, "
            "but the emissions were [(18.0,), (22.0,)]."
        ),
    ):
        with rt.assert_ever_emitted_with(t.temperature, 20.0):
            t.temperature.emit(18.0)
            t.temperature.emit(22.0)


def test_signal_tester() -> None:
    t = Thermostat()
    tester = rt.SignalTester(t.temperature)
    assert tester.signal_name == "temperature"

    # not recording until connected
    t.temperature.emit(1.0)
    tester.assert_not_emitted()
    assert tester.emit_args == ()

    with tester:
        t.temperature.emit(2.0)
        t.temperature.emit(3.0)
    t.temperature.emit(4.0)

    assert tester.emit_count == 2
    assert tester.emit_args == (3.0,)
    assert tester.emit_args_list == [(2.0,), (3.0,)]
    tester.assert_ever_emitted_with(2.0)
    tester.reset()
    assert tester.emit_count == 0
    assert tester.slot_counts == []

    with pytest.raises(TypeError, match="Expected a SignalInstance"):
        rt.SignalTester(Thermostat.temperature)  # type: ignore[arg-type]


def test_slot_counts() -> None:
    t = Thermostat()
    with rt.SignalTester(t.reset) as tester:
        t.reset.emit()
        conn = t.reset.connect(lambda: None)
        t.reset.connect(lambda: None)
        t.reset.emit()
        conn.disconnect()
        t.reset.emit()

    assert tester.slot_counts == [0, 2, 1]
    tester.assert_slot_count(1)
    with pytest.raises(
        AssertionError,
        match=re.escape(
            "Expected 'reset' to be emitted to 2 slot(s), "
            "but the last emission found 1."
        ),
    ):
        tester.assert_slot_count(2)

    tester.reset()
    with pytest.raises(AssertionError, match="it was never emitted"):
        tester.assert_slot_count(0)


def test_tester_does_not_take_part_in_aggregation() -> None:
    t = Thermostat()
    t.validate.connect(lambda value: value > 0)
    with rt.assert_emitted_once_with(t.validate, 5.0):
        assert t.validate.emit(5.0) is True
    assert len(t.validate) == 1


def test_tester_records_without_slots() -> None:
    sig = SignalInstance((int,))
    with rt.assert_emitted_once_with(sig, 1):
        sig.emit(1)


def test_blocked_signal_is_not_recorded() -> None:
    t = Thermostat()
    with rt.assert_not_emitted(t.reset):
        with t.reset.blocked():
            t.reset.emit()


def test_nested_testers_restore_hooks() -> None:
    t = Thermostat()
    outer = rt.SignalTester(t.temperature)
    inner = rt.SignalTester(t.temperature)
    with outer:
        t.temperature.emit(1.0)
        with inner:
            t.temperature.emit(2.0)
        t.temperature.emit(3.0)

    assert outer.emit_args_list == [(1.0,), (2.0,), (3.0,)]
    assert inner.emit_args_list == [(2.0,)]
    assert "_debug_hook" not in vars(t.temperature)

    # connecting twice is harmless
    outer.connect()
    outer.connect()
    outer.disconnect()
    outer.disconnect()
    assert "_debug_hook" not in vars(t.temperature)


def test_tester_stopped_before_later_monitor() -> None:
    t = Thermostat()
    logged = []
    tester = rt.SignalTester(t.temperature)

    tester.connect()
    with monitor_events(t, logged.append):
        t.temperature.emit(1.0)
        # the monitor installed after the tester is left in place
        tester.disconnect()
        t.temperature.emit(2.0)
    t.temperature.emit(3.0)

    assert [info.args for info in logged] == [(1.0,), (2.0,)]
    # the monitor replaced the hook of the tester while it was active
    assert tester.emit_count == 0

    other = rt.SignalTester(t.temperature)
    with other:
        t.temperature.emit(4.0)
    other.assert_emitted_once_with(4.0)
    assert tester.emit_count == 0
