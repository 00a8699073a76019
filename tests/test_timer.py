import threading
from datetime import timedelta

import pytest

from aegiskit.timer import TimerModule, parse_duration


def test_single_units():
    assert parse_duration("45s") == timedelta(seconds=45)
    assert parse_duration("2d") == timedelta(days=2)
    assert parse_duration("3h") == timedelta(hours=3)


def test_combined_units_sum():
    assert parse_duration("1m30s") == parse_duration("90s")
    assert parse_duration("1d1h") == parse_duration("25h")
    assert parse_duration("2h15m") == parse_duration("2h") + parse_duration("15m")


def test_zero_amount_zeroes_whole_span():
    assert parse_duration("5m0s") == timedelta(0)
    assert parse_duration("0h") == timedelta(0)


def test_text_without_units_is_zero():
    assert parse_duration("") == timedelta(0)
    assert parse_duration("123") == timedelta(0)


def test_trailing_text_after_last_unit_is_ignored():
    assert parse_duration("10s99") == parse_duration("10s")


def test_leading_number_before_garbage_is_used():
    assert parse_duration("10x5s") == parse_duration("10s")


def test_missing_number_raises():
    with pytest.raises(ValueError):
        parse_duration("xs")
    with pytest.raises(ValueError):
        parse_duration("s")


def test_huge_number_overflows():
    with pytest.raises(OverflowError):
        parse_duration("99999999999999999999s")


def test_check_command_unknown_returns_false():
    module = TimerModule()
    assert module.check_command("nope", ["nope"]) is False


def test_check_command_known_runs_remind():
    module = TimerModule()
    assert module.check_command("reset", ["reset"]) is True
    assert module.check_command("reset", ["reset", "5m", "tea"]) is True


def test_db_entries_empty():
    assert TimerModule().get_db_entries() == []


def test_stop_cancels_pending_timer():
    module = TimerModule()
    fired = threading.Event()
    module.timer = threading.Timer(60, fired.set)
    pending = module.timer
    pending.start()
    module.stop()
    pending.join(2)
    assert not pending.is_alive()
    assert not fired.is_set()
    assert module.timer is None