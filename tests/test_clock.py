from datetime import datetime, timedelta

from exam_platform.core.clock import (
    FrozenClock, SystemClock, deadline_for, elapsed_seconds, is_expired, remaining_seconds, utcnow,
)

START = datetime(2024, 5, 1, 9, 0, 0)


def test_deadline_is_start_plus_duration():
    assert deadline_for(START, 90) == datetime(2024, 5, 1, 10, 30, 0)


def test_expiry_boundary():
    expires_at = deadline_for(START, 60)
    assert not is_expired(expires_at, expires_at - timedelta(microseconds=1))
    # the deadline itself is already too late
    assert is_expired(expires_at, expires_at)
    assert is_expired(expires_at, expires_at + timedelta(seconds=1))


def test_remaining_seconds_never_negative():
    expires_at = deadline_for(START, 1)
    assert remaining_seconds(expires_at, START) == 60.0
    assert remaining_seconds(expires_at, START + timedelta(minutes=5)) == 0.0


def test_elapsed_seconds():
    assert elapsed_seconds(START, START + timedelta(seconds=75)) == 75.0
    assert elapsed_seconds(START, START - timedelta(seconds=5)) == 0.0


def test_frozen_clock_only_moves_when_told():
    clock = FrozenClock(START)
    assert clock.now() == START
    assert clock.advance(minutes=10) == START + timedelta(minutes=10)
    clock.set(START)
    assert clock.now() == START


def test_system_clock_is_naive_utc():
    now = SystemClock().now()
    assert now.tzinfo is None
    assert abs((utcnow() - now).total_seconds()) < 5
