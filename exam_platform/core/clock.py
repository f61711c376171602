"""Deadline arithmetic. All timestamps are naive UTC, as stored by the database."""
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SystemClock:
    def now(self) -> datetime:
        return utcnow()


class FrozenClock:
    """Clock whose time only moves when told to"""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current


def deadline_for(started_at: datetime, duration_minutes: int) -> datetime:
    return started_at + timedelta(minutes=duration_minutes)


def is_expired(expires_at: datetime, now: datetime) -> bool:
    # the submission window is [started_at, expires_at)
    return now >= expires_at


def remaining_seconds(expires_at: datetime, now: datetime) -> float:
    return max((expires_at - now).total_seconds(), 0.0)


def elapsed_seconds(started_at: datetime, now: datetime) -> float:
    return max((now - started_at).total_seconds(), 0.0)
