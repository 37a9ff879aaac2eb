"""Streak computation over a habit's completion history.

Everything here is pure: callers hand in a snapshot of completion records and
get a new ``StreakState`` back, so the functions are safe to call from any
thread without locking.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional, Union

# A run stays "current" while its last day is at most this many days before today.
# Applied to every frequency, weekly and monthly habits included.
ACTIVE_WINDOW_DAYS = 1

DateLike = Union[date, datetime, str]


@dataclass(frozen=True)
class CompletionRecord:
    """Amount logged for a habit on one calendar day."""

    date: DateLike
    value: float = 1.0
    notes: Optional[str] = None


@dataclass(frozen=True)
class StreakState:
    """Current and longest streak derived from completion records."""

    current: int = 0
    longest: int = 0
    last_completed: Optional[date] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_completed"] = self.last_completed.isoformat() if self.last_completed else None
        return data


def to_calendar_day(value: DateLike, tz: Optional[tzinfo] = None) -> date:
    """Normalize a date, datetime or ISO string to a calendar day.

    Aware datetimes are converted to ``tz`` first when one is given, so the
    day reflects the user's wall clock rather than UTC. Anything that is not a
    date-like value raises ``TypeError``; malformed strings raise ``ValueError``.
    """

    # datetime is a subclass of date, so it has to be checked first
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            return to_calendar_day(datetime.fromisoformat(text), tz)
    raise TypeError(f"Cannot interpret {value!r} as a calendar day")


def is_active(last_completed: Optional[date], today: date) -> bool:
    """Return True when a run ending on ``last_completed`` still counts as current."""

    if last_completed is None:
        return False
    return (today - last_completed).days <= ACTIVE_WINDOW_DAYS


def recompute(
    records: Optional[Iterable[CompletionRecord]],
    target_value: float,
    today: DateLike,
    *,
    tz: Optional[tzinfo] = None,
) -> StreakState:
    """Compute the streak state for a habit from its completion records.

    Only records whose value meets ``target_value`` qualify. ``target_value``
    must be a positive number; it is not re-validated here. Input order does
    not matter, and removing a record always calls for a fresh recompute since
    a gap in the middle can split one run into two.
    """

    today_day = to_calendar_day(today, tz)
    days = sorted(
        {to_calendar_day(record.date, tz) for record in records or () if record.value >= target_value},
        reverse=True,
    )
    if not days:
        return StreakState()

    longest = 0
    run = 1
    newest_run: Optional[int] = None
    for newer, older in zip(days, days[1:]):
        if (newer - older).days == 1:
            run += 1
            continue
        if newest_run is None:
            newest_run = run
        longest = max(longest, run)
        run = 1
    if newest_run is None:
        newest_run = run
    longest = max(longest, run)

    last_completed = days[0]
    current = newest_run if is_active(last_completed, today_day) else 0
    return StreakState(current=current, longest=longest, last_completed=last_completed)


__all__ = [
    "ACTIVE_WINDOW_DAYS",
    "CompletionRecord",
    "StreakState",
    "is_active",
    "recompute",
    "to_calendar_day",
]
