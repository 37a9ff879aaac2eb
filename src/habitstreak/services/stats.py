"""Per-habit completion statistics."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

DEFAULT_STATS_DAYS = 30


@dataclass(frozen=True)
class HabitStats:
    """Summary row for one habit over a date window."""

    habit_id: int
    title: str
    category: str
    frequency: str
    target_value: float
    current_streak: int
    longest_streak: int
    total_value: float
    completions: int
    completion_rate: int

    def to_dict(self) -> dict:
        return asdict(self)


def resolve_window(
    start: Optional[date],
    end: Optional[date],
    *,
    today: date,
    default_days: int = DEFAULT_STATS_DAYS,
) -> tuple[date, date]:
    """Return the inclusive (start, end) window the stats cover.

    With no bounds the window is the last ``default_days`` days ending today;
    a single missing bound defaults to today.
    """

    if start is None and end is None:
        return today - timedelta(days=default_days - 1), today
    start = start or today
    end = end or today
    if start > end:
        raise ValueError("Start date must not be after end date")
    return start, end


def days_in_range(start: date, end: date) -> int:
    """Number of calendar days in the inclusive window."""

    return (end - start).days + 1


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up (12.5 -> 13)."""

    return math.floor(part * 100 / whole + 0.5)


def habit_stats(
    rows: Iterable[tuple[object, Sequence[object]]],
    start: Optional[date] = None,
    end: Optional[date] = None,
    *,
    today: date,
    default_days: int = DEFAULT_STATS_DAYS,
) -> list[HabitStats]:
    """Build stats from ``(habit, completions)`` pairs.

    Habits need ``id``, ``title``, ``category``, ``frequency``, ``target_value``
    and the persisted ``streak_current``/``streak_longest`` columns; completions
    need ``occurred_on`` and ``value``.
    """

    window_start, window_end = resolve_window(start, end, today=today, default_days=default_days)
    span = days_in_range(window_start, window_end)

    stats: list[HabitStats] = []
    for habit, completions in rows:
        in_range = [c for c in completions if window_start <= c.occurred_on <= window_end]
        stats.append(
            HabitStats(
                habit_id=habit.id,
                title=habit.title,
                category=habit.category,
                frequency=habit.frequency,
                target_value=habit.target_value,
                current_streak=habit.streak_current,
                longest_streak=habit.streak_longest,
                total_value=sum(c.value for c in in_range),
                completions=len(in_range),
                completion_rate=percent(len(in_range), span),
            )
        )
    return stats


__all__ = [
    "DEFAULT_STATS_DAYS",
    "HabitStats",
    "days_in_range",
    "habit_stats",
    "percent",
    "resolve_window",
]
