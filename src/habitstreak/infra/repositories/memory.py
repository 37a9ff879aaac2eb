"""In-memory habit repository for development and tests without a database.

Each instance owns its own storage; create one per application or test and
inject it where a ``HabitRepository`` is expected.
"""

from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional, TypeVar

from sqlmodel import SQLModel

from ...models.habit import Habit, HabitCompletion, HabitReminder

_M = TypeVar("_M", bound=SQLModel)


def _copy(obj: _M) -> _M:
    """Detach stored rows from callers so mutations go through the repository."""

    return type(obj).model_validate(obj.model_dump())


class InMemoryHabitRepository:
    """Dict-backed habit repository mirroring ``SQLModelHabitRepository``."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._habit_ids = itertools.count(1)
        self._reminder_ids = itertools.count(1)
        self._habits: dict[int, Habit] = {}
        self._completions: dict[tuple[int, date], HabitCompletion] = {}
        self._reminders: dict[int, list[HabitReminder]] = {}

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store for the enclosed calls and restore it if they fail."""
        with self._lock:
            snapshot = (
                dict(self._habits),
                dict(self._completions),
                {habit_id: list(rows) for habit_id, rows in self._reminders.items()},
            )
            try:
                yield
            except Exception:
                self._habits, self._completions, self._reminders = snapshot
                raise

    def clear(self) -> None:
        """Drop everything held by this instance."""
        with self._lock:
            self._habits.clear()
            self._completions.clear()
            self._reminders.clear()

    def get_by_id(self, habit_id: int, *, owner_id: int) -> Optional[Habit]:
        with self._lock:
            habit = self._habits.get(habit_id)
            if habit is None or habit.owner_id != owner_id:
                return None
            return _copy(habit)

    def list_all(
        self,
        *,
        owner_id: int,
        category: Optional[str] = None,
        frequency: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[Habit]:
        with self._lock:
            rows = [
                habit
                for habit in self._habits.values()
                if habit.owner_id == owner_id
                and (category is None or habit.category == category)
                and (frequency is None or habit.frequency == frequency)
                and (is_active is None or habit.is_active == is_active)
            ]
            rows.sort(key=lambda habit: (habit.created_at, habit.id), reverse=True)
            return [_copy(habit) for habit in rows]

    def create(self, habit: Habit, *, owner_id: int) -> Habit:
        with self._lock:
            habit.id = next(self._habit_ids)
            habit.owner_id = owner_id
            self._habits[habit.id] = _copy(habit)
            return habit

    def update(self, habit: Habit, *, owner_id: int) -> Habit:
        with self._lock:
            stored = self._habits.get(habit.id) if habit.id is not None else None
            if stored is None or stored.owner_id != owner_id:
                raise ValueError("Habit not found")
            habit.owner_id = owner_id
            habit.updated_at = datetime.now(timezone.utc)
            self._habits[habit.id] = _copy(habit)
            return habit

    def delete(self, habit_id: int, *, owner_id: int) -> bool:
        with self._lock:
            habit = self._habits.get(habit_id)
            if habit is None or habit.owner_id != owner_id:
                return False
            del self._habits[habit_id]
            self._reminders.pop(habit_id, None)
            for key in [key for key in self._completions if key[0] == habit_id]:
                del self._completions[key]
            return True

    def get_completion(self, habit_id: int, occurred_on: date) -> Optional[HabitCompletion]:
        with self._lock:
            completion = self._completions.get((habit_id, occurred_on))
            return _copy(completion) if completion else None

    def get_completions(
        self,
        habit_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[HabitCompletion]:
        with self._lock:
            rows = [
                completion
                for (owner_habit, day), completion in self._completions.items()
                if owner_habit == habit_id
                and (start_date is None or day >= start_date)
                and (end_date is None or day <= end_date)
            ]
            rows.sort(key=lambda completion: completion.occurred_on)
            return [_copy(completion) for completion in rows]

    def upsert_completion(self, completion: HabitCompletion) -> HabitCompletion:
        with self._lock:
            # a fresh row replaces the day outright, keeping snapshots in transaction() valid
            self._completions[(completion.habit_id, completion.occurred_on)] = _copy(completion)
            return completion

    def delete_completion(self, habit_id: int, occurred_on: date) -> bool:
        with self._lock:
            return self._completions.pop((habit_id, occurred_on), None) is not None

    def list_reminders(self, habit_id: int) -> list[HabitReminder]:
        with self._lock:
            return [_copy(reminder) for reminder in self._reminders.get(habit_id, [])]

    def replace_reminders(
        self, habit_id: int, reminders: list[HabitReminder]
    ) -> list[HabitReminder]:
        with self._lock:
            for reminder in reminders:
                reminder.id = next(self._reminder_ids)
                reminder.habit_id = habit_id
            ordered = sorted(reminders, key=lambda item: (item.time, item.id))
            self._reminders[habit_id] = [_copy(reminder) for reminder in ordered]
            return ordered
