"""Habit use cases: CRUD, completion tracking and streak upkeep."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date, datetime, tzinfo
from typing import Any, Callable, Iterator, Optional

from ..domain.repositories.habit import HabitRepository
from ..forms import CompletionForm, HabitForm, HabitUpdateForm
from ..logging_config import get_logger
from ..models.habit import Habit, HabitCompletion, HabitReminder
from .stats import DEFAULT_STATS_DAYS, HabitStats, habit_stats
from .streaks import DateLike, StreakState, recompute, to_calendar_day

logger = get_logger(__name__)


def _reminder_rows(reminders: list[dict[str, Any]]) -> list[HabitReminder]:
    return [
        HabitReminder(
            time=item["time"],
            days=",".join(item.get("days") or []),
            is_active=item.get("is_active", True),
        )
        for item in reminders
    ]


class HabitService:
    """Coordinates a ``HabitRepository`` with streak recomputation.

    Completion changes for one habit are serialized behind a per-habit lock so
    the read of completions, the recompute and the write of the streak columns
    never interleave with another change to the same habit. Each change runs in
    a single repository transaction, so a completion is never stored without
    its refreshed streak.
    """

    def __init__(
        self,
        repository: HabitRepository,
        *,
        today: Optional[Callable[[], date]] = None,
        tz: Optional[tzinfo] = None,
        stats_days: int = DEFAULT_STATS_DAYS,
    ) -> None:
        self.repository = repository
        self.tz = tz
        self.stats_days = stats_days
        self._today = today
        # habit_id -> [lock, holders and waiters]
        self._locks: dict[int, list] = {}
        self._locks_guard = threading.Lock()

    def today(self) -> date:
        """Return the calendar day treated as "today"."""

        if self._today is not None:
            return self._today()
        return datetime.now(self.tz).date()

    @contextmanager
    def _habit_lock(self, habit_id: int) -> Iterator[None]:
        """Hold the lock for ``habit_id``; the entry lives only while in use."""

        with self._locks_guard:
            entry = self._locks.setdefault(habit_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[habit_id]

    # Habit CRUD
    def create_habit(self, payload: dict[str, Any], *, owner_id: int) -> Habit:
        """Validate ``payload`` and persist a new habit with a zero streak."""

        form = HabitForm.parse(payload)
        data = form.model_dump(mode="json")
        reminders = data.pop("reminders")
        habit = self.repository.create(Habit(owner_id=owner_id, **data), owner_id=owner_id)
        if reminders:
            self.repository.replace_reminders(habit.id, _reminder_rows(reminders))
        logger.info("Habit created", extra={"habit_id": habit.id, "owner_id": owner_id})
        return habit

    def list_habits(
        self,
        *,
        owner_id: int,
        category: Optional[str] = None,
        frequency: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[Habit]:
        return self.repository.list_all(
            owner_id=owner_id, category=category, frequency=frequency, is_active=is_active
        )

    def get_habit(self, habit_id: int, *, owner_id: int) -> Habit:
        """Return the habit or raise ``ValueError`` when it does not exist."""

        habit = self.repository.get_by_id(habit_id, owner_id=owner_id)
        if habit is None:
            raise ValueError("Habit not found")
        return habit

    def update_habit(self, habit_id: int, payload: dict[str, Any], *, owner_id: int) -> Habit:
        """Apply a partial update; a new target value triggers a recompute."""

        changes = {
            key: value
            for key, value in HabitUpdateForm.parse(payload).changes().items()
            if value is not None
        }
        reminders = changes.pop("reminders", None)

        with self._habit_lock(habit_id), self.repository.transaction():
            habit = self.get_habit(habit_id, owner_id=owner_id)
            retarget = "target_value" in changes and changes["target_value"] != habit.target_value
            for key, value in changes.items():
                setattr(habit, key, value)
            if retarget:
                habit.apply_streak(self._compute(habit))
            habit = self.repository.update(habit, owner_id=owner_id)
            if reminders is not None:
                self.repository.replace_reminders(habit_id, _reminder_rows(reminders))

        logger.info(
            "Habit updated",
            extra={"habit_id": habit_id, "fields": sorted(changes), "recomputed": retarget},
        )
        return habit

    def delete_habit(self, habit_id: int, *, owner_id: int) -> None:
        with self._habit_lock(habit_id):
            if not self.repository.delete(habit_id, owner_id=owner_id):
                raise ValueError("Habit not found")
        logger.info("Habit deleted", extra={"habit_id": habit_id, "owner_id": owner_id})

    def list_reminders(self, habit_id: int, *, owner_id: int) -> list[HabitReminder]:
        self.get_habit(habit_id, owner_id=owner_id)
        return self.repository.list_reminders(habit_id)

    # Completions
    def _resolve_day(self, on: Optional[DateLike]) -> date:
        return self.today() if on is None else to_calendar_day(on, self.tz)

    def _compute(self, habit: Habit) -> StreakState:
        records = [completion.to_record() for completion in self.repository.get_completions(habit.id)]
        return recompute(records, habit.target_value, self.today(), tz=self.tz)

    def _store_streak(self, habit: Habit, *, owner_id: int) -> Habit:
        state = self._compute(habit)
        habit.apply_streak(state)
        habit = self.repository.update(habit, owner_id=owner_id)
        logger.info(
            "Streak recomputed",
            extra={
                "habit_id": habit.id,
                "current": state.current,
                "longest": state.longest,
                "last_completed": state.last_completed,
            },
        )
        return habit

    def complete_habit(
        self,
        habit_id: int,
        *,
        owner_id: int,
        on: Optional[DateLike] = None,
        value: float = 1,
        notes: Optional[str] = None,
    ) -> Habit:
        """Log (or overwrite) the completion for a day and refresh the streak."""

        form = CompletionForm.parse({"on": self._resolve_day(on), "value": value, "notes": notes})

        with self._habit_lock(habit_id), self.repository.transaction():
            habit = self.get_habit(habit_id, owner_id=owner_id)
            self.repository.upsert_completion(
                HabitCompletion(
                    habit_id=habit_id, occurred_on=form.on, value=form.value, notes=form.notes
                )
            )
            logger.info(
                "Completion recorded",
                extra={"habit_id": habit_id, "occurred_on": form.on, "value": form.value},
            )
            return self._store_streak(habit, owner_id=owner_id)

    def uncomplete_habit(
        self, habit_id: int, *, owner_id: int, on: Optional[DateLike] = None
    ) -> Habit:
        """Remove the completion for a day and rebuild the streak from scratch."""

        day = self._resolve_day(on)

        with self._habit_lock(habit_id), self.repository.transaction():
            habit = self.get_habit(habit_id, owner_id=owner_id)
            removed = self.repository.delete_completion(habit_id, day)
            logger.info(
                "Completion removed",
                extra={"habit_id": habit_id, "occurred_on": day, "removed": removed},
            )
            return self._store_streak(habit, owner_id=owner_id)

    def get_completions(
        self,
        habit_id: int,
        *,
        owner_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[HabitCompletion]:
        self.get_habit(habit_id, owner_id=owner_id)
        return self.repository.get_completions(habit_id, start, end)

    def streak_for(self, habit_id: int, *, owner_id: int) -> StreakState:
        """Recompute the streak as of today without persisting it."""

        return self._compute(self.get_habit(habit_id, owner_id=owner_id))

    # Statistics
    def stats(
        self,
        *,
        owner_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[HabitStats]:
        """Completion stats for active habits, with streaks evaluated as of today."""

        today = self.today()
        rows = []
        for habit in self.repository.list_all(owner_id=owner_id, is_active=True):
            completions = self.repository.get_completions(habit.id)
            habit.apply_streak(
                recompute([c.to_record() for c in completions], habit.target_value, today, tz=self.tz)
            )
            rows.append((habit, completions))
        return habit_stats(rows, start, end, today=today, default_days=self.stats_days)
