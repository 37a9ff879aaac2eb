"""Habit repository protocol."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from typing import Optional, Protocol

from ...models.habit import Habit, HabitCompletion, HabitReminder


class HabitRepository(Protocol):
    """Storage contract for habits, their completions and reminders.

    Implementations are injected into ``HabitService``; nothing in the package
    reaches for a module-level store.
    """

    def transaction(self) -> AbstractContextManager[None]:
        """Group the enclosed calls so they are stored together or not at all."""
        ...

    def get_by_id(self, habit_id: int, *, owner_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        ...

    def list_all(
        self,
        *,
        owner_id: int,
        category: Optional[str] = None,
        frequency: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[Habit]:
        """List habits newest first, optionally filtered."""
        ...

    def create(self, habit: Habit, *, owner_id: int) -> Habit:
        """Create a new habit."""
        ...

    def update(self, habit: Habit, *, owner_id: int) -> Habit:
        """Update an existing habit."""
        ...

    def delete(self, habit_id: int, *, owner_id: int) -> bool:
        """Delete a habit with its completions and reminders."""
        ...

    # Completion operations
    def get_completion(self, habit_id: int, occurred_on: date) -> Optional[HabitCompletion]:
        """Get the completion for one calendar day."""
        ...

    def get_completions(
        self,
        habit_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[HabitCompletion]:
        """Get completions for a habit, ascending by day, within optional bounds."""
        ...

    def upsert_completion(self, completion: HabitCompletion) -> HabitCompletion:
        """Insert a completion or overwrite the one already logged for that day."""
        ...

    def delete_completion(self, habit_id: int, occurred_on: date) -> bool:
        """Delete the completion for a day; return whether one existed."""
        ...

    # Reminder operations
    def list_reminders(self, habit_id: int) -> list[HabitReminder]:
        """List reminders attached to a habit."""
        ...

    def replace_reminders(
        self, habit_id: int, reminders: list[HabitReminder]
    ) -> list[HabitReminder]:
        """Replace all reminders of a habit."""
        ...
