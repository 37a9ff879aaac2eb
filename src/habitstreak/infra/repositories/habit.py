"""SQLModel implementation of Habit repository."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional

from sqlmodel import Session, select

from ...logging_config import get_logger
from ...models.habit import Habit, HabitCompletion, HabitReminder
from ..database import SessionFactory

logger = get_logger(__name__)


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation.

    Each call runs in its own short session unless it happens inside
    ``transaction()``, where calls from the same thread share one session and
    commit once at the end.
    """

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory
        self._local = threading.local()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Share one session across the enclosed calls; roll back on error."""
        if getattr(self._local, "session", None) is not None:
            yield
            return
        with self.session_factory() as session:
            self._local.session = session
            try:
                yield
                session.commit()
            finally:
                self._local.session = None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        current = getattr(self._local, "session", None)
        if current is not None:
            yield current
            return
        with self.session_factory() as session:
            yield session
            session.commit()

    def get_by_id(self, habit_id: int, *, owner_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        with self._session() as session:
            obj = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.owner_id == owner_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(
        self,
        *,
        owner_id: int,
        category: Optional[str] = None,
        frequency: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[Habit]:
        """List habits newest first, optionally filtered."""
        with self._session() as session:
            statement = select(Habit).where(Habit.owner_id == owner_id)
            if category is not None:
                statement = statement.where(Habit.category == category)
            if frequency is not None:
                statement = statement.where(Habit.frequency == frequency)
            if is_active is not None:
                statement = statement.where(Habit.is_active == is_active)
            statement = statement.order_by(Habit.created_at.desc(), Habit.id.desc())  # type: ignore

            rows = list(session.exec(statement).all())
            for row in rows:
                session.expunge(row)
            return rows

    def create(self, habit: Habit, *, owner_id: int) -> Habit:
        """Create a new habit."""
        with self._session() as session:
            habit.owner_id = owner_id
            session.add(habit)
            session.flush()
            session.refresh(habit)
            session.expunge(habit)
            logger.debug("Created habit", extra={"habit_id": habit.id, "owner_id": owner_id})
            return habit

    def update(self, habit: Habit, *, owner_id: int) -> Habit:
        """Update an existing habit."""
        with self._session() as session:
            habit.owner_id = owner_id
            habit.updated_at = datetime.now(timezone.utc)
            habit = session.merge(habit)
            session.flush()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    def delete(self, habit_id: int, *, owner_id: int) -> bool:
        """Delete a habit; completions and reminders go with it."""
        with self._session() as session:
            habit = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.owner_id == owner_id)
            ).first()
            if habit is None:
                return False
            session.delete(habit)
            session.flush()
            logger.debug("Deleted habit", extra={"habit_id": habit_id, "owner_id": owner_id})
            return True

    # Completion operations
    def get_completion(self, habit_id: int, occurred_on: date) -> Optional[HabitCompletion]:
        """Get the completion for one calendar day."""
        with self._session() as session:
            obj = session.get(HabitCompletion, (habit_id, occurred_on))
            if obj:
                session.expunge(obj)
            return obj

    def get_completions(
        self,
        habit_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[HabitCompletion]:
        """Get completions for a habit, ascending by day, within optional bounds."""
        with self._session() as session:
            statement = select(HabitCompletion).where(HabitCompletion.habit_id == habit_id)
            if start_date is not None:
                statement = statement.where(HabitCompletion.occurred_on >= start_date)
            if end_date is not None:
                statement = statement.where(HabitCompletion.occurred_on <= end_date)
            statement = statement.order_by(HabitCompletion.occurred_on)  # type: ignore

            rows = list(session.exec(statement).all())
            for row in rows:
                session.expunge(row)
            return rows

    def upsert_completion(self, completion: HabitCompletion) -> HabitCompletion:
        """Insert a completion or overwrite the one already logged for that day."""
        with self._session() as session:
            existing = session.get(HabitCompletion, (completion.habit_id, completion.occurred_on))

            if existing:
                existing.value = completion.value
                existing.notes = completion.notes
                existing.completed_at = datetime.now(timezone.utc)
                completion = existing

            session.add(completion)
            session.flush()
            session.refresh(completion)
            session.expunge(completion)
            return completion

    def delete_completion(self, habit_id: int, occurred_on: date) -> bool:
        """Delete the completion for a day; return whether one existed."""
        with self._session() as session:
            completion = session.get(HabitCompletion, (habit_id, occurred_on))
            if completion is None:
                return False
            session.delete(completion)
            session.flush()
            return True

    # Reminder operations
    def list_reminders(self, habit_id: int) -> list[HabitReminder]:
        """List reminders attached to a habit."""
        with self._session() as session:
            rows = list(
                session.exec(
                    select(HabitReminder)
                    .where(HabitReminder.habit_id == habit_id)
                    .order_by(HabitReminder.time, HabitReminder.id)  # type: ignore
                ).all()
            )
            for row in rows:
                session.expunge(row)
            return rows

    def replace_reminders(
        self, habit_id: int, reminders: list[HabitReminder]
    ) -> list[HabitReminder]:
        """Replace all reminders of a habit."""
        with self._session() as session:
            for old in session.exec(
                select(HabitReminder).where(HabitReminder.habit_id == habit_id)
            ).all():
                session.delete(old)
            for reminder in reminders:
                reminder.habit_id = habit_id
                session.add(reminder)
            session.flush()
            for reminder in reminders:
                session.refresh(reminder)
                session.expunge(reminder)
            return sorted(reminders, key=lambda item: (item.time, item.id or 0))
