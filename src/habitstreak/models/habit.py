"""Habit tracking data structures."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

from ..services.streaks import CompletionRecord, StreakState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Habit(SQLModel, table=True):
    """A recurring habit owned by a single user."""

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(nullable=False, index=True)
    title: str = Field(nullable=False, max_length=100, index=True)
    description: str = Field(default="", max_length=400)
    category: str = Field(default="Personal", max_length=32)
    frequency: str = Field(default="daily", max_length=16)
    target_value: float = Field(default=1.0, nullable=False)
    unit: str = Field(default="times", max_length=32)
    color: str = Field(default="#8B5CF6", max_length=9)
    icon: str = Field(default="🎯", max_length=16)
    is_active: bool = Field(default=True, nullable=False, index=True)

    streak_current: int = Field(default=0, nullable=False)
    streak_longest: int = Field(default=0, nullable=False)
    streak_last_completed: Optional[date] = Field(default=None)

    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)

    completions: list["HabitCompletion"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "HabitCompletion", back_populates="habit", cascade="all, delete-orphan"
        ),
    )
    reminders: list["HabitReminder"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "HabitReminder", back_populates="habit", cascade="all, delete-orphan"
        ),
    )

    @property
    def streak(self) -> StreakState:
        """Return the persisted streak columns as a value object."""

        return StreakState(
            current=self.streak_current,
            longest=self.streak_longest,
            last_completed=self.streak_last_completed,
        )

    def apply_streak(self, state: StreakState) -> None:
        """Copy a freshly computed streak onto the persisted columns."""

        self.streak_current = state.current
        self.streak_longest = state.longest
        self.streak_last_completed = state.last_completed
        self.updated_at = _utcnow()


class HabitCompletion(SQLModel, table=True):
    """Completion logged for a habit on one calendar day."""

    __tablename__: ClassVar[str] = "habit_completion"

    # Composite key enforces one completion per habit per calendar day.
    habit_id: int = Field(foreign_key="habit.id", primary_key=True)
    occurred_on: date = Field(primary_key=True, index=True)
    value: float = Field(default=1.0, nullable=False)
    notes: Optional[str] = Field(default=None, max_length=400)
    completed_at: datetime = Field(default_factory=_utcnow, nullable=False)

    habit: "Habit" = Relationship(
        back_populates="completions",
        sa_relationship=relationship("Habit", back_populates="completions"),
    )

    def to_record(self) -> CompletionRecord:
        return CompletionRecord(date=self.occurred_on, value=self.value, notes=self.notes)


class HabitReminder(SQLModel, table=True):
    """Reminder schedule attached to a habit. Stored only; nothing is sent."""

    __tablename__: ClassVar[str] = "habit_reminder"

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(foreign_key="habit.id", nullable=False, index=True)
    time: str = Field(nullable=False, max_length=5)  # HH:MM
    days: str = Field(default="", max_length=80)  # comma-separated weekday names
    is_active: bool = Field(default=True, nullable=False)

    habit: "Habit" = Relationship(
        back_populates="reminders",
        sa_relationship=relationship("Habit", back_populates="reminders"),
    )

    @property
    def day_list(self) -> list[str]:
        return [day for day in self.days.split(",") if day]
