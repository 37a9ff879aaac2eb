"""SQLModel table exports."""

from .habit import Habit, HabitCompletion, HabitReminder

__all__ = [
    "Habit",
    "HabitCompletion",
    "HabitReminder",
]
