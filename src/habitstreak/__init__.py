"""HabitStreak: habit tracking with calendar-day completion streaks."""

from __future__ import annotations

from .config import BaseConfig, DevConfig
from .services.streaks import CompletionRecord, StreakState, recompute

__all__ = ["BaseConfig", "CompletionRecord", "DevConfig", "StreakState", "recompute"]
