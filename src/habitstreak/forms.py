"""Habit form definitions."""

from __future__ import annotations

import re
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_REMINDER_TIME = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


class HabitCategory(str, Enum):
    """Supported habit categories."""

    HEALTH = "Health"
    PRODUCTIVITY = "Productivity"
    LEARNING = "Learning"
    SOCIAL = "Social"
    PERSONAL = "Personal"
    OTHER = "Other"


class HabitFrequency(str, Enum):
    """Supported frequency options for habits."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


def _flatten_errors(exc: ValidationError) -> dict[str, list[str]]:
    structured: dict[str, list[str]] = {}
    for error in exc.errors(include_url=False):
        loc = error.get("loc", ())
        key = str(loc[0]) if loc else "__root__"
        structured.setdefault(key, []).append(error.get("msg", "Invalid value"))
    return structured


class _Form(BaseModel):
    """Shared helpers for payload forms."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    @classmethod
    def validation_errors(cls, payload: dict[str, Any]) -> dict[str, list[str]]:
        """Return validation errors for ``payload`` keyed by field name."""

        try:
            cls.model_validate(payload)
        except ValidationError as exc:
            return _flatten_errors(exc)
        return {}

    @classmethod
    def parse(cls, payload: dict[str, Any]):
        """Validate ``payload`` or raise ``ValueError`` with readable messages."""

        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            errors = _flatten_errors(exc)
            summary = "; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in errors.items())
            raise ValueError(f"Invalid habit data ({summary})") from exc


class ReminderForm(_Form):
    """Reminder schedule attached to a habit."""

    time: str = Field(description="Reminder time as HH:MM (24-hour)")
    days: list[Weekday] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not _REMINDER_TIME.match(value):
            raise ValueError("Use HH:MM (24-hour) for reminder times.")
        return value

    @field_validator("days", mode="before")
    @classmethod
    def normalize_days(cls, value: str | Iterable[str]) -> list[str] | Iterable[str]:
        """Accept comma-separated strings and any casing for weekday names."""

        if isinstance(value, str):
            value = value.split(",")
        return [str(day).strip().lower() for day in value if str(day).strip()]


class HabitForm(_Form):
    """Form model for creating a habit."""

    title: str = Field(description="Short label for the habit", max_length=100)
    description: str = Field(default="", max_length=400)
    category: HabitCategory = HabitCategory.PERSONAL
    frequency: HabitFrequency = HabitFrequency.DAILY
    target_value: float = Field(default=1.0, gt=0, description="Amount needed for a day to count")
    unit: str = Field(default="times", max_length=32)
    color: str = "#8B5CF6"
    icon: str = Field(default="🎯", max_length=16)
    is_active: bool = True
    reminders: list[ReminderForm] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        """Ensure the habit title is present."""

        if not value:
            raise ValueError("Please provide a habit title.")
        return value

    @field_validator("color")
    @classmethod
    def validate_color(cls, value: str) -> str:
        if not _HEX_COLOR.match(value):
            raise ValueError("Colors must be hex values like #8B5CF6.")
        return value


class HabitUpdateForm(_Form):
    """Partial update; only fields present in the payload are applied."""

    title: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=400)
    category: Optional[HabitCategory] = None
    frequency: Optional[HabitFrequency] = None
    target_value: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=32)
    color: Optional[str] = None
    icon: Optional[str] = Field(default=None, max_length=16)
    is_active: Optional[bool] = None
    reminders: Optional[list[ReminderForm]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value:
            raise ValueError("Please provide a habit title.")
        return value

    @field_validator("color")
    @classmethod
    def validate_color(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _HEX_COLOR.match(value):
            raise ValueError("Colors must be hex values like #8B5CF6.")
        return value

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller actually supplied."""

        return self.model_dump(exclude_unset=True, mode="json")


class CompletionForm(_Form):
    """Completion logged against a habit for one calendar day."""

    on: Optional[date] = Field(default=None, description="Calendar day; defaults to today")
    value: float = Field(default=1.0, ge=0)
    notes: Optional[str] = Field(default=None, max_length=400)


__all__ = [
    "CompletionForm",
    "HabitCategory",
    "HabitForm",
    "HabitFrequency",
    "HabitUpdateForm",
    "ReminderForm",
    "Weekday",
]
