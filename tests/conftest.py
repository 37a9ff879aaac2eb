"""Pytest configuration and shared fixtures for HabitStreak tests.

Provides database fixtures, habit factories and service instances pinned to a
fixed "today" so streak assertions never depend on the wall clock.
"""

from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine

from habitstreak.infra.database import create_session_factory
from habitstreak.infra.repositories import InMemoryHabitRepository, SQLModelHabitRepository
from habitstreak.models import Habit, HabitCompletion
from habitstreak.services.habits import HabitService

TODAY = date(2024, 3, 15)
OWNER_ID = 1


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Session for arranging rows directly in the database."""
    session = Session(db_engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Transactional session factory, the same one the CLI uses."""
    return create_session_factory(db_engine)


# =============================================================================
# Repositories and services
# =============================================================================


@pytest.fixture
def sql_repo(session_factory) -> SQLModelHabitRepository:
    return SQLModelHabitRepository(session_factory)


@pytest.fixture
def memory_repo() -> InMemoryHabitRepository:
    return InMemoryHabitRepository()


@pytest.fixture(params=["sql", "memory"])
def repo(request):
    """Run a test against both repository implementations."""
    if request.param == "sql":
        return request.getfixturevalue("sql_repo")
    return request.getfixturevalue("memory_repo")


@pytest.fixture
def service(repo) -> HabitService:
    """Habit service whose "today" is pinned to ``TODAY``."""
    return HabitService(repo, today=lambda: TODAY)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def habit_factory(db_session):
    """Factory for creating habits directly in the test database.

    Returns:
        Callable: Function that creates and persists Habit instances
    """

    def _create_habit(
        title: str = "Test Habit",
        target_value: float = 1.0,
        frequency: str = "daily",
        category: str = "Personal",
        is_active: bool = True,
        owner_id: int = OWNER_ID,
    ) -> Habit:
        habit = Habit(
            owner_id=owner_id,
            title=title,
            target_value=target_value,
            frequency=frequency,
            category=category,
            is_active=is_active,
        )
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        return habit

    return _create_habit


@pytest.fixture
def completion_factory(db_session):
    """Factory for logging completions directly in the test database."""

    def _create_completion(habit: Habit, occurred_on: date, value: float = 1.0, notes=None):
        completion = HabitCompletion(
            habit_id=habit.id, occurred_on=occurred_on, value=value, notes=notes
        )
        db_session.add(completion)
        db_session.commit()
        return completion

    return _create_completion
