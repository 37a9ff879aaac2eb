"""Engine and session wiring for the habit store."""

from __future__ import annotations

from contextlib import AbstractContextManager, contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig

SessionFactory = Callable[[], AbstractContextManager[Session]]


def create_db_engine(config: BaseConfig) -> Engine:
    return create_engine(config.DATABASE_URL, **config.sqlalchemy_engine_options())


def init_database(engine: Engine) -> None:
    """Create the habit, completion and reminder tables if they are missing."""
    from .. import models  # noqa: F401  registers the tables on SQLModel.metadata

    SQLModel.metadata.create_all(engine)


def create_session_factory(engine: Engine) -> SessionFactory:
    """Return a factory of sessions that commit on a clean exit.

    Rows stay readable after commit (``expire_on_commit=False``) because the
    repositories hand detached habits and completions back to the service.
    """

    @contextmanager
    def open_session() -> Iterator[Session]:
        session = Session(engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return open_session


def bootstrap_database(config: Optional[BaseConfig] = None) -> tuple[Engine, SessionFactory]:
    """Build the engine, make sure the schema exists and pair it with a factory."""

    engine = create_db_engine(config or BaseConfig())
    init_database(engine)
    return engine, create_session_factory(engine)
