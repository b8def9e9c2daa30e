"""Database helpers shared by the API, the worker and the CLI scripts."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..models.base import Base

from .session import SessionLocal, engine as _engine

LOGGER = structlog.get_logger(__name__)


def get_engine() -> Engine:
    return _engine


def create_schema(engine: Engine | None = None) -> list[str]:
    """Create every mapped table that is missing and return the table names."""

    bind = engine or _engine
    Base.metadata.create_all(bind=bind)
    tables = sorted(Base.metadata.tables)
    LOGGER.info("database_schema_ready", tables=tables)
    return tables


def drop_schema(engine: Engine | None = None) -> None:
    Base.metadata.drop_all(bind=engine or _engine)


def get_session_dependency() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session.

    Workflow writes commit through the repository, so nothing is committed here.
    Uncommitted work is rolled back when the request fails.
    """

    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Transactional scope for Celery tasks and scripts."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "create_schema",
    "drop_schema",
    "get_engine",
    "get_session_dependency",
    "session_scope",
]
