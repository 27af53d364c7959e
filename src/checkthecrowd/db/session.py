"""Engine and session factory for the vote ledger database."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from checkthecrowd.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Models must be imported before metadata is used for create_all or Alembic.
import checkthecrowd.models  # noqa: E402,F401


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, **kwargs: Any) -> Engine:
    """Create an engine for ``url``.

    SQLite connections may be shared across threads and enforce foreign
    keys, matching what PostgreSQL gives us for free.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        created = create_engine(url, connect_args=connect_args, **kwargs)
        event.listen(created, "connect", _enable_sqlite_foreign_keys)
        return created
    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.effective_database_url, echo=settings.sql_debug)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine | None = None) -> None:
    """Create all missing tables."""
    Base.metadata.create_all(bind=bind or engine)
