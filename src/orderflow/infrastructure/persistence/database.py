"""SQLAlchemy engine, session factory and the declarative base.

PostgreSQL is the production backend; SQLite is supported for local use and
tests.  Row locks (``SELECT ... FOR UPDATE``) are no-ops on SQLite, where the
whole database is locked per write transaction instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def create_db_engine(database_url: str, *, echo: bool = False) -> Engine:
    url = make_url(database_url)
    backend = url.get_backend_name()

    kwargs: dict[str, Any] = {"echo": echo}
    if backend.startswith("postgresql"):
        kwargs["pool_pre_ping"] = True
    elif backend.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # One shared connection, or every session sees an empty database.
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    if backend.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.info("Database engine created", extra={"backend": backend, "echo": echo})
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Commit on normal exit, roll back on error; the session is always closed."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("Transaction rolled back", exc_info=True)
        raise
    finally:
        session.close()


def create_schema(engine: Engine) -> None:
    # Registers every mapped table on Base.metadata.
    from orderflow.infrastructure.persistence import tables  # noqa: F401

    Base.metadata.create_all(engine)
