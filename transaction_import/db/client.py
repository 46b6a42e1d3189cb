"""SQLAlchemy engine/session helpers.

Usage
-----
from transaction_import.db.client import session_scope

with session_scope() as s:
    s.execute(...)

Engines are cached per database URL, so one process can talk to several
databases (tests create one SQLite file each).
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_LOCK = threading.Lock()
_ENGINES: dict[str, tuple[Engine, sessionmaker[Session]]] = {}


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:  # pragma: no cover - tiny bridge
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def _entry(url: str) -> tuple[Engine, sessionmaker[Session]]:
    with _LOCK:
        cached = _ENGINES.get(url)
        if cached is not None:
            return cached
        if url.startswith("sqlite"):
            # Row lookups run on worker threads.
            engine = create_engine(url, connect_args={"check_same_thread": False})
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        else:
            engine = create_engine(url, pool_pre_ping=True)
        maker = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
        _ENGINES[url] = (engine, maker)
        return engine, maker


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared engine for ``database_url`` (default ``DATABASE_URL``)."""

    return _entry(_database_url(database_url))[0]


def get_session(*, database_url: str | None = None) -> Session:
    return _entry(_database_url(database_url))[1]()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engines() -> None:
    """Dispose every cached engine (used by tests between databases)."""

    with _LOCK:
        for engine, _ in _ENGINES.values():
            engine.dispose()
        _ENGINES.clear()


__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "dispose_engines",
]
