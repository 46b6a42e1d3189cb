"""DB helpers for tests: bootstrap a temporary SQLite DB and seed registries."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy import text as sql_text

from transaction_import.db import Base, TiAccount, TiCategory, TiTransaction, create_schema
from transaction_import.db.client import session_scope


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    A file-backed DB lets the worker threads' connections share state
    (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    create_schema(database_url=url)
    _assert_schema_in_sync(url)
    return url


def seed_registry(
    database_url: str,
    *,
    accounts: Iterable[tuple[str, str]] = (),
    categories: Iterable[tuple[str, str]] = (),
) -> None:
    with session_scope(database_url=database_url) as session:
        for account_id, name in accounts:
            session.add(TiAccount(id=account_id, name=name))
        for category_id, name in categories:
            session.add(TiCategory(id=category_id, name=name))


def count_transactions(database_url: str) -> int:
    with session_scope(database_url=database_url) as session:
        return session.execute(select(func.count(TiTransaction.id))).scalar_one()


def _assert_schema_in_sync(database_url: str) -> None:
    """ORM column set matches the SQLite table column set for every table."""

    with session_scope(database_url=database_url) as session:
        for table in Base.metadata.sorted_tables:
            rows = session.execute(sql_text(f"PRAGMA table_info('{table.name}')")).fetchall()
            got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
            expected = {c.name for c in table.columns}
            assert got == expected, f"{table.name} schema drift: {got ^ expected}"
