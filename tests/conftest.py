"""Pytest configuration for test isolation.

The CLI loads ``.env`` from the working directory and the oracle, store, and
worker pool all read environment variables. Each test gets a clean environment
and its own working directory so a developer's local ``.env`` or exported
``DATABASE_URL`` never leaks into assertions.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from transaction_import.db.client import dispose_engines
from tests.helpers.db import bootstrap_sqlite_db

_ENV_VARS = (
    "OPENAI_API_KEY",
    "DATABASE_URL",
    "TXN_IMPORT_ORACLE_MODEL",
    "TXN_IMPORT_ORACLE_TIMEOUT",
    "TXN_IMPORT_MAX_WORKERS",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # CliRunner mixes stderr into output; keep pipeline logs out of it.
    monkeypatch.setenv("TXN_IMPORT_LOG_LEVEL", "ERROR")
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture
def sqlite_url(tmp_path: Path) -> Iterator[str]:
    """A fresh file-backed SQLite database with the ``ti_*`` schema."""

    url = bootstrap_sqlite_db(tmp_path / "db" / "import.sqlite3")
    yield url
    dispose_engines()
