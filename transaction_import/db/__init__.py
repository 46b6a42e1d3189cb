"""Database layer: ORM models plus engine/session helpers.

Public exports
--------------
- ``Base`` and ``metadata``
- ORM models from ``transaction_import.db.models``
- ``create_schema`` for development and test databases
"""

from __future__ import annotations

from .client import get_engine
from .models import Base, TiAccount, TiCategory, TiImportRun, TiImportRunError, TiTransaction

metadata = Base.metadata


def create_schema(*, database_url: str | None = None) -> None:
    """Create any missing ``ti_*`` tables on the target database."""

    Base.metadata.create_all(bind=get_engine(database_url=database_url))


__all__ = [
    "Base",
    "metadata",
    "create_schema",
    "TiAccount",
    "TiCategory",
    "TiTransaction",
    "TiImportRun",
    "TiImportRunError",
]
