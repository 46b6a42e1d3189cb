"""SQLAlchemy-backed transaction store, registries, and import-run history.

Scope:
- ``SqlTransactionStore``: exact-match duplicate lookups and single-row
  inserts into ``ti_transactions``. Each call opens its own short session, so
  a failed insert rolls back only itself.
- ``list_accounts`` / ``list_categories``: read-only registry listings.
- ``record_import_run``: one ``ti_import_runs`` row plus its per-row errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db.client import session_scope
from .db.models import TiAccount, TiCategory, TiImportRun, TiImportRunError, TiTransaction
from .errors import StoreWriteError
from .logging_setup import get_logger
from .models import CanonicalTransaction, ColumnMapping, DateFormat, ImportResult

_logger = get_logger("transaction_import.persistence")


def _to_decimal_2(value: Decimal) -> Decimal:
    # Matches the Numeric(18, 2) column so lookups compare like with like.
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class SqlTransactionStore:
    """``TransactionStore`` over the ``ti_transactions`` table."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self.database_url = database_url

    def exists(self, account_id: str, on: date, amount: Decimal, description: str) -> bool:
        stmt = (
            select(TiTransaction.id)
            .where(
                TiTransaction.account_id == account_id,
                TiTransaction.date == on,
                TiTransaction.amount == _to_decimal_2(amount),
                TiTransaction.description == description,
            )
            .limit(1)
        )
        with session_scope(database_url=self.database_url) as session:
            return session.execute(stmt).first() is not None

    def insert(self, tx: CanonicalTransaction) -> str:
        row = TiTransaction(
            account_id=tx.account_id,
            category_id=tx.category_id,
            date=tx.date,
            amount=_to_decimal_2(tx.amount),
            description=tx.description,
            merchant_name=tx.merchant_name,
            status=tx.status,
        )
        try:
            with session_scope(database_url=self.database_url) as session:
                session.add(row)
                session.flush()
                new_id = row.id
        except SQLAlchemyError as e:
            raise StoreWriteError(f"failed to insert transaction: {e.__class__.__name__}: {e}") from e
        return str(new_id)


# ---- Registries ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    id: str
    name: str
    parent_id: str | None = None


def list_accounts(session: Session) -> list[RegistryEntry]:
    rows = session.execute(select(TiAccount.id, TiAccount.name).order_by(TiAccount.name)).all()
    return [RegistryEntry(id=r.id, name=r.name) for r in rows]


def list_categories(session: Session) -> list[RegistryEntry]:
    rows = session.execute(
        select(TiCategory.id, TiCategory.name, TiCategory.parent_id).order_by(
            TiCategory.parent_id.is_not(None), TiCategory.name
        )
    ).all()
    return [RegistryEntry(id=r.id, name=r.name, parent_id=r.parent_id) for r in rows]


# ---- Import run history ----------------------------------------------------------


def _run_status(result: ImportResult) -> str:
    if result.dry_run:
        return "dry_run"
    return "completed" if result.success else "completed_with_errors"


def record_import_run(
    session: Session,
    *,
    file_name: str,
    mapping: ColumnMapping,
    account_id: str | None,
    date_format: DateFormat | None,
    result: ImportResult,
) -> int:
    """Persist a summary of one run and its row errors; return the run id.

    Commit is left to the caller's session scope.
    """

    run = TiImportRun(
        file_name=file_name,
        account_id=account_id,
        status=_run_status(result),
        dry_run=result.dry_run,
        date_format=date_format.value if date_format is not None else None,
        column_mapping=mapping.as_dict(),
        total_rows=result.total_rows,
        imported_rows=result.imported,
        failed_rows=result.failed,
        duplicate_rows=result.duplicates,
    )
    run.errors = [
        TiImportRunError(row_number=e.row, field=e.field, raw_value=e.raw_value, message=e.message)
        for e in result.errors
    ]
    session.add(run)
    session.flush()
    _logger.info(
        "import_run:recorded id=%d status=%s errors=%d", run.id, run.status, len(result.errors)
    )
    return run.id


__all__ = [
    "SqlTransactionStore",
    "RegistryEntry",
    "list_accounts",
    "list_categories",
    "record_import_run",
]
