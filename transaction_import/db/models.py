from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# BIGINT on Postgres, INTEGER (rowid alias, autoincrementing) on SQLite.
_PK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Registries (read-only here)
# ---------------------------


class TiAccount(Base):
    __tablename__ = "ti_accounts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    institution: Mapped[str | None] = mapped_column(String, nullable=True)
    currency_code: Mapped[str] = mapped_column(
        CHAR(3), nullable=False, server_default=text("'USD'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class TiCategory(Base):
    __tablename__ = "ti_categories"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Optional parent; two-level depth is a convention, not a constraint.
    parent_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("ti_categories.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: ti_transactions
# ---------------------------


class TiTransaction(Base):
    __tablename__ = "ti_transactions"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("ti_accounts.id"), nullable=False
    )
    category_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("ti_categories.id"), nullable=True
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    # Positive = credit, negative = debit.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    merchant_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'POSTED'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("status in ('PENDING','POSTED')", name="ck_ti_tx_status"),
        # Serves the exact-match duplicate lookup.
        Index("ix_ti_tx_dedupe", "account_id", "date", "amount"),
    )


# ---------------------------
# Import run history
# ---------------------------


class TiImportRun(Base):
    __tablename__ = "ti_import_runs"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    dry_run: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    date_format: Mapped[str | None] = mapped_column(String, nullable=True)
    column_mapping: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    imported_rows: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    failed_rows: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    duplicate_rows: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    errors: Mapped[list[TiImportRunError]] = relationship(
        back_populates="run", cascade="all, delete-orphan", order_by="TiImportRunError.row_number"
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('completed','completed_with_errors','dry_run')",
            name="ck_ti_import_run_status",
        ),
    )


class TiImportRunError(Base):
    __tablename__ = "ti_import_run_errors"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        _PK, ForeignKey("ti_import_runs.id", ondelete="CASCADE"), nullable=False
    )
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    field: Mapped[str] = mapped_column(String, nullable=False)
    raw_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    run: Mapped[TiImportRun] = relationship(back_populates="errors")


__all__ = [
    "Base",
    "TiAccount",
    "TiCategory",
    "TiTransaction",
    "TiImportRun",
    "TiImportRunError",
]
