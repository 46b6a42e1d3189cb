"""Duplicate detection against the target transaction store.

A candidate is a duplicate only when the store already holds a transaction with
the same ``(account_id, date, amount, description)``, compared exactly.
Near-misses (description casing, trailing spaces, a cent of difference) are
imported as new transactions.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Protocol

from .logging_setup import get_logger
from .models import CanonicalTransaction
from .pmap import DEFAULT_CONCURRENCY, p_map

_logger = get_logger("transaction_import.duplicates")


class TransactionStore(Protocol):
    def exists(self, account_id: str, on: date, amount: Decimal, description: str) -> bool: ...

    def insert(self, tx: CanonicalTransaction) -> str: ...


def is_duplicate(store: TransactionStore, tx: CanonicalTransaction) -> bool:
    return store.exists(tx.account_id, tx.date, tx.amount, tx.description)


def find_duplicates(
    store: TransactionStore,
    candidates: Sequence[tuple[int, CanonicalTransaction]],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> set[int]:
    """Return the row numbers whose transaction already exists in ``store``.

    Lookups are read-only and run concurrently; the result does not depend on
    the order in which they complete.
    """

    if not candidates:
        return set()

    def _check(item: tuple[int, CanonicalTransaction]) -> tuple[int, bool]:
        row, tx = item
        return row, is_duplicate(store, tx)

    checked = p_map(candidates, _check, concurrency=concurrency)
    dupes = {row for row, hit in checked if hit}
    _logger.debug("duplicates:done candidates=%d duplicates=%d", len(candidates), len(dupes))
    return dupes


__all__ = ["TransactionStore", "is_duplicate", "find_duplicates"]
