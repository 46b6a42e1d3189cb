"""Import executor: one driver moving a run through :class:`ImportStage`.

PARSED → MAPPED → VALIDATED → DUPLICATES_CHECKED → EXECUTED

- MAPPED: run-level preconditions are checked and the date layout is locked.
  Failures here raise and nothing else happens.
- VALIDATED: every row is validated and mapped independently (in parallel).
- DUPLICATES_CHECKED: valid rows are looked up in the store (read-only). All
  lookups happen before any insert.
- EXECUTED: a dry run stops short of writing; a commit inserts rows one by
  one, and a failed insert fails only that row.

Row results are plain :class:`RowOutcome` values folded into one
:class:`ImportResult` in row order.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass

from .date_detection import resolve_date_format
from .duplicates import TransactionStore, find_duplicates
from .errors import ImportPreconditionError
from .logging_setup import get_logger
from .models import (
    CanonicalTransaction,
    ColumnMapping,
    CsvRow,
    DateFormat,
    ImportOptions,
    ImportResult,
    ImportRowError,
    ImportStage,
    OutcomeKind,
    RawTable,
    RowOutcome,
)
from .pmap import p_map, resolve_concurrency
from .validation import RowValidationResult, map_row_to_transaction, validate_row

DATE_SAMPLE_SIZE: int = 100

_logger = get_logger("transaction_import.executor")


@dataclass(frozen=True, slots=True)
class _CheckedRow:
    row: int
    validation: RowValidationResult
    transaction: CanonicalTransaction | None


def _advance(current: ImportStage, to: ImportStage) -> ImportStage:
    if to.value != current.value + 1:
        raise RuntimeError(f"invalid stage transition {current.name} -> {to.name}")
    _logger.debug("import:stage stage=%s", to.name)
    return to


def _date_samples(rows: Sequence[CsvRow], header: str | None) -> list[str]:
    if header is None:
        return []
    out: list[str] = []
    for row in rows:
        value = (row.get(header) or "").strip()
        if value:
            out.append(value)
            if len(out) >= DATE_SAMPLE_SIZE:
                break
    return out


def _check_preconditions(
    options: ImportOptions, store: TransactionStore | None
) -> None:
    if options.dry_run:
        return
    if not (options.target_account_id or "").strip():
        raise ImportPreconditionError("target_account_id is required to commit an import")
    if store is None:
        raise ImportPreconditionError("a transaction store is required to commit an import")


def run_import(
    rows: RawTable | Sequence[CsvRow],
    mapping: ColumnMapping,
    options: ImportOptions,
    *,
    store: TransactionStore | None = None,
    date_format: DateFormat | None = None,
    headers: Sequence[str] | None = None,
    concurrency: int | None = None,
) -> ImportResult:
    """Validate, de-duplicate, and commit (or simulate committing) ``rows``.

    ``headers`` defaults to the table's headers (or the first row's keys) and
    is used to check that the mapping only names existing columns. Required
    fields left unmapped are not fatal: every row then fails with a
    "not mapped" error for that field.

    Raises :class:`ImportPreconditionError` when a commit lacks a target
    account or a store, and :class:`MappingPreconditionError` when the mapping
    names a header the file does not have.
    """

    t0 = time.perf_counter()
    stage = ImportStage.PARSED
    if isinstance(rows, RawTable):
        headers = headers if headers is not None else rows.headers
        data: Sequence[CsvRow] = rows.rows
    else:
        data = list(rows)
        if headers is None:
            headers = list(data[0].keys()) if data else []

    # ---- MAPPED
    _check_preconditions(options, store)
    if data:
        mapping = mapping.validated_against(headers)
    missing = mapping.missing_required()
    if missing:
        _logger.warning("import:unmapped_required fields=%s", ",".join(f.value for f in missing))
    requested = date_format if date_format is not None else options.date_format
    fmt = resolve_date_format(requested, _date_samples(data, mapping.date))
    stage = _advance(stage, ImportStage.MAPPED)

    # ---- VALIDATED
    workers = resolve_concurrency(concurrency)

    def _check(item: tuple[int, CsvRow]) -> _CheckedRow:
        row_number, row = item
        result = validate_row(row, mapping, options, date_format=fmt, row_number=row_number)
        tx = None
        if result.valid:
            tx = map_row_to_transaction(
                row, mapping, options, date_format=fmt, row_number=row_number, validation=result
            )
        return _CheckedRow(row=row_number, validation=result, transaction=tx)

    checked: list[_CheckedRow] = p_map(
        list(enumerate(data, start=1)), _check, concurrency=workers
    )
    stage = _advance(stage, ImportStage.VALIDATED)

    # ---- DUPLICATES_CHECKED
    candidates = [(c.row, c.transaction) for c in checked if c.transaction is not None]
    # Only stored transactions count; identical rows within one file all import.
    duplicate_rows: set[int] = set()
    if store is not None and (options.target_account_id or "").strip():
        duplicate_rows = find_duplicates(store, candidates, concurrency=workers)
    elif options.dry_run and candidates:
        _logger.info("import:dedupe_skipped candidates=%d", len(candidates))
    stage = _advance(stage, ImportStage.DUPLICATES_CHECKED)

    # ---- EXECUTED
    outcomes: list[RowOutcome] = []
    for c in checked:
        v = c.validation
        if c.transaction is None:
            outcomes.append(RowOutcome(c.row, OutcomeKind.FAILED, v.errors, v.warnings))
        elif c.row in duplicate_rows:
            outcomes.append(
                RowOutcome(c.row, OutcomeKind.DUPLICATE, (), v.warnings, c.transaction)
            )
        elif options.dry_run:
            outcomes.append(RowOutcome(c.row, OutcomeKind.IMPORTED, (), v.warnings, c.transaction))
        else:
            assert store is not None
            outcomes.append(_insert_row(store, c, v))
    stage = _advance(stage, ImportStage.EXECUTED)

    result = ImportResult.from_outcomes(outcomes, dry_run=options.dry_run)
    _logger.info(
        "import:done dry_run=%s rows=%d imported=%d failed=%d duplicates=%d format=%s "
        "latency_ms=%.2f",
        options.dry_run,
        result.total_rows,
        result.imported,
        result.failed,
        result.duplicates,
        fmt.name,
        (time.perf_counter() - t0) * 1000.0,
    )
    return result


def _insert_row(
    store: TransactionStore, checked: _CheckedRow, v: RowValidationResult
) -> RowOutcome:
    tx = checked.transaction
    assert tx is not None
    try:
        store.insert(tx)
    except Exception as e:  # noqa: BLE001
        _logger.warning(
            "import:row_insert_failed row=%d error=%s", checked.row, e.__class__.__name__
        )
        err = ImportRowError(checked.row, "database", "", str(e) or e.__class__.__name__)
        return RowOutcome(checked.row, OutcomeKind.FAILED, (err,), v.warnings)
    return RowOutcome(checked.row, OutcomeKind.IMPORTED, (), v.warnings, tx)


__all__ = ["DATE_SAMPLE_SIZE", "run_import"]
