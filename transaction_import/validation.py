"""Row validation and mapping of a valid row to a canonical transaction.

Both functions are pure: they read one row and return values, so the executor
can run them for many rows in parallel.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .errors import FieldParseError, RowValidationError
from .models import (
    REQUIRED_FIELDS,
    CanonicalField,
    CanonicalTransaction,
    ColumnMapping,
    CsvRow,
    DateFormat,
    ImportOptions,
    ImportRowError,
    ImportRowWarning,
)
from .normalizers import parse_amount, parse_date


@dataclass(frozen=True, slots=True)
class RowValidationResult:
    row: int
    errors: tuple[ImportRowError, ...] = ()
    warnings: tuple[ImportRowWarning, ...] = ()
    parsed_date: date | None = None
    parsed_amount: Decimal | None = None

    @property
    def valid(self) -> bool:
        return not self.errors


def _cell(row: CsvRow, header: str | None) -> str:
    if header is None:
        return ""
    return (row.get(header) or "").strip()


def validate_row(
    row: CsvRow,
    mapping: ColumnMapping,
    options: ImportOptions,
    *,
    date_format: DateFormat,
    row_number: int = 1,
) -> RowValidationResult:
    """Check one row against the mapping and the run's date layout.

    Errors:
    - a required field that is not mapped, or mapped but blank in this row;
    - a date or amount cell that does not parse (the raw value is kept).

    A warning is added when no merchant column is mapped and no default
    category is configured.
    """

    if date_format is DateFormat.AUTO:
        raise ValueError("validate_row requires a resolved date format, not AUTO")

    errors: list[ImportRowError] = []
    warnings: list[ImportRowWarning] = []

    for f in REQUIRED_FIELDS:
        header = mapping.get(f)
        if header is None:
            errors.append(
                ImportRowError(row_number, f.value, "", f'Required field "{f.value}" is not mapped')
            )
        elif not _cell(row, header):
            errors.append(
                ImportRowError(row_number, f.value, "", f'Required field "{f.value}" is empty')
            )

    parsed_date: date | None = None
    raw_date = _cell(row, mapping.date)
    if raw_date:
        try:
            parsed_date = parse_date(raw_date, date_format)
        except FieldParseError:
            errors.append(
                ImportRowError(
                    row_number,
                    CanonicalField.DATE.value,
                    raw_date,
                    f'Invalid date format: "{raw_date}". Expected format: {date_format.value}',
                )
            )

    parsed_amount: Decimal | None = None
    raw_amount = _cell(row, mapping.amount)
    if raw_amount:
        try:
            parsed_amount = parse_amount(raw_amount)
        except FieldParseError:
            errors.append(
                ImportRowError(
                    row_number,
                    CanonicalField.AMOUNT.value,
                    raw_amount,
                    f'Invalid amount format: "{raw_amount}"',
                )
            )

    if mapping.merchant is None and not options.default_category_id:
        warnings.append(
            ImportRowWarning(row_number, CanonicalField.MERCHANT.value, 'No "merchant" column mapped')
        )

    return RowValidationResult(
        row=row_number,
        errors=tuple(errors),
        warnings=tuple(warnings),
        parsed_date=parsed_date,
        parsed_amount=parsed_amount,
    )


def map_row_to_transaction(
    row: CsvRow,
    mapping: ColumnMapping,
    options: ImportOptions,
    *,
    date_format: DateFormat,
    row_number: int = 1,
    validation: RowValidationResult | None = None,
) -> CanonicalTransaction:
    """Build the canonical transaction for a row.

    Raises :class:`RowValidationError` when the row does not validate. Pass a
    prior ``validation`` result to avoid re-parsing the cells.
    """

    result = validation or validate_row(
        row, mapping, options, date_format=date_format, row_number=row_number
    )
    if not result.valid:
        raise RowValidationError(result.row, [(e.field, e.message) for e in result.errors])
    assert result.parsed_date is not None and result.parsed_amount is not None

    merchant = _cell(row, mapping.merchant) or None
    return CanonicalTransaction(
        account_id=options.target_account_id or "",
        category_id=options.default_category_id,
        date=result.parsed_date,
        amount=result.parsed_amount,
        description=_cell(row, mapping.description),
        merchant_name=merchant,
    )


__all__ = ["RowValidationResult", "validate_row", "map_row_to_transaction"]
