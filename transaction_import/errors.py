"""Exception taxonomy for the import pipeline.

Fatal errors (``ParseError``, ``MappingPreconditionError``,
``ImportPreconditionError``) are raised to the caller and stop the run before
any row is processed. Row-scoped problems (``FieldParseError``,
``RowValidationError``, ``StoreWriteError``) are captured into the
``ImportResult`` by the executor and never abort sibling rows.
"""

from __future__ import annotations

from collections.abc import Sequence


class ParseError(ValueError):
    """The uploaded file could not be turned into a header row and rows."""


class MappingPreconditionError(ValueError):
    """The column mapping cannot be used against the parsed table."""

    def __init__(self, message: str, *, fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.fields: tuple[str, ...] = tuple(fields)


class ImportPreconditionError(ValueError):
    """Run-level option is missing (e.g., no target account for a commit)."""


class FieldParseError(ValueError):
    """A single cell could not be normalized into its canonical type."""

    def __init__(
        self,
        message: str,
        *,
        raw_value: str | None,
        field: str | None = None,
        expected: str | None = None,
    ) -> None:
        super().__init__(message)
        self.raw_value = raw_value
        self.field = field
        self.expected = expected


class RowValidationError(ValueError):
    """Aggregates every field-level issue found on one row."""

    def __init__(self, row: int, issues: Sequence[tuple[str, str]]) -> None:
        self.row = row
        self.issues: tuple[tuple[str, str], ...] = tuple(issues)
        summary = "; ".join(f"{field}: {msg}" for field, msg in self.issues)
        super().__init__(f"row {row} failed validation: {summary}")


class StoreWriteError(RuntimeError):
    """The transaction store rejected a single insert."""


__all__ = [
    "ParseError",
    "MappingPreconditionError",
    "ImportPreconditionError",
    "FieldParseError",
    "RowValidationError",
    "StoreWriteError",
]
