"""Public API for the ``transaction_import`` package.

Three calls cover the upload → map → import flow a host application drives:

- :func:`parse_file` turns uploaded bytes into headers, a preview, and a count.
- :func:`resolve_mapping` proposes a column mapping (oracle first when one is
  given, keyword matching otherwise or on oracle failure).
- :func:`run_import` validates, de-duplicates, and commits or dry-runs.

Parsing the full table for an import is :func:`transaction_import.parser.parse`.
"""

from __future__ import annotations

from collections.abc import Sequence

from .duplicates import TransactionStore
from .executor import run_import as _run_import
from .mapping import MappingSuggester, resolve_mapping as _resolve_mapping
from .models import (
    ColumnMapping,
    CsvRow,
    ImportOptions,
    ImportResult,
    MappingResolution,
    ParsedFile,
    RawTable,
)
from .parser import DEFAULT_PREVIEW_ROWS, parse_preview, validate_upload


def parse_file(
    file_bytes: bytes,
    *,
    preview_size: int = DEFAULT_PREVIEW_ROWS,
    filename: str | None = None,
    content_type: str | None = None,
) -> ParsedFile:
    """Parse an upload for display.

    When ``filename`` or ``content_type`` is given, the upload checks (type,
    emptiness, size limit) run before parsing. Raises
    :class:`~transaction_import.errors.ParseError`.
    """

    if filename is not None or content_type is not None:
        validate_upload(filename or "", len(file_bytes), content_type=content_type)
    return parse_preview(file_bytes, preview_size=preview_size)


def resolve_mapping(
    headers: Sequence[str], *, oracle: MappingSuggester | None = None
) -> MappingResolution:
    """Propose a mapping for ``headers``; never raises because of the oracle."""

    return _resolve_mapping(headers, oracle=oracle)


def run_import(
    rows: RawTable | Sequence[CsvRow],
    mapping: ColumnMapping,
    options: ImportOptions,
    *,
    store: TransactionStore | None,
    concurrency: int | None = None,
) -> ImportResult:
    """Run one import; see :func:`transaction_import.executor.run_import`."""

    return _run_import(rows, mapping, options, store=store, concurrency=concurrency)


__all__ = ["parse_file", "resolve_mapping", "run_import"]
