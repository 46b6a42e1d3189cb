"""Raw CSV parsing: file bytes → :class:`~transaction_import.models.RawTable`.

The splitter is a deliberately small per-character quote-toggle scan rather
than a full RFC 4180 reader: a comma inside double quotes does not split the
field, but a newline always ends the record (embedded newlines inside quoted
fields are not supported). Callers that need the full dialect should pre-clean
the file.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePath

from .errors import ParseError
from .logging_setup import get_logger
from .models import CsvRow, ParsedFile, RawTable

DEFAULT_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
DEFAULT_PREVIEW_ROWS: int = 10

_logger = get_logger("transaction_import.parser")


def validate_upload(
    filename: str,
    size: int,
    *,
    content_type: str | None = None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """Reject uploads that must not reach the parser.

    Accepts files with a ``.csv`` extension or a ``text/csv`` content type that
    are non-empty and no larger than ``max_bytes``.
    """

    is_csv_name = PurePath(filename).suffix.lower() == ".csv"
    is_csv_type = (content_type or "").split(";", 1)[0].strip().lower() == "text/csv"
    if not (is_csv_name or is_csv_type):
        raise ParseError("Invalid file type. Please upload a CSV file.")
    if size <= 0:
        raise ParseError("File is empty.")
    if size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ParseError(f"File size exceeds {limit_mb:g}MB limit.")


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one CSV line on ``delimiter`` outside double quotes.

    Quote characters toggle the in-quotes state and are dropped from the
    output; ``""`` inside a quoted field therefore yields nothing rather than a
    literal quote. Each field is trimmed.
    """

    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    fields.append("".join(current).strip())
    return fields


def _decode(file_bytes: bytes) -> str:
    try:
        return file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"File is not valid UTF-8 text: {e}") from e


def _row_from_values(headers: Sequence[str], values: Sequence[str]) -> CsvRow:
    # Short rows pad with "", long rows drop the surplus cells.
    return {h: (values[i] if i < len(values) else "") for i, h in enumerate(headers)}


def parse(
    file_bytes: bytes,
    *,
    skip_header_row: bool = True,
    headers: Sequence[str] | None = None,
) -> RawTable:
    """Parse an uploaded CSV file into headers and string-keyed rows.

    - The first non-empty line is the header row unless ``skip_header_row`` is
      False, in which case every line is data and ``headers`` (synthetic,
      positional) must be supplied by the caller.
    - Blank lines are skipped anywhere in the file.
    - Raises :class:`ParseError` when the file has no non-empty lines, cannot
      be decoded, or has duplicate header names.
    """

    text = _decode(file_bytes)
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise ParseError("CSV file has no content (zero non-empty lines).")

    if skip_header_row:
        header_row = split_line(lines[0])
        data_lines = lines[1:]
    else:
        if not headers:
            raise ParseError("headers are required when the file has no header row")
        header_row = [h.strip() for h in headers]
        data_lines = lines

    # Unnamed columns (e.g. a leading empty column) get positional names.
    header_row = [h or f"column_{i + 1}" for i, h in enumerate(header_row)]
    seen: set[str] = set()
    dupes: list[str] = []
    for h in header_row:
        if h in seen and h not in dupes:
            dupes.append(h)
        seen.add(h)
    if dupes:
        raise ParseError("CSV header row has duplicate column names: " + ", ".join(dupes))

    rows = tuple(_row_from_values(header_row, split_line(line)) for line in data_lines)
    _logger.debug("parse:done headers=%d rows=%d", len(header_row), len(rows))
    return RawTable(headers=tuple(header_row), rows=rows)


def positional_headers(file_bytes: bytes) -> tuple[str, ...]:
    """Return ``column_1 .. column_N`` sized to the first non-empty line."""

    for line in _decode(file_bytes).splitlines():
        if line.strip():
            return tuple(f"column_{i + 1}" for i in range(len(split_line(line))))
    raise ParseError("CSV file has no content (zero non-empty lines).")


def parse_preview(file_bytes: bytes, *, preview_size: int = DEFAULT_PREVIEW_ROWS) -> ParsedFile:
    """Parse and return only what an upload screen needs."""

    table = parse(file_bytes)
    return ParsedFile(
        headers=table.headers,
        preview_rows=tuple(table.preview(preview_size)),
        total_row_count=table.total_rows,
    )


__all__ = [
    "DEFAULT_MAX_UPLOAD_BYTES",
    "DEFAULT_PREVIEW_ROWS",
    "validate_upload",
    "split_line",
    "parse",
    "positional_headers",
    "parse_preview",
]
