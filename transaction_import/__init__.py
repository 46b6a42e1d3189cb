"""transaction_import: CSV bank/card transaction import pipeline.

Public API
----------
- ``parse_file``, ``resolve_mapping``, ``run_import`` (see ``api``)
- Models: ``ColumnMapping``, ``ImportOptions``, ``ImportResult``, ``DateFormat``...
- Errors: ``ParseError``, ``MappingPreconditionError``, ``ImportPreconditionError``...
"""

from __future__ import annotations

from .api import parse_file, resolve_mapping, run_import
from .errors import (
    FieldParseError,
    ImportPreconditionError,
    MappingPreconditionError,
    ParseError,
    RowValidationError,
    StoreWriteError,
)
from .models import (
    CanonicalField,
    CanonicalTransaction,
    ColumnMapping,
    DateFormat,
    DateFormatDetection,
    ImportOptions,
    ImportResult,
    ImportRowError,
    ImportRowWarning,
    MappingResolution,
    ParsedFile,
    RawTable,
)

__all__ = [
    "parse_file",
    "resolve_mapping",
    "run_import",
    "FieldParseError",
    "ImportPreconditionError",
    "MappingPreconditionError",
    "ParseError",
    "RowValidationError",
    "StoreWriteError",
    "CanonicalField",
    "CanonicalTransaction",
    "ColumnMapping",
    "DateFormat",
    "DateFormatDetection",
    "ImportOptions",
    "ImportResult",
    "ImportRowError",
    "ImportRowWarning",
    "MappingResolution",
    "ParsedFile",
    "RawTable",
]
