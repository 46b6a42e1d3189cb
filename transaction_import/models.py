"""Data models and enumerations for ``transaction_import``.

The pipeline moves through a small set of immutable values:

- :class:`RawTable` is produced once per uploaded file by the parser.
- :class:`ColumnMapping` ties canonical fields to source headers and is frozen
  for the duration of a run.
- :class:`CanonicalTransaction` is the unit handed to the transaction store.
- :class:`RowOutcome` records the terminal classification of one input row;
  outcomes are folded into a single :class:`ImportResult`.

Row numbers are 1-based and count data rows only (file line minus header), so
``row=1`` is the first line after the header.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, StrEnum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import MappingPreconditionError

# ---------------------------------------------------------------------------
# Canonical schema
# ---------------------------------------------------------------------------


class CanonicalField(StrEnum):
    DATE = "date"
    AMOUNT = "amount"
    DESCRIPTION = "description"
    MERCHANT = "merchant"
    CATEGORY = "category"
    ACCOUNT = "account"


REQUIRED_FIELDS: tuple[CanonicalField, ...] = (
    CanonicalField.DATE,
    CanonicalField.AMOUNT,
    CanonicalField.DESCRIPTION,
)
OPTIONAL_FIELDS: tuple[CanonicalField, ...] = (
    CanonicalField.MERCHANT,
    CanonicalField.CATEGORY,
    CanonicalField.ACCOUNT,
)
STANDARD_FIELDS: tuple[CanonicalField, ...] = REQUIRED_FIELDS + OPTIONAL_FIELDS


class DateFormat(StrEnum):
    """Supported date layouts. ``AUTO`` asks the detector to pick one per run."""

    ISO = "YYYY-MM-DD"
    US = "MM/DD/YYYY"
    EU_VN = "DD/MM/YYYY"
    UK = "DD-MM-YYYY"
    DOT = "DD.MM.YYYY"
    TEXT = "MMM DD, YYYY"
    AUTO = "auto"

    @property
    def day_first(self) -> bool:
        return self in (DateFormat.EU_VN, DateFormat.UK, DateFormat.DOT)

    @classmethod
    def from_name(cls, value: str | DateFormat) -> DateFormat:
        """Resolve a member from its name, a common alias, or its pattern."""

        if isinstance(value, DateFormat):
            return value
        key = value.strip()
        aliases = {"EU": cls.EU_VN, "VN": cls.EU_VN, "EU/VN": cls.EU_VN}
        if key.upper() in aliases:
            return aliases[key.upper()]
        name = key.upper().replace("-", "_")
        if name in cls.__members__:
            return cls[name]
        for member in cls:
            if member.value.lower() == key.lower():
                return member
        raise ValueError(
            f"unknown date format: {value!r}. Allowed: {', '.join(m.name for m in cls)}"
        )


# Order used to break ties between equally-voted formats during detection.
DETECTION_ORDER: tuple[DateFormat, ...] = (
    DateFormat.ISO,
    DateFormat.US,
    DateFormat.EU_VN,
    DateFormat.DOT,
    DateFormat.TEXT,
)


# ---------------------------------------------------------------------------
# Parsed input
# ---------------------------------------------------------------------------

CsvRow: TypeAlias = Mapping[str, str]
"""One data row keyed by header; every value is the raw (trimmed) cell text."""


@dataclass(frozen=True, slots=True)
class RawTable:
    """Header row plus ordered data rows of one uploaded file."""

    headers: tuple[str, ...]
    rows: tuple[CsvRow, ...]

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def preview(self, n: int = 10) -> list[CsvRow]:
        return list(self.rows[:n])

    def column(self, header: str) -> list[str]:
        """Return every cell of ``header`` in row order (``""`` when absent)."""

        return [row.get(header, "") for row in self.rows]


@dataclass(frozen=True, slots=True)
class ParsedFile:
    """What the UI needs after upload: headers, a preview, and the row count."""

    headers: tuple[str, ...]
    preview_rows: tuple[CsvRow, ...]
    total_row_count: int


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Canonical field → source header. ``None`` means unmapped."""

    date: str | None = None
    amount: str | None = None
    description: str | None = None
    merchant: str | None = None
    category: str | None = None
    account: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ColumnMapping:
        """Build from a ``{field: header}`` mapping, ignoring blank values.

        Unknown field names raise ``ValueError`` so typos in a user-edited
        mapping surface immediately.
        """

        values: dict[str, str] = {}
        for key, header in raw.items():
            name = str(key).strip().lower()
            if name not in {f.value for f in CanonicalField}:
                raise ValueError(
                    f"unknown canonical field: {key!r}. "
                    f"Allowed: {', '.join(f.value for f in STANDARD_FIELDS)}"
                )
            if header is None:
                continue
            text = str(header).strip()
            if text:
                values[name] = text
        return cls(**values)

    def get(self, field_name: CanonicalField | str) -> str | None:
        return getattr(self, CanonicalField(field_name).value)

    def items(self) -> Iterator[tuple[CanonicalField, str]]:
        for f in STANDARD_FIELDS:
            header = self.get(f)
            if header is not None:
                yield f, header

    def as_dict(self) -> dict[str, str]:
        return {f.value: header for f, header in self.items()}

    def missing_required(self) -> list[CanonicalField]:
        return [f for f in REQUIRED_FIELDS if self.get(f) is None]

    def is_empty(self) -> bool:
        return not self.as_dict()

    def validated_against(self, headers: Sequence[str]) -> ColumnMapping:
        """Return ``self`` when every mapped header exists in ``headers``."""

        known = set(headers)
        unknown = [(f.value, h) for f, h in self.items() if h not in known]
        if unknown:
            detail = ", ".join(f"{f}={h!r}" for f, h in unknown)
            raise MappingPreconditionError(
                f"mapping references headers not present in the file: {detail}",
                fields=[f for f, _ in unknown],
            )
        return self


MappingSource: TypeAlias = Literal["oracle", "keyword"]


@dataclass(frozen=True, slots=True)
class MappingResolution:
    mapping: ColumnMapping
    source: MappingSource


class MappingSuggestion(BaseModel):
    """Validated shape of a column-mapping suggestion returned by the oracle.

    Every field is nullable; the oracle uses ``null`` for "no matching header".
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    date: str | None = None
    amount: str | None = None
    description: str | None = None
    merchant: str | None = None
    category: str | None = None
    account: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def as_dict(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


# ---------------------------------------------------------------------------
# Options and date detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportOptions:
    """Per-run configuration.

    ``target_account_id`` is required for a commit run; a dry run may omit it.
    ``skip_header_row`` is consumed by the parser, not the executor.
    """

    target_account_id: str | None = None
    default_category_id: str | None = None
    date_format: DateFormat = DateFormat.AUTO
    skip_header_row: bool = True
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class DateFormatDetection:
    format: DateFormat
    confidence: float
    samples: tuple[str, ...]


# ---------------------------------------------------------------------------
# Canonical output and outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CanonicalTransaction:
    """A transaction ready for the store. Positive amounts are credits."""

    account_id: str
    category_id: str | None
    date: date
    amount: Decimal
    description: str
    merchant_name: str | None
    status: str = "POSTED"


@dataclass(frozen=True, slots=True)
class ImportRowError:
    row: int
    field: str
    raw_value: str
    message: str


@dataclass(frozen=True, slots=True)
class ImportRowWarning:
    row: int
    field: str
    message: str


class OutcomeKind(Enum):
    IMPORTED = "imported"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RowOutcome:
    row: int
    kind: OutcomeKind
    errors: tuple[ImportRowError, ...] = ()
    warnings: tuple[ImportRowWarning, ...] = ()
    transaction: CanonicalTransaction | None = None


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Aggregate result of one import invocation (dry run or commit)."""

    imported: int
    failed: int
    duplicates: int
    errors: tuple[ImportRowError, ...] = ()
    warnings: tuple[ImportRowWarning, ...] = ()
    dry_run: bool = False
    total_rows: int = 0
    outcomes: tuple[RowOutcome, ...] = field(default=(), repr=False)

    @property
    def success(self) -> bool:
        return self.failed == 0

    @classmethod
    def from_outcomes(
        cls, outcomes: Iterable[RowOutcome], *, dry_run: bool
    ) -> ImportResult:
        """Fold row outcomes (in row order) into the aggregate result."""

        ordered = tuple(sorted(outcomes, key=lambda o: o.row))
        errors: list[ImportRowError] = []
        warnings: list[ImportRowWarning] = []
        counts = {kind: 0 for kind in OutcomeKind}
        for outcome in ordered:
            counts[outcome.kind] += 1
            errors.extend(outcome.errors)
            warnings.extend(outcome.warnings)
        return cls(
            imported=counts[OutcomeKind.IMPORTED],
            failed=counts[OutcomeKind.FAILED],
            duplicates=counts[OutcomeKind.DUPLICATE],
            errors=tuple(errors),
            warnings=tuple(warnings),
            dry_run=dry_run,
            total_rows=len(ordered),
            outcomes=ordered,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "total_rows": self.total_rows,
            "imported": self.imported,
            "failed": self.failed,
            "duplicates": self.duplicates,
            "errors": [
                {"row": e.row, "field": e.field, "value": e.raw_value, "message": e.message}
                for e in self.errors
            ],
            "warnings": [
                {"row": w.row, "field": w.field, "message": w.message} for w in self.warnings
            ],
        }


class ImportStage(Enum):
    """Sequential states of one import run."""

    PARSED = 1
    MAPPED = 2
    VALIDATED = 3
    DUPLICATES_CHECKED = 4
    EXECUTED = 5


__all__ = [
    "CanonicalField",
    "REQUIRED_FIELDS",
    "OPTIONAL_FIELDS",
    "STANDARD_FIELDS",
    "DateFormat",
    "DETECTION_ORDER",
    "CsvRow",
    "RawTable",
    "ParsedFile",
    "ColumnMapping",
    "MappingSource",
    "MappingResolution",
    "MappingSuggestion",
    "ImportOptions",
    "DateFormatDetection",
    "CanonicalTransaction",
    "ImportRowError",
    "ImportRowWarning",
    "OutcomeKind",
    "RowOutcome",
    "ImportResult",
    "ImportStage",
]
