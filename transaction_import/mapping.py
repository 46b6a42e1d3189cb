"""Column mapping resolution: which source header holds which canonical field.

Two suggesters share one small protocol:

- :class:`~transaction_import.oracle.OracleSuggester` asks a language model.
- :class:`KeywordSuggester` matches multilingual keyword lists and is fully
  deterministic.

:class:`FallbackResolver` composes them. Whatever a suggester returns is passed
through :func:`sanitize_suggestion`, so a resolved mapping only ever names
headers that exist in the file.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol

from .logging_setup import get_logger
from .models import (
    REQUIRED_FIELDS,
    STANDARD_FIELDS,
    CanonicalField,
    ColumnMapping,
    MappingResolution,
    MappingSource,
)

_logger = get_logger("transaction_import.mapping")


class MappingSuggester(Protocol):
    def suggest(self, headers: Sequence[str]) -> Mapping[str, str]: ...


# Keyword lists are scanned in canonical field order; within a field, the
# first header in file order containing any keyword wins.
DEFAULT_KEYWORDS: dict[CanonicalField, tuple[str, ...]] = {
    CanonicalField.DATE: (
        "date",
        "time",
        "tanggal",
        "ngày",
        "trans date",
        "transaction date",
        "posted",
    ),
    CanonicalField.AMOUNT: (
        "amount",
        "value",
        "sum",
        "debit",
        "credit",
        "số tiền",
        "giá trị",
        "qty",
        "quantity",
    ),
    CanonicalField.DESCRIPTION: (
        "description",
        "desc",
        "details",
        "memo",
        "note",
        "mô tả",
        "chi tiết",
        "narration",
    ),
    CanonicalField.MERCHANT: (
        "merchant",
        "payee",
        "vendor",
        "store",
        "shop",
        "cửa hàng",
        "nhà cung cấp",
        "recipient",
    ),
    CanonicalField.CATEGORY: (
        "category",
        "type",
        "class",
        "classification",
        "danh mục",
        "loại",
    ),
    CanonicalField.ACCOUNT: (
        "account",
        "bank",
        "card",
        "tài khoản",
        "credit card",
        "debit card",
    ),
}


class KeywordSuggester:
    """Deterministic header matching by case-insensitive substring."""

    def __init__(self, keywords: Mapping[CanonicalField, Sequence[str]] | None = None) -> None:
        source = keywords if keywords is not None else DEFAULT_KEYWORDS
        self.keywords: dict[CanonicalField, tuple[str, ...]] = {
            f: tuple(k.lower() for k in source.get(f, ())) for f in STANDARD_FIELDS
        }

    def suggest(self, headers: Sequence[str]) -> dict[str, str]:
        assigned: set[str] = set()
        out: dict[str, str] = {}
        for f in STANDARD_FIELDS:
            words = self.keywords[f]
            for header in headers:
                if header in assigned:
                    continue
                lowered = header.lower()
                if any(w in lowered for w in words):
                    out[f.value] = header
                    assigned.add(header)
                    break
        return out


def sanitize_suggestion(suggestion: Mapping[str, object], headers: Sequence[str]) -> ColumnMapping:
    """Keep only canonical keys whose value names an existing header.

    Header comparison is case-insensitive and whitespace-trimmed; the header's
    own spelling is kept. Unknown keys, non-string values, unknown headers, and
    a header already claimed by an earlier field are dropped silently.
    """

    by_lower: dict[str, str] = {}
    for h in headers:
        by_lower.setdefault(h.strip().lower(), h)

    canonical = {f.value for f in STANDARD_FIELDS}
    used: set[str] = set()
    kept: dict[str, str] = {}
    for key, value in suggestion.items():
        name = str(key).strip().lower()
        if name not in canonical or not isinstance(value, str):
            continue
        actual = by_lower.get(value.strip().lower())
        if actual is None or actual in used:
            continue
        kept[name] = actual
        used.add(actual)
    return ColumnMapping.from_mapping(kept)


class FallbackResolver:
    """Try ``primary`` and fall back to ``fallback`` when it yields nothing usable.

    A suggestion that maps none of the required fields (say only ``account``)
    counts as nothing usable.

    Errors raised by ``primary`` (timeouts, API errors, malformed output) are
    logged and treated as an empty suggestion; :meth:`resolve` never raises
    because of them. ``primary`` may be ``None`` to skip straight to the
    fallback.
    """

    def __init__(
        self,
        primary: MappingSuggester | None,
        fallback: MappingSuggester | None = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback if fallback is not None else KeywordSuggester()

    def resolve(self, headers: Sequence[str]) -> MappingResolution:
        if self.primary is not None:
            try:
                suggestion = self.primary.suggest(headers)
            except Exception as e:  # noqa: BLE001
                _logger.warning(
                    "mapping:oracle_failed error=%s detail=%s", e.__class__.__name__, e
                )
            else:
                mapping = sanitize_suggestion(suggestion, headers)
                if len(mapping.missing_required()) < len(REQUIRED_FIELDS):
                    _logger.info("mapping:resolved source=oracle fields=%d", len(mapping.as_dict()))
                    return MappingResolution(mapping=mapping, source="oracle")
                _logger.info(
                    "mapping:oracle_unusable headers=%d fields=%d",
                    len(headers),
                    len(mapping.as_dict()),
                )

        mapping = sanitize_suggestion(self.fallback.suggest(headers), headers)
        source: MappingSource = "keyword"
        _logger.info("mapping:resolved source=%s fields=%d", source, len(mapping.as_dict()))
        return MappingResolution(mapping=mapping, source=source)


def resolve_mapping(
    headers: Sequence[str], *, oracle: MappingSuggester | None = None
) -> MappingResolution:
    return FallbackResolver(oracle).resolve(headers)


__all__ = [
    "MappingSuggester",
    "DEFAULT_KEYWORDS",
    "KeywordSuggester",
    "sanitize_suggestion",
    "FallbackResolver",
    "resolve_mapping",
]
