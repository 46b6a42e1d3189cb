"""Date layout detection from sample cell values.

Detection is advisory: it is consulted only when the run's date format is
``AUTO`` and the winning layout is then locked for every row of that run.

Known limitation: a column whose samples all have a first group <= 12 (e.g.
``03/04/2024``) is indistinguishable between US and EU/VN layouts; the
heuristic votes US, and only a first group > 12 forces EU/VN.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from .logging_setup import get_logger
from .models import DETECTION_ORDER, DateFormat, DateFormatDetection

_ISO = re.compile(r"^\d{4}[-/]\d{1,2}[-/]\d{1,2}")
_MONTH_FIRST = re.compile(r"^(\d{1,2})[-/]\d{1,2}[-/]\d{4}")
_DAY_FIRST = re.compile(r"^\d{1,2}[/.]\d{1,2}[/.]\d{4}")
_DOTTED = re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}")
_ALPHA_MONTH = re.compile(r"[A-Za-z]{3}")

_logger = get_logger("transaction_import.date_detection")


def guess_date_format(sample: str | None) -> DateFormat | None:
    """Return the layout a single value suggests, or ``None`` for no vote."""

    if not sample:
        return None
    cleaned = re.sub(r"\s+", "", sample)
    if not cleaned:
        return None

    if _ISO.match(cleaned):
        return DateFormat.ISO
    m = _MONTH_FIRST.match(cleaned)
    if m:
        # A first group above 12 cannot be a month.
        return DateFormat.EU_VN if int(m.group(1)) > 12 else DateFormat.US
    if _DAY_FIRST.match(cleaned):
        return DateFormat.EU_VN
    if _DOTTED.match(cleaned):
        return DateFormat.DOT
    if _ALPHA_MONTH.search(cleaned):
        return DateFormat.TEXT
    return None


def detect_date_format(samples: Iterable[str]) -> DateFormatDetection:
    """Pick the plurality layout across ``samples``.

    ``confidence`` is the winner's vote share over all non-empty samples
    (including ones that cast no vote). Ties go to the layout that comes first
    in ``ISO, US, EU/VN, DOT, TEXT`` order. With no votes at all the result is
    ISO with zero confidence.
    """

    materialized = tuple(samples)
    non_empty = [s for s in materialized if s and s.strip()]
    votes = Counter(f for f in (guess_date_format(s) for s in non_empty) if f is not None)

    if not votes:
        return DateFormatDetection(format=DateFormat.ISO, confidence=0.0, samples=materialized)

    best = max(votes.values())
    winner = next(f for f in DETECTION_ORDER if votes.get(f) == best)
    confidence = best / len(non_empty)
    _logger.debug(
        "date_detection:done format=%s votes=%d non_empty=%d",
        winner.name,
        best,
        len(non_empty),
    )
    return DateFormatDetection(format=winner, confidence=confidence, samples=materialized)


def resolve_date_format(requested: DateFormat, samples: Iterable[str]) -> DateFormat:
    """Return the concrete layout for a whole run."""

    if requested is not DateFormat.AUTO:
        return requested
    detection = detect_date_format(samples)
    _logger.info(
        "date_detection:auto format=%s confidence=%.2f",
        detection.format.name,
        detection.confidence,
    )
    return detection.format


__all__ = ["guess_date_format", "detect_date_format", "resolve_date_format"]
