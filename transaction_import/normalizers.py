"""Cell normalizers: locale-variant date and amount strings → typed values.

Dates are interpreted strictly by the layout chosen for the run; the same raw
string always yields the same date within a run. Amounts use a fixed
separator heuristic (see :func:`parse_amount`).
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from dateutil import parser as dtparser

from .errors import FieldParseError
from .models import DateFormat

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

# Each pattern yields (first, second, third) numeric groups; the tuple says
# which group is year/month/day.
_NUMERIC_PATTERNS: dict[DateFormat, tuple[re.Pattern[str], tuple[int, int, int]]] = {
    DateFormat.ISO: (re.compile(r"(?<!\d)(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?!\d)"), (1, 2, 3)),
    DateFormat.US: (re.compile(r"(?<!\d)(\d{1,2})[-/](\d{1,2})[-/](\d{4})(?!\d)"), (3, 1, 2)),
    DateFormat.EU_VN: (re.compile(r"(?<!\d)(\d{1,2})[/.](\d{1,2})[/.](\d{4})(?!\d)"), (3, 2, 1)),
    DateFormat.UK: (re.compile(r"(?<!\d)(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})(?!\d)"), (3, 2, 1)),
    DateFormat.DOT: (re.compile(r"(?<!\d)(\d{1,2})\.(\d{1,2})\.(\d{4})(?!\d)"), (3, 2, 1)),
}

_MONTHS: dict[str, int] = {
    name: i
    for i, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_TEXT_MONTH_FIRST = re.compile(
    r"(?P<mon>[A-Za-z]{3,})\.?\s+(?P<day>\d{1,2})(?:st|nd|rd|th)?,?\s+(?P<year>\d{4})"
)
_TEXT_DAY_FIRST = re.compile(
    r"(?P<day>\d{1,2})(?:st|nd|rd|th)?[\s-]+(?P<mon>[A-Za-z]{3,})\.?,?[\s-]+(?P<year>\d{4})"
)
# Defaults differing in year, month and day; a complete date ignores them.
_PARTIAL_DATE_PROBES = (datetime(2000, 1, 1), datetime(2001, 2, 2))


def _build_date(raw: str, fmt: DateFormat, year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise FieldParseError(
            f"Invalid date: {raw!r} is not a calendar date under {fmt.value}",
            raw_value=raw,
            field="date",
            expected=fmt.value,
        ) from exc


def _match_text(cleaned: str) -> tuple[int, int, int] | None:
    for pattern in (_TEXT_MONTH_FIRST, _TEXT_DAY_FIRST):
        m = pattern.search(cleaned)
        if not m:
            continue
        month = _MONTHS.get(m.group("mon")[:3].lower())
        if month is not None:
            return int(m.group("year")), month, int(m.group("day"))
    return None


def _free_form(cleaned: str, fmt: DateFormat) -> date | None:
    """Last-resort parse for values that do not match the run's layout.

    Strict ISO input is unambiguous and handled first; anything else goes to
    ``dateutil`` with the day/month order pinned by ``fmt``. ``dateutil`` fills
    missing parts from ``default``, so the value is parsed against two
    different defaults and rejected unless both agree (``"2024"``, ``"12"`` and
    ``"March 2024"`` are not dates).
    """

    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        pass
    try:
        first, second = (
            dtparser.parse(cleaned, dayfirst=fmt.day_first, default=default).date()
            for default in _PARTIAL_DATE_PROBES
        )
    except (ValueError, OverflowError):
        return None
    return first if first == second else None


def parse_date(raw: str | None, fmt: DateFormat) -> date:
    """Parse ``raw`` as a calendar date under the concrete layout ``fmt``.

    When the layout's pattern matches, its groups decide year/month/day and an
    impossible date (e.g. month 13) fails without any re-guessing. Only when
    the pattern does not match at all is a free-form parse attempted.
    """

    if fmt is DateFormat.AUTO:
        raise ValueError("parse_date requires a concrete date format, not AUTO")
    if raw is None or not raw.strip():
        raise FieldParseError("Date string is empty", raw_value=raw, field="date", expected=fmt.value)

    cleaned = raw.strip()
    if fmt is DateFormat.TEXT:
        ymd = _match_text(cleaned)
        if ymd is not None:
            return _build_date(raw, fmt, *ymd)
    else:
        pattern, (yi, mi, di) = _NUMERIC_PATTERNS[fmt]
        m = pattern.search(cleaned)
        if m:
            return _build_date(raw, fmt, int(m.group(yi)), int(m.group(mi)), int(m.group(di)))

    parsed = _free_form(cleaned, fmt)
    if parsed is None:
        raise FieldParseError(
            f"Unable to parse date: {raw!r} with format: {fmt.value}",
            raw_value=raw,
            field="date",
            expected=fmt.value,
        )
    return parsed


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_STRIP_CHARS = re.compile(r"[$€£¥₫\"'“”‘’]")
_DECIMAL_COMMA = re.compile(r",\d{2}$")
# Digits with an optional decimal point; no exponents, underscores or NaN.
_PLAIN_DECIMAL = re.compile(r"\d*\.?\d+")
_CENTS = Decimal("0.01")


def _clean_amount(raw: str) -> str:
    return _STRIP_CHARS.sub("", re.sub(r"\s+", "", raw))


def is_decimal_comma(raw: str) -> bool:
    """True when ``raw`` ends in a comma plus exactly two digits (``1.234,56``)."""

    s = _clean_amount(raw).rstrip(")")
    return bool(_DECIMAL_COMMA.search(s))


def parse_amount(raw: str | None) -> Decimal:
    """Parse a signed amount, disambiguating thousands/decimal separators.

    - Whitespace, currency symbols and quote characters are removed.
    - A leading ``-``/``+`` and surrounding parentheses are sign markers, in any
      order; any negative marker makes the result negative (``-(1,234.56)``,
      ``(-5)`` and ``($12.00)`` are all negative).
    - If the string ends in a comma followed by exactly two digits, that comma
      is the decimal separator and every other ``.``/``,`` is a thousands
      separator (``1.234,56`` → ``1234.56``). Otherwise commas are thousands
      separators (``1,234.56`` → ``1234.56``).
    - Anything that is not then plain digits with an optional decimal point
      (no exponent, underscores or ``NaN``) raises :class:`FieldParseError`.
    """

    if raw is None or not raw.strip():
        raise FieldParseError("Amount string is empty", raw_value=raw, field="amount")

    s = _clean_amount(raw)
    negative = False
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:]
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:]
            changed = True
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1]
            changed = True
        if not changed:
            break

    if _DECIMAL_COMMA.search(s):
        whole, cents = s[:-3], s[-2:]
        s = whole.replace(".", "").replace(",", "") + "." + cents
    else:
        s = s.replace(",", "")

    if not _PLAIN_DECIMAL.fullmatch(s):
        raise FieldParseError(f"Invalid amount format: {raw!r}", raw_value=raw, field="amount")
    d = Decimal(s)
    return -d if negative else d


def format_amount(value: Decimal, *, decimal_comma: bool = False) -> str:
    """Render ``value`` with grouped thousands in either separator convention.

    At least two decimals are always shown. The decimal-comma convention is
    rendered with exactly two decimals, since that is the only shape
    :func:`parse_amount` reads as decimal-comma.
    """

    if decimal_comma or value.as_tuple().exponent > -2:
        value = value.quantize(_CENTS, rounding=ROUND_HALF_UP)
    text = f"{value:,f}"
    if decimal_comma:
        text = text.replace(",", "\0").replace(".", ",").replace("\0", ".")
    return text


__all__ = ["parse_date", "parse_amount", "format_amount", "is_decimal_comma"]
