from datetime import date
from decimal import Decimal

import pytest

from transaction_import.errors import FieldParseError
from transaction_import.models import DateFormat
from transaction_import.normalizers import (
    format_amount,
    is_decimal_comma,
    parse_amount,
    parse_date,
)

# ---- Amounts -------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
        ("-12.50", Decimal("-12.50")),
        ("$1,000", Decimal("1000")),
        ("€ 1.000.000,00", Decimal("1000000.00")),
        ("12,50", Decimal("12.50")),
        ("(45.00)", Decimal("-45.00")),
        ("($1,234.56)", Decimal("-1234.56")),
        ("-(5)", Decimal("-5")),
        ("+7.25", Decimal("7.25")),
        ('"1 234,56"', Decimal("1234.56")),
        ("0", Decimal("0")),
        ("£3", Decimal("3")),
        ("¥1,500", Decimal("1500")),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "abc", "1.2.3", "NaN", "Infinity", "--", "()"])
def test_parse_amount_rejects(raw):
    with pytest.raises(FieldParseError) as excinfo:
        parse_amount(raw)
    assert excinfo.value.field == "amount"
    assert excinfo.value.raw_value == raw


def test_parse_amount_trailing_comma_with_three_digits_is_thousands():
    # Only exactly two digits after the last comma make it a decimal comma.
    assert parse_amount("1,234") == Decimal("1234")
    assert not is_decimal_comma("1,234")
    assert is_decimal_comma("1.234,56")


@pytest.mark.parametrize(
    "value,decimal_comma,expected",
    [
        (Decimal("1234.56"), False, "1,234.56"),
        (Decimal("1234.56"), True, "1.234,56"),
        (Decimal("-1000000"), False, "-1,000,000.00"),
        (Decimal("-1000000"), True, "-1.000.000,00"),
        (Decimal("0.5"), False, "0.50"),
        (Decimal("1.005"), False, "1.005"),
    ],
)
def test_format_amount(value, decimal_comma, expected):
    assert format_amount(value, decimal_comma=decimal_comma) == expected


@pytest.mark.parametrize(
    "raw",
    ["1.234,56", "1,234.56", "-12.50", "12,50", "(99.99)", "1.000.000,00", "0.001", "42"],
)
def test_amount_round_trip_in_same_convention(raw):
    value = parse_amount(raw)
    rendered = format_amount(value, decimal_comma=is_decimal_comma(raw))
    assert parse_amount(rendered) == value


# ---- Dates ---------------------------------------------------------------------


def test_same_string_is_read_by_the_chosen_format():
    assert parse_date("03/04/2024", DateFormat.US) == date(2024, 3, 4)
    assert parse_date("03/04/2024", DateFormat.EU_VN) == date(2024, 4, 3)


@pytest.mark.parametrize(
    "raw,fmt,expected",
    [
        ("2024-03-04", DateFormat.ISO, date(2024, 3, 4)),
        ("2024/3/4", DateFormat.ISO, date(2024, 3, 4)),
        ("12-31-2024", DateFormat.US, date(2024, 12, 31)),
        ("31.12.2024", DateFormat.EU_VN, date(2024, 12, 31)),
        ("31-12-2024", DateFormat.UK, date(2024, 12, 31)),
        ("04.03.2024", DateFormat.DOT, date(2024, 3, 4)),
        ("Mar 04, 2024", DateFormat.TEXT, date(2024, 3, 4)),
        ("4 March 2024", DateFormat.TEXT, date(2024, 3, 4)),
        ("04-Mar-2024", DateFormat.TEXT, date(2024, 3, 4)),
        (" 2024-03-04 10:15 ", DateFormat.ISO, date(2024, 3, 4)),
    ],
)
def test_parse_date_formats(raw, fmt, expected):
    assert parse_date(raw, fmt) == expected


def test_pattern_match_never_regresses_to_a_different_order():
    # Month 13 under US is invalid; it must not be re-read as 13 April.
    with pytest.raises(FieldParseError) as excinfo:
        parse_date("13/04/2024", DateFormat.US)
    assert excinfo.value.raw_value == "13/04/2024"
    assert excinfo.value.expected == DateFormat.US.value


def test_format_consistency_across_rows():
    fmt = DateFormat.EU_VN
    parsed = [parse_date(s, fmt) for s in ("01/02/2024", "13/02/2024", "28/02/2024")]
    assert all(d.month == 2 for d in parsed)


def test_free_form_fallback_uses_the_formats_day_order():
    # Not matching the DOT pattern; dateutil reads it day-first.
    assert parse_date("03 04 2024", DateFormat.DOT) == date(2024, 4, 3)
    assert parse_date("03 04 2024", DateFormat.US) == date(2024, 3, 4)
    # Strict ISO is unambiguous under any format.
    assert parse_date("2024-03-04", DateFormat.EU_VN) == date(2024, 3, 4)


@pytest.mark.parametrize("raw", ["", "  ", "not a date", "99/99/9999"])
def test_parse_date_rejects(raw):
    with pytest.raises(FieldParseError):
        parse_date(raw, DateFormat.EU_VN)


def test_parse_date_requires_concrete_format():
    with pytest.raises(ValueError):
        parse_date("2024-03-04", DateFormat.AUTO)


@pytest.mark.parametrize("raw", ["1_000", "1e3", "1E-2", "0x10", "1.5e2"])
def test_parse_amount_accepts_only_plain_decimals(raw):
    with pytest.raises(FieldParseError):
        parse_amount(raw)


@pytest.mark.parametrize(
    "raw,fmt",
    [
        ("2024", DateFormat.ISO),
        ("12", DateFormat.EU_VN),
        ("March 2024", DateFormat.US),
        ("Mar 4", DateFormat.TEXT),
    ],
)
def test_partial_dates_are_rejected_instead_of_filled_from_today(raw, fmt):
    with pytest.raises(FieldParseError) as excinfo:
        parse_date(raw, fmt)
    assert excinfo.value.raw_value == raw
