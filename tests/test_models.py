import io
import logging

import pytest

from transaction_import.errors import MappingPreconditionError
from transaction_import.logging_setup import configure_logging, get_logger
from transaction_import.models import (
    ColumnMapping,
    DateFormat,
    ImportResult,
    ImportRowError,
    OutcomeKind,
    RowOutcome,
)


def test_column_mapping_from_mapping_skips_blanks_and_rejects_unknown_fields():
    mapping = ColumnMapping.from_mapping({"Date": "Posted", "amount": " Value ", "merchant": ""})
    assert mapping.as_dict() == {"date": "Posted", "amount": "Value"}
    with pytest.raises(ValueError, match="unknown canonical field"):
        ColumnMapping.from_mapping({"when": "Posted"})


def test_validated_against_names_offending_fields():
    mapping = ColumnMapping(date="Date", amount="Amt")
    assert mapping.validated_against(["Date", "Amt"]) is mapping
    with pytest.raises(MappingPreconditionError) as excinfo:
        mapping.validated_against(["Date"])
    assert excinfo.value.fields == ("amount",)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("auto", DateFormat.AUTO),
        ("iso", DateFormat.ISO),
        ("EU", DateFormat.EU_VN),
        ("eu-vn", DateFormat.EU_VN),
        ("DD.MM.YYYY", DateFormat.DOT),
        ("mm/dd/yyyy", DateFormat.US),
    ],
)
def test_date_format_from_name(name, expected):
    assert DateFormat.from_name(name) is expected


def test_result_folds_outcomes_in_row_order():
    err = ImportRowError(1, "amount", "x", 'Invalid amount format: "x"')
    result = ImportResult.from_outcomes(
        [
            RowOutcome(2, OutcomeKind.IMPORTED),
            RowOutcome(1, OutcomeKind.FAILED, (err,)),
            RowOutcome(3, OutcomeKind.DUPLICATE),
        ],
        dry_run=True,
    )
    assert (result.imported, result.failed, result.duplicates) == (1, 1, 1)
    assert [o.row for o in result.outcomes] == [1, 2, 3]
    assert not result.success
    assert result.to_dict()["errors"] == [
        {"row": 1, "field": "amount", "value": "x", "message": 'Invalid amount format: "x"'}
    ]


def test_configure_logging_is_idempotent():
    stream = io.StringIO()
    logger = configure_logging("DEBUG", stream=stream)
    configure_logging("DEBUG", stream=stream)
    handlers = [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]
    assert len(handlers) == 1

    get_logger("transaction_import.test").debug("event:probe key=%d", 1)
    assert "event:probe key=1" in stream.getvalue()
