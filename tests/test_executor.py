from datetime import date
from decimal import Decimal

import pytest

from transaction_import.errors import ImportPreconditionError, MappingPreconditionError
from transaction_import.executor import run_import
from transaction_import.models import (
    CanonicalTransaction,
    ColumnMapping,
    DateFormat,
    ImportOptions,
    OutcomeKind,
)
from transaction_import.parser import parse
from tests.helpers.stores import InMemoryStore

MAPPING = ColumnMapping(date="Date", amount="Amount", description="Desc")
COMMIT = ImportOptions(target_account_id="acc-1", date_format=DateFormat.ISO)
DRY = ImportOptions(target_account_id="acc-1", date_format=DateFormat.ISO, dry_run=True)

FIVE_ROWS = parse(
    b"Date,Amount,Desc\n"
    b"2024-03-01,-1.00,One\n"
    b"2024-03-02,-2.00,Two\n"
    b"2024-03-03,not-a-number,Three\n"
    b"2024-03-04,-4.00,Four\n"
    b"2024-03-05,-5.00,Five\n"
)


def test_single_row_import():
    table = parse(b"Date,Amount,Desc\n2024-03-04,-12.50,Coffee\n")
    store = InMemoryStore()
    result = run_import(table, MAPPING, COMMIT, store=store)
    assert result.success
    assert (result.imported, result.failed, result.duplicates) == (1, 0, 0)
    (tx,) = store.rows
    assert tx.date == date(2024, 3, 4)
    assert tx.amount == Decimal("-12.50")
    assert tx.description == "Coffee"
    assert tx.account_id == "acc-1"


def test_partial_failure_keeps_sibling_rows():
    store = InMemoryStore()
    result = run_import(FIVE_ROWS, MAPPING, COMMIT, store=store)
    assert (result.imported, result.failed, result.duplicates) == (4, 1, 0)
    assert not result.success
    assert [(e.row, e.field) for e in result.errors] == [(3, "amount")]
    assert [tx.description for tx in store.rows] == ["One", "Two", "Four", "Five"]


def test_missing_amount_mapping_fails_every_row():
    store = InMemoryStore()
    mapping = ColumnMapping(date="Date", description="Desc")
    result = run_import(FIVE_ROWS, mapping, COMMIT, store=store)
    assert result.failed == 5 and result.imported == 0
    assert not result.success
    assert {e.field for e in result.errors} == {"amount"}
    assert all("not mapped" in e.message for e in result.errors)
    assert store.insert_calls == 0


def test_dry_run_counts_match_commit_and_write_nothing():
    existing = CanonicalTransaction("acc-1", None, date(2024, 3, 2), Decimal("-2.00"), "Two", None)

    dry_store = InMemoryStore([existing])
    dry = run_import(FIVE_ROWS, MAPPING, DRY, store=dry_store)
    assert dry_store.insert_calls == 0
    assert dry_store.rows == [existing]

    commit_store = InMemoryStore([existing])
    committed = run_import(FIVE_ROWS, MAPPING, COMMIT, store=commit_store)

    assert dry.dry_run and not committed.dry_run
    assert (dry.imported, dry.failed, dry.duplicates) == (3, 1, 1)
    assert (dry.imported, dry.failed, dry.duplicates) == (
        committed.imported,
        committed.failed,
        committed.duplicates,
    )
    assert len(commit_store.rows) == 4


def test_rerunning_the_same_file_imports_nothing_new():
    store = InMemoryStore()
    first = run_import(FIVE_ROWS, MAPPING, COMMIT, store=store)
    second = run_import(FIVE_ROWS, MAPPING, COMMIT, store=store)
    assert first.imported == 4
    assert (second.imported, second.duplicates, second.failed) == (0, 4, 1)
    assert len(store.rows) == 4


def test_identical_rows_within_one_file_all_import():
    table = parse(
        b"Date,Amount,Desc\n2024-03-04,-5.00,Coffee\n2024-03-04,-5.00,Coffee\n"
    )
    for options in (DRY, COMMIT):
        store = InMemoryStore()
        result = run_import(table, MAPPING, options, store=store)
        assert (result.imported, result.duplicates) == (2, 0)
        assert [o.kind for o in result.outcomes] == [OutcomeKind.IMPORTED] * 2
    assert len(store.rows) == 2

    again = run_import(table, MAPPING, COMMIT, store=store)
    assert (again.imported, again.duplicates) == (0, 2)


def test_store_failure_fails_only_that_row():
    store = InMemoryStore(fail_descriptions={"Two"})
    result = run_import(FIVE_ROWS, MAPPING, COMMIT, store=store)
    assert (result.imported, result.failed) == (3, 2)
    db_errors = [e for e in result.errors if e.field == "database"]
    assert [e.row for e in db_errors] == [2]
    assert "constraint" in db_errors[0].message


def test_commit_requires_target_account():
    store = InMemoryStore()
    with pytest.raises(ImportPreconditionError):
        run_import(FIVE_ROWS, MAPPING, ImportOptions(date_format=DateFormat.ISO), store=store)
    with pytest.raises(ImportPreconditionError):
        run_import(FIVE_ROWS, MAPPING, COMMIT, store=None)
    assert store.exists_calls == 0


def test_dry_run_without_account_or_store_still_validates():
    options = ImportOptions(date_format=DateFormat.ISO, dry_run=True)
    result = run_import(FIVE_ROWS, MAPPING, options, store=None)
    assert (result.imported, result.failed, result.duplicates) == (4, 1, 0)


def test_mapping_to_unknown_header_is_a_precondition_error():
    mapping = ColumnMapping(date="Date", amount="Betrag", description="Desc")
    with pytest.raises(MappingPreconditionError) as excinfo:
        run_import(FIVE_ROWS, mapping, COMMIT, store=InMemoryStore())
    assert excinfo.value.fields == ("amount",)


def test_auto_date_format_is_detected_once_for_the_run():
    table = parse(
        b"Date,Amount,Desc\n"
        b"03/04/2024,1.00,a\n"
        b"13/04/2024,1.00,b\n"
        b"14/04/2024,1.00,c\n"
    )
    store = InMemoryStore()
    options = ImportOptions(target_account_id="acc-1")
    result = run_import(table, MAPPING, options, store=store)
    assert result.imported == 3
    # EU/VN won the vote, so the ambiguous first row reads day-first too.
    assert [tx.date for tx in store.rows] == [
        date(2024, 4, 3),
        date(2024, 4, 13),
        date(2024, 4, 14),
    ]


def test_outcomes_and_errors_are_in_row_order():
    table = parse(
        b"Date,Amount,Desc\n"
        b"bad,1.00,a\n"
        b"2024-01-02,x,b\n"
        b"2024-01-03,1.00,\n"
    )
    result = run_import(table, MAPPING, COMMIT, store=InMemoryStore(), concurrency=3)
    assert [o.row for o in result.outcomes] == [1, 2, 3]
    assert [e.row for e in result.errors] == [1, 2, 3]


def test_empty_table_is_a_successful_noop():
    result = run_import(parse(b"Date,Amount,Desc\n"), MAPPING, COMMIT, store=InMemoryStore())
    assert result.success
    assert result.total_rows == 0
    assert result.to_dict()["imported"] == 0
