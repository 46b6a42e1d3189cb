import pytest

from transaction_import import api
from transaction_import.errors import ParseError
from transaction_import.models import ColumnMapping, DateFormat, ImportOptions
from transaction_import.parser import parse
from tests.helpers.stores import InMemoryStore

CSV = "Ngày,Số tiền,Mô tả\n04/03/2024,\"1.234,50\",Lương\n05/03/2024,\"-45,00\",Chợ\n".encode()


def test_parse_file_returns_headers_preview_and_count():
    parsed = api.parse_file(CSV, preview_size=1, filename="bank.csv")
    assert parsed.headers == ("Ngày", "Số tiền", "Mô tả")
    assert len(parsed.preview_rows) == 1
    assert parsed.total_row_count == 2


def test_parse_file_checks_upload_type_when_named():
    with pytest.raises(ParseError, match="Invalid file type"):
        api.parse_file(CSV, filename="bank.xlsx")
    assert api.parse_file(CSV, content_type="text/csv; charset=utf-8").total_row_count == 2


def test_resolve_mapping_without_oracle_uses_keywords():
    resolution = api.resolve_mapping(["Ngày", "Số tiền", "Mô tả"])
    assert resolution.source == "keyword"
    assert resolution.mapping.missing_required() == []


def test_run_import_facade_commits_through_store():
    store = InMemoryStore()
    mapping = ColumnMapping(date="Ngày", amount="Số tiền", description="Mô tả")
    options = ImportOptions(target_account_id="acc-vn", date_format=DateFormat.EU_VN)
    result = api.run_import(parse(CSV), mapping, options, store=store, concurrency=2)

    assert (result.imported, result.failed, result.duplicates) == (2, 0, 0)
    assert [str(tx.amount) for tx in store.rows] == ["1234.50", "-45.00"]
    assert store.rows[0].date.isoformat() == "2024-03-04"
