"""Tests for the CSV import orchestrator."""

from datetime import datetime

import pytest

from ny_tax_engine.exceptions import CsvFormatError, PersistenceError, RowParseError
from ny_tax_engine.importer import (
    OrderImporter,
    RowErrorKind,
    parse_row,
    parse_rows,
    read_csv_rows,
    stage_upload,
)
from ny_tax_engine.store import OrderStore, OrderWriter

HEADER = "latitude,longitude,subtotal,timestamp"

POINTS = [
    (40.7128, -74.0060),  # Manhattan
    (42.8864, -78.8784),  # Buffalo
    (43.1566, -77.6088),  # Rochester
    (43.0481, -76.1474),  # Syracuse
    (42.6526, -73.7562),  # Albany
]


@pytest.fixture
def store(tmp_path) -> OrderStore:
    s = OrderStore(f"sqlite:///{tmp_path / 'orders.db'}")
    yield s
    s.dispose()


@pytest.fixture
def importer(store: OrderStore) -> OrderImporter:
    return OrderImporter(store)


def _rows(n: int) -> list[dict[str, str]]:
    rows = []
    for i in range(n):
        lat, lon = POINTS[i % len(POINTS)]
        rows.append(
            {
                "latitude": str(lat),
                "longitude": str(lon),
                "subtotal": f"{10 + i}.50",
                "timestamp": f"2025-03-{i + 1:02d}T09:00:00Z",
            }
        )
    return rows


def _write_csv(path, rows: list[dict[str, str]]) -> None:
    lines = [HEADER] + [
        f"{r['latitude']},{r['longitude']},{r['subtotal']},{r['timestamp']}"
        for r in rows
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


# ── Row parsing ──────────────────────────────────────────────────────


def test_parse_valid_row():
    item = parse_row(1, _rows(1)[0])
    assert item.row_index == 1
    assert item.lat == 40.7128
    assert str(item.subtotal) == "10.50"
    assert item.timestamp == "2025-03-01T09:00:00Z"


def test_parse_invalid_subtotal_mentions_field():
    row = {**_rows(1)[0], "subtotal": "abc"}
    with pytest.raises(RowParseError) as exc_info:
        parse_row(4, row)
    assert exc_info.value.row == 4
    assert "subtotal='abc'" in exc_info.value.reason


def test_parse_lists_every_bad_field():
    row = {"latitude": "north", "longitude": "", "subtotal": "1"}
    with pytest.raises(RowParseError) as exc_info:
        parse_row(1, row)
    assert "latitude='north'" in exc_info.value.reason
    assert "longitude=''" in exc_info.value.reason


@pytest.mark.parametrize("value", ["nan", "inf", "-Infinity"])
def test_parse_rejects_non_finite(value: str):
    with pytest.raises(RowParseError):
        parse_row(1, {**_rows(1)[0], "latitude": value})


def test_parse_rejects_negative_subtotal():
    with pytest.raises(RowParseError, match="negative"):
        parse_row(1, {**_rows(1)[0], "subtotal": "-5"})


def test_parse_rejects_oversized_subtotal():
    with pytest.raises(RowParseError) as exc_info:
        parse_row(2, {**_rows(1)[0], "subtotal": "1e30"})
    assert "exceeds maximum" in exc_info.value.reason
    assert "subtotal='1e30'" in exc_info.value.reason


def test_blank_timestamp_defaults_to_now():
    item = parse_row(1, {**_rows(1)[0], "timestamp": " "})
    parsed = datetime.fromisoformat(item.timestamp)
    assert parsed.tzinfo is not None


def test_parse_rows_partitions_and_numbers_from_one():
    rows = _rows(3)
    rows[1]["subtotal"] = "abc"
    items, errors = parse_rows(rows)
    assert [i.row_index for i in items] == [1, 3]
    assert len(errors) == 1
    assert errors[0].row == 2
    assert errors[0].kind is RowErrorKind.PARSE


# ── Import orchestration ─────────────────────────────────────────────


def test_import_all_valid(importer: OrderImporter, store: OrderStore):
    summary = importer.import_orders(_rows(5))
    assert summary.processed == 5
    assert summary.failed == 0
    assert store.count() == 5
    assert len(summary.order_ids) == 5


def test_import_one_bad_subtotal_among_nine_valid(
    importer: OrderImporter, store: OrderStore
):
    rows = _rows(10)
    rows[6]["subtotal"] = "abc"
    summary = importer.import_orders(rows)

    assert summary.processed == 9
    assert summary.failed == 1
    assert summary.errors[0].row == 7
    assert "subtotal" in summary.errors[0].reason
    assert store.count() == 9


def test_out_of_state_row_recorded_as_tax_error(
    importer: OrderImporter, store: OrderStore
):
    rows = _rows(3)
    rows[0].update(latitude="0", longitude="0")
    summary = importer.import_orders(rows)

    assert summary.processed == 2
    assert summary.failed == 1
    error = summary.errors[0]
    assert error.kind is RowErrorKind.TAX
    assert error.row == 1
    assert "outside of New York State" in error.reason


def test_persistence_error_on_third_row_skips_only_that_row(
    importer: OrderImporter, store: OrderStore, monkeypatch
):
    original_insert = OrderWriter.insert

    def flaky_insert(self, record, row=None):
        if row == 3:
            raise PersistenceError("Insert failed: disk I/O error", row=row)
        return original_insert(self, record, row=row)

    monkeypatch.setattr(OrderWriter, "insert", flaky_insert)
    summary = importer.import_orders(_rows(10))

    assert summary.processed == 9
    assert summary.failed == 1
    assert summary.errors[0].kind is RowErrorKind.PERSISTENCE
    assert summary.errors[0].row == 3
    assert store.count() == 9


def test_transaction_fault_rolls_back_whole_batch(
    importer: OrderImporter, store: OrderStore, monkeypatch
):
    original_insert = OrderWriter.insert

    def broken_insert(self, record, row=None):
        if row == 3:
            raise RuntimeError("connection lost")
        return original_insert(self, record, row=row)

    monkeypatch.setattr(OrderWriter, "insert", broken_insert)
    with pytest.raises(RuntimeError, match="connection lost"):
        importer.import_orders(_rows(10))

    assert store.count() == 0


def test_oversized_subtotal_among_nine_valid(
    importer: OrderImporter, store: OrderStore
):
    rows = _rows(10)
    rows[0]["subtotal"] = "1e30"
    summary = importer.import_orders(rows)

    assert summary.processed == 9
    assert summary.failed == 1
    assert summary.errors[0].row == 1
    assert summary.errors[0].kind is RowErrorKind.PARSE
    assert store.count() == 9


def test_mixed_errors_are_counted_by_kind(
    importer: OrderImporter, store: OrderStore
):
    rows = _rows(6)
    rows[0]["subtotal"] = "abc"
    rows[1].update(latitude="45.5", longitude="-73.57")  # Montreal
    summary = importer.import_orders(rows)

    assert summary.processed == 4
    assert summary.failed == 2
    assert len(summary.errors_of(RowErrorKind.PARSE)) == 1
    assert len(summary.errors_of(RowErrorKind.TAX)) == 1
    assert summary.to_dict()["failed"] == 2


def test_import_empty_rows(importer: OrderImporter, store: OrderStore):
    summary = importer.import_orders([])
    assert summary.processed == 0
    assert summary.failed == 0


# ── CSV files ────────────────────────────────────────────────────────


def test_read_csv_normalizes_headers(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        "Latitude, Longitude ,SUBTOTAL,timestamp\n40.7128,-74.0060,150.00,\n",
        encoding="utf-8",
    )
    rows = read_csv_rows(path)
    assert rows == [
        {
            "latitude": "40.7128",
            "longitude": "-74.0060",
            "subtotal": "150.00",
            "timestamp": "",
        }
    ]


def test_read_csv_missing_columns(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text("latitude,longitude\n40.7,-74.0\n", encoding="utf-8")
    with pytest.raises(CsvFormatError, match="subtotal"):
        read_csv_rows(path)


def test_read_empty_csv(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(CsvFormatError):
        read_csv_rows(path)


def test_import_file_removes_upload(importer: OrderImporter, tmp_path):
    path = tmp_path / "upload.csv"
    rows = _rows(10)
    rows[2]["subtotal"] = "abc"
    _write_csv(path, rows)

    summary = importer.import_file(path)

    assert summary.processed == 9
    assert summary.failed == 1
    assert not path.exists()


def test_import_file_removes_upload_on_failure(importer: OrderImporter, tmp_path):
    path = tmp_path / "upload.csv"
    path.write_text("foo,bar\n1,2\n", encoding="utf-8")

    with pytest.raises(CsvFormatError):
        importer.import_file(path)
    assert not path.exists()


def test_stage_upload_copies_file(tmp_path):
    source = tmp_path / "mine.csv"
    _write_csv(source, _rows(2))

    staged = stage_upload(source, tmp_path / "uploads")

    assert staged.parent == tmp_path / "uploads"
    assert staged != source
    assert staged.read_text(encoding="utf-8") == source.read_text(encoding="utf-8")
    assert source.exists()
