"""
Bulk order import from CSV.

Rows with malformed numbers are rejected before any tax work. The rest
go through the batch calculator in one pass, then every tax-resolved
row is inserted inside a single store transaction. Row-level failures
(parse, tax, insert) are collected in the summary; only a
transaction-level fault aborts the import, rolling back every insert.
"""

from __future__ import annotations

import math
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

import pandas as pd

from ny_tax_engine.calculator import MAX_SUBTOTAL, BatchTaxItem, TaxCalculator
from ny_tax_engine.exceptions import CsvFormatError, PersistenceError, RowParseError
from ny_tax_engine.import_logger import ImportLogger
from ny_tax_engine.store import OrderRecord, OrderStore

REQUIRED_COLUMNS = ("latitude", "longitude", "subtotal")


class RowErrorKind(Enum):
    PARSE = "parse"
    TAX = "tax"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class BatchItem:
    """One parsed CSV row, alive only for the duration of an import."""

    row_index: int  # 1-based data row number (header excluded)
    lat: float
    lon: float
    subtotal: Decimal
    timestamp: str
    raw_fields: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class RowError:
    row: int
    reason: str
    kind: RowErrorKind

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "reason": self.reason, "kind": self.kind.value}


@dataclass
class ImportSummary:
    """Outcome of one import run."""

    processed: int = 0
    errors: list[RowError] = field(default_factory=list)
    order_ids: list[int] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def errors_of(self, kind: RowErrorKind) -> list[RowError]:
        return [e for e in self.errors if e.kind is kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
        }


def _raw(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    return "" if value is None else str(value).strip()


def _parse_float(value: str) -> Optional[float]:
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _parse_amount(value: str) -> Optional[Decimal]:
    try:
        amount = Decimal(value)
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def parse_row(row_index: int, row: Mapping[str, Any]) -> BatchItem:
    """
    Turn one raw CSV row into a BatchItem.

    Raises RowParseError naming every offending field and its raw value.
    """
    raw_lat = _raw(row, "latitude")
    raw_lon = _raw(row, "longitude")
    raw_subtotal = _raw(row, "subtotal")

    lat = _parse_float(raw_lat)
    lon = _parse_float(raw_lon)
    subtotal = _parse_amount(raw_subtotal)

    invalid = [
        f"{name}={raw!r}"
        for name, raw, value in (
            ("latitude", raw_lat, lat),
            ("longitude", raw_lon, lon),
            ("subtotal", raw_subtotal, subtotal),
        )
        if value is None
    ]
    if invalid:
        raise RowParseError(row_index, f"Invalid numeric fields: {', '.join(invalid)}")
    if subtotal < 0:
        raise RowParseError(
            row_index, f"Subtotal must not be negative: subtotal={raw_subtotal!r}"
        )
    if subtotal > MAX_SUBTOTAL:
        raise RowParseError(
            row_index,
            f"Subtotal exceeds maximum of {MAX_SUBTOTAL:,}: subtotal={raw_subtotal!r}",
        )

    timestamp = _raw(row, "timestamp") or datetime.now(timezone.utc).isoformat()
    return BatchItem(
        row_index=row_index,
        lat=lat,
        lon=lon,
        subtotal=subtotal,
        timestamp=timestamp,
        raw_fields=dict(row),
    )


def parse_rows(
    rows: Iterable[Mapping[str, Any]],
) -> tuple[list[BatchItem], list[RowError]]:
    """Partition raw rows into valid items and parse errors."""
    items: list[BatchItem] = []
    errors: list[RowError] = []
    for i, row in enumerate(rows, start=1):
        try:
            items.append(parse_row(i, row))
        except RowParseError as e:
            errors.append(RowError(e.row, e.reason, RowErrorKind.PARSE))
    return items, errors


def read_csv_rows(path: Union[str, Path]) -> list[dict[str, Any]]:
    """
    Load CSV rows as strings keyed by lowercase header name.

    Expected columns: latitude, longitude, subtotal, timestamp
    """
    try:
        frame = pd.read_csv(
            path, dtype=str, keep_default_na=False, skipinitialspace=True
        )
    except pd.errors.EmptyDataError as e:
        raise CsvFormatError(f"CSV file is empty: {path}") from e
    except pd.errors.ParserError as e:
        raise CsvFormatError(f"Malformed CSV {path}: {e}") from e

    frame.columns = [str(c).strip().lower() for c in frame.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise CsvFormatError(
            f"CSV is missing required columns: {', '.join(missing)}"
        )
    return frame.to_dict(orient="records")


def stage_upload(source: Union[str, Path], upload_dir: Union[str, Path]) -> Path:
    """Copy a CSV into the upload directory under a unique temporary name."""
    target_dir = Path(upload_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix="import-", suffix=".csv", dir=target_dir)
    os.close(fd)
    try:
        shutil.copyfile(source, tmp_name)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return Path(tmp_name)


class OrderImporter:
    """
    Orchestrates a CSV import: parse, tax, persist.

    The insert loop is sequential inside one transaction, so the store
    sees a single writer and never a partially interleaved batch.
    """

    def __init__(
        self,
        store: OrderStore,
        calculator: Optional[TaxCalculator] = None,
        import_logger: Optional[ImportLogger] = None,
    ) -> None:
        self.store = store
        self.calculator = calculator or TaxCalculator()
        self._log = import_logger or ImportLogger()

    def _reject(self, summary: ImportSummary, error: RowError) -> None:
        summary.errors.append(error)
        self._log.row_rejected(error)

    def import_orders(self, rows: Iterable[Mapping[str, Any]]) -> ImportSummary:
        """
        Import parsed CSV rows.

        Returns the summary; re-raises anything that aborts the store
        transaction after it has been rolled back.
        """
        items, parse_errors = parse_rows(rows)
        summary = ImportSummary()
        for error in parse_errors:
            self._reject(summary, error)
        self._log.import_start(len(items), len(parse_errors))

        outcomes = self.calculator.calculate_batch(
            BatchTaxItem(item.row_index, item.lat, item.lon, item.subtotal)
            for item in items
        )

        with self.store.transaction() as writer:
            for item in items:
                outcome = outcomes.get(item.row_index)
                if outcome is None or not outcome.ok:
                    reason = outcome.reason if outcome else "No tax result for row"
                    self._reject(
                        summary, RowError(item.row_index, reason, RowErrorKind.TAX)
                    )
                    continue

                record = OrderRecord.from_resolution(
                    item.lat, item.lon, item.timestamp, outcome.result
                )
                try:
                    order_id = writer.insert(record, row=item.row_index)
                except PersistenceError as e:
                    self._reject(
                        summary,
                        RowError(item.row_index, e.reason, RowErrorKind.PERSISTENCE),
                    )
                    continue
                summary.processed += 1
                summary.order_ids.append(order_id)

        self._log.import_complete(summary)
        return summary

    def import_file(self, path: Union[str, Path]) -> ImportSummary:
        """Import an uploaded CSV, removing the file on every exit path."""
        path = Path(path)
        try:
            rows = read_csv_rows(path)
            self._log.file_loaded(str(path), len(rows))
            return self.import_orders(rows)
        finally:
            path.unlink(missing_ok=True)
            self._log.temp_file_removed(str(path))
