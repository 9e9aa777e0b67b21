"""
Error taxonomy for the NY delivery tax engine.

Single-point calculation errors propagate to the caller as typed
exceptions. Row-level import errors are collected into the import
summary and never escape a row boundary; only transaction-level faults
abort a whole import.
"""

from __future__ import annotations

from typing import Optional


class TaxEngineError(Exception):
    """Base class for every error raised by the engine."""


class OutOfJurisdiction(TaxEngineError):
    """Coordinates fall outside New York State."""

    def __init__(self, lat: float, lon: float) -> None:
        self.lat = lat
        self.lon = lon
        super().__init__(
            f"Coordinates are outside of New York State: ({lat}, {lon})"
        )


class InvalidSubtotal(TaxEngineError):
    """Subtotal is negative, not finite, or above the supported maximum."""

    def __init__(self, subtotal: object, reason: str) -> None:
        self.subtotal = subtotal
        self.reason = reason
        super().__init__(f"Invalid subtotal {subtotal!s}: {reason}")


class RowParseError(TaxEngineError):
    """A CSV row has malformed numeric fields."""

    def __init__(self, row: int, reason: str) -> None:
        self.row = row
        self.reason = reason
        super().__init__(f"Row {row}: {reason}")


class PersistenceError(TaxEngineError):
    """Insert of a single tax-resolved order failed."""

    def __init__(self, reason: str, row: Optional[int] = None) -> None:
        self.row = row
        self.reason = reason
        prefix = f"Row {row}: " if row is not None else ""
        super().__init__(f"{prefix}{reason}")


class TransactionError(TaxEngineError):
    """The order store failed to commit; the whole batch was rolled back."""


class CsvFormatError(TaxEngineError):
    """The uploaded CSV is empty or lacks the required header columns."""
