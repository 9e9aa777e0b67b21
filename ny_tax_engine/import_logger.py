"""Logging for CSV order imports, kept out of the orchestration code."""

from __future__ import annotations

from typing import TYPE_CHECKING

import loguru
from loguru import logger

if TYPE_CHECKING:
    from ny_tax_engine.importer import ImportSummary, RowError


class ImportLogger:
    """Handles all logging for an import run."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def file_loaded(self, path: str, row_count: int) -> None:
        self._logger.bind(path=path, rows=row_count).info(
            "Loaded {} rows from {}", row_count, path
        )

    def import_start(self, valid_count: int, parse_error_count: int) -> None:
        self._logger.bind(valid=valid_count, invalid=parse_error_count).info(
            "Importing {} valid rows ({} rejected while parsing)",
            valid_count,
            parse_error_count,
        )

    def row_rejected(self, error: RowError) -> None:
        self._logger.bind(row=error.row, kind=error.kind).warning(
            "Row {} skipped ({}): {}", error.row, error.kind, error.reason
        )

    def import_complete(self, summary: ImportSummary) -> None:
        self._logger.bind(
            processed=summary.processed, failed=summary.failed
        ).info(
            "Import complete: {} processed, {} failed",
            summary.processed,
            summary.failed,
        )

    def temp_file_removed(self, path: str) -> None:
        self._logger.debug("Removed temporary upload {}", path)
