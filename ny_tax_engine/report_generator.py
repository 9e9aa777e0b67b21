"""
Report generator for tax results, imports and order listings.

Produces:
- Single-order tax reports with rate breakdown
- Import run summaries with per-row errors
- Order listing reports
- JSON and CSV export
"""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from ny_tax_engine.calculator import FallbackPolicy, TaxResolution
from ny_tax_engine.importer import ImportSummary, RowErrorKind
from ny_tax_engine.store import OrderPage

_MONEY_KEYS = ("subtotal", "amount", "tax_collected")


class _DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date objects."""

    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, date):
            return o.isoformat()
        return super().default(o)


def _decimal_to_float(obj: Any) -> Any:
    """Recursively convert Decimal values to float for serialization."""
    if isinstance(obj, dict):
        return {k: _decimal_to_float(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_decimal_to_float(i) for i in obj]
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    return obj


def _flatten_order(order: dict[str, Any]) -> dict[str, Any]:
    breakdown = order.get("breakdown") or {}
    row = {k: v for k, v in order.items() if k not in ("breakdown", "jurisdictions")}
    for key in ("state_rate", "county_rate", "city_rate", "special_rates"):
        row[key] = breakdown.get(key)
    row["jurisdictions"] = "; ".join(order.get("jurisdictions") or [])
    return row


class ReportGenerator:
    """
    Generates formatted reports with export capabilities.

    All reports can be returned as structured dicts, rendered to
    console-friendly text, or exported to CSV/JSON files.
    """

    def __init__(self, output_dir: Optional[str] = None) -> None:
        self.output_dir = Path(output_dir) if output_dir else Path("reports")
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Single-order tax report
    # ------------------------------------------------------------------

    def tax_report(
        self, resolution: TaxResolution, lat: float, lon: float
    ) -> dict[str, Any]:
        """Report for one tax calculation, including fallback warnings."""
        warnings: list[str] = []
        if resolution.fallback is FallbackPolicy.NYC_MAXIMUM:
            warnings.append(
                "No county resolved for this point; NYC maximum rate applied"
            )
        elif resolution.fallback is FallbackPolicy.STATE_ONLY:
            warnings.append("Locality missing from rate table; state-only rate applied")

        return {
            "report_type": "delivery_tax",
            "generated_date": date.today().isoformat(),
            "summary": {
                "latitude": lat,
                "longitude": lon,
                "county": resolution.county or "unresolved",
                "subtotal": resolution.subtotal,
                "composite_tax_rate": resolution.composite_tax_rate,
                "tax_amount": resolution.tax_amount,
                "total_amount": resolution.total_amount,
                "fallback_rate_used": resolution.fallback_rate_used,
            },
            "breakdown": resolution.breakdown.to_dict(),
            "jurisdictions": list(resolution.jurisdictions),
            "warnings": warnings,
        }

    # ------------------------------------------------------------------
    # Import summary
    # ------------------------------------------------------------------

    def import_report(
        self, summary: ImportSummary, source: str = ""
    ) -> dict[str, Any]:
        """Report for one CSV import run."""
        return {
            "report_type": "order_import",
            "generated_date": date.today().isoformat(),
            "source": source,
            "summary": {
                "processed": summary.processed,
                "failed": summary.failed,
                "parse_errors": len(summary.errors_of(RowErrorKind.PARSE)),
                "tax_errors": len(summary.errors_of(RowErrorKind.TAX)),
                "persistence_errors": len(
                    summary.errors_of(RowErrorKind.PERSISTENCE)
                ),
            },
            "errors": [e.to_dict() for e in summary.errors],
        }

    # ------------------------------------------------------------------
    # Order listing
    # ------------------------------------------------------------------

    def orders_report(self, page: OrderPage) -> dict[str, Any]:
        """Report for one page of an order listing."""
        tax = sum(
            (Decimal(str(o["tax_amount"] or 0)) for o in page.orders), Decimal("0")
        )
        subtotal = sum(
            (Decimal(str(o["subtotal"] or 0)) for o in page.orders), Decimal("0")
        )
        return {
            "report_type": "order_listing",
            "generated_date": date.today().isoformat(),
            "summary": {
                "total_orders": page.total,
                "page": page.page,
                "total_pages": page.total_pages,
                "orders_on_page": len(page.orders),
                "page_subtotal": subtotal,
                "page_tax_collected": tax,
            },
            "filters": {k: v for k, v in page.filters.items() if v is not None},
            "orders": [_flatten_order(o) for o in page.orders],
        }

    # ------------------------------------------------------------------
    # Export methods
    # ------------------------------------------------------------------

    def to_json(
        self,
        report: dict[str, Any],
        filename: Optional[str] = None,
    ) -> str:
        """Export a report to JSON. Returns the JSON string."""
        serializable = _decimal_to_float(report)
        json_str = json.dumps(serializable, indent=2, cls=_DecimalEncoder)

        if filename:
            path = self.output_dir / filename
            path.write_text(json_str, encoding="utf-8")

        return json_str

    def export_orders_csv(
        self,
        page: OrderPage,
        filename: str = "orders.csv",
    ) -> str:
        """Export one page of orders to CSV, breakdown columns flattened."""
        frame = pd.DataFrame([_flatten_order(o) for o in page.orders])
        csv_str = frame.to_csv(index=False)
        path = self.output_dir / filename
        path.write_text(csv_str, encoding="utf-8")
        return csv_str

    # ------------------------------------------------------------------
    # Console-formatted text output
    # ------------------------------------------------------------------

    def format_text(self, report: dict[str, Any]) -> str:
        """Format a report as human-readable text for console output."""
        lines: list[str] = []
        report_type = report.get("report_type", "report").replace("_", " ").title()
        lines.append(f"{'=' * 60}")
        lines.append(f"  {report_type}")
        lines.append(f"  Generated: {report.get('generated_date', '')}")
        if report.get("source"):
            lines.append(f"  Source: {report['source']}")
        lines.append(f"{'=' * 60}")
        lines.append("")

        summary = report.get("summary", {})
        if summary:
            lines.append("SUMMARY")
            lines.append("-" * 40)
            for key, value in summary.items():
                label = key.replace("_", " ").title()
                if isinstance(value, (float, Decimal)) and "rate" in key:
                    lines.append(f"  {label}: {float(value):.3%}")
                elif isinstance(value, (float, Decimal)) and any(
                    k in key for k in _MONEY_KEYS
                ):
                    lines.append(f"  {label}: ${float(value):,.2f}")
                else:
                    lines.append(f"  {label}: {value}")
            lines.append("")

        breakdown = report.get("breakdown", {})
        if breakdown:
            lines.append("RATE BREAKDOWN")
            lines.append("-" * 40)
            for key, rate in breakdown.items():
                label = key.replace("_", " ").title()
                lines.append(f"  {label}: {float(rate):.3%}")
            lines.append("")

        jurisdictions = report.get("jurisdictions", [])
        if jurisdictions:
            lines.append("JURISDICTIONS")
            lines.append("-" * 40)
            for j in jurisdictions:
                lines.append(f"  {j}")
            lines.append("")

        errors = report.get("errors", [])
        if errors:
            lines.append("ROW ERRORS")
            lines.append("-" * 40)
            for e in errors:
                lines.append(f"  Row {e['row']} [{e['kind']}]: {e['reason']}")
            lines.append("")

        # Warnings
        warnings = report.get("warnings", [])
        if warnings:
            lines.append("WARNINGS")
            lines.append("-" * 40)
            for w in warnings:
                lines.append(f"  * {w}")
            lines.append("")

        return "\n".join(lines)
