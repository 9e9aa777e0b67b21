"""
Command-line interface for the NY delivery tax engine.

Provides subcommands for tax calculation, manual order creation, CSV
import, order listing, and rate/classifier inspection.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ny_tax_engine.calculator import TaxCalculator, TaxResolution
from ny_tax_engine.config import Settings, configure_logging, get_settings
from ny_tax_engine.exceptions import TaxEngineError
from ny_tax_engine.importer import OrderImporter, stage_upload
from ny_tax_engine.rates import JurisdictionRateTable
from ny_tax_engine.regions import (
    candidate_regions,
    get_region,
    is_inside_new_york,
    pick_smallest_region,
)
from ny_tax_engine.report_generator import ReportGenerator
from ny_tax_engine.store import SORTABLE_COLUMNS, OrderQuery, OrderRecord, OrderStore

console = Console()


def _store(args: argparse.Namespace, settings: Settings) -> OrderStore:
    return OrderStore(
        args.db or settings.database_url, max_page_size=settings.max_page_size
    )


def _resolution_panel(
    result: TaxResolution, lat: float, lon: float, title: str
) -> Panel:
    b = result.breakdown
    fallback = (
        f"Yes - {result.fallback.value.replace('_', ' ')}"
        if result.fallback_rate_used
        else "No"
    )
    return Panel(
        f"[bold]Location:[/bold] ({lat}, {lon})\n"
        f"[bold]County:[/bold] {result.county or 'unresolved'}\n"
        f"[bold]Subtotal:[/bold] ${result.subtotal:,.2f}\n"
        f"[bold]State Rate:[/bold] {b.state_rate:.3%}\n"
        f"[bold]County Rate:[/bold] {b.county_rate:.3%}\n"
        f"[bold]City Rate:[/bold] {b.city_rate:.3%}\n"
        f"[bold]Special Rate:[/bold] {b.special_rate:.3%}\n"
        f"[bold]Composite Rate:[/bold] {result.composite_tax_rate:.4%}\n"
        f"[bold]Tax:[/bold] ${result.tax_amount:,.2f}\n"
        f"[bold]Total w/ Tax:[/bold] ${result.total_amount:,.2f}\n"
        f"[bold]Jurisdictions:[/bold] {', '.join(result.jurisdictions)}\n"
        f"[bold]Fallback Rate:[/bold] {fallback}",
        title=title,
        border_style="yellow" if result.fallback_rate_used else "blue",
    )


# -----------------------------------------------------------------------
# Subcommand: calculate
# -----------------------------------------------------------------------


def cmd_calculate(args: argparse.Namespace, settings: Settings) -> None:
    """Calculate delivery tax for a single point."""
    calc = TaxCalculator()
    result = calc.calculate(args.lat, args.lon, args.subtotal, city=args.city)
    console.print(_resolution_panel(result, args.lat, args.lon, "Tax Calculation"))

    if args.text or args.export_json:
        rg = ReportGenerator(args.output_dir or settings.output_dir)
        report = rg.tax_report(result, args.lat, args.lon)
        if args.text:
            console.print(rg.format_text(report), markup=False)
        if args.export_json:
            rg.to_json(report, args.export_json)
            console.print(f"[green]JSON exported to {args.export_json}[/green]")


# -----------------------------------------------------------------------
# Subcommand: create
# -----------------------------------------------------------------------


def cmd_create(args: argparse.Namespace, settings: Settings) -> None:
    """Calculate tax for a manual order and persist it."""
    calc = TaxCalculator()
    result = calc.calculate(args.lat, args.lon, args.subtotal, city=args.city)
    record = OrderRecord.from_resolution(
        args.lat,
        args.lon,
        args.timestamp,
        result,
        customer_name=args.customer or "Manual",
    )
    order_id = _store(args, settings).insert_order(record)
    console.print(_resolution_panel(result, args.lat, args.lon, "Order Created"))
    console.print(f"[green]Order created successfully. Order ID: {order_id}[/green]")


# -----------------------------------------------------------------------
# Subcommand: import
# -----------------------------------------------------------------------


def cmd_import(args: argparse.Namespace, settings: Settings) -> None:
    """Import orders from a CSV file."""
    source = Path(args.file)
    if not source.exists():
        console.print(f"[red]File not found: {args.file}[/red]")
        sys.exit(1)

    importer = OrderImporter(_store(args, settings))
    staged = stage_upload(source, settings.upload_dir)
    try:
        summary = importer.import_file(staged)
    finally:
        staged.unlink(missing_ok=True)

    console.print(
        Panel(
            f"[bold]Processed:[/bold] {summary.processed}\n"
            f"[bold]Failed:[/bold] {summary.failed}",
            title=f"Import: {source.name}",
            border_style="green" if summary.failed == 0 else "yellow",
        )
    )

    if summary.errors:
        table = Table(title="Rejected Rows", box=box.ROUNDED)
        table.add_column("Row", justify="right", style="dim")
        table.add_column("Kind")
        table.add_column("Reason")
        for e in summary.errors[: args.max_errors]:
            table.add_row(str(e.row), e.kind.value, e.reason)
        console.print(table)
        if len(summary.errors) > args.max_errors:
            console.print(
                f"[yellow]... {len(summary.errors) - args.max_errors} more[/yellow]"
            )

    if args.text or args.export_json:
        rg = ReportGenerator(args.output_dir or settings.output_dir)
        report = rg.import_report(summary, source=str(source))
        if args.text:
            console.print(rg.format_text(report), markup=False)
        if args.export_json:
            rg.to_json(report, args.export_json)
            console.print(f"[green]Report exported to {args.export_json}[/green]")


# -----------------------------------------------------------------------
# Subcommand: orders
# -----------------------------------------------------------------------


def cmd_orders(args: argparse.Namespace, settings: Settings) -> None:
    """List stored orders with filters and pagination."""
    query = OrderQuery(
        page=args.page,
        limit=args.limit or settings.default_page_size,
        date_from=args.date_from,
        date_to=args.date_to,
        subtotal_min=args.subtotal_min,
        subtotal_max=args.subtotal_max,
        status=args.status,
        sort_by=args.sort,
        descending=not args.asc,
    )
    page = _store(args, settings).list_orders(query)

    table = Table(
        title=f"Orders - page {page.page} of {max(page.total_pages, 1)} "
        f"({page.total} total)",
        box=box.ROUNDED,
    )
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Timestamp")
    table.add_column("Location")
    table.add_column("Subtotal", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Tax", justify="right", style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Status")

    for o in page.orders:
        table.add_row(
            str(o["id"]),
            o["timestamp"] or "-",
            f"{o['latitude']:.4f}, {o['longitude']:.4f}",
            f"${o['subtotal']:,.2f}",
            f"{o['composite_tax_rate'] or 0:.3%}",
            f"${o['tax_amount'] or 0:,.2f}",
            f"${o['total_amount'] or 0:,.2f}",
            o["status"],
        )
    console.print(table)

    if args.export_json or args.export_csv:
        rg = ReportGenerator(args.output_dir or settings.output_dir)
        if args.export_json:
            rg.to_json(rg.orders_report(page), args.export_json)
        if args.export_csv:
            rg.export_orders_csv(page, args.export_csv)
        console.print("[green]Orders exported.[/green]")


# -----------------------------------------------------------------------
# Subcommand: rates
# -----------------------------------------------------------------------


def cmd_rates(args: argparse.Namespace, settings: Settings) -> None:
    """Display rates for one county or the whole table."""
    table_db = JurisdictionRateTable()

    if args.county:
        rate = table_db.county_rate(args.county)
        region = get_region(args.county)
        if rate is None or region is None:
            console.print(f"[red]Unknown county: {args.county}[/red]")
            sys.exit(1)
        min_lon, min_lat, max_lon, max_lat = region.bbox
        console.print(
            Panel(
                f"[bold]County:[/bold] {region.display_name}\n"
                f"[bold]State Rate:[/bold] {rate.state:.3%}\n"
                f"[bold]County Rate:[/bold] {rate.county:.3%}\n"
                f"[bold]City Rate:[/bold] {rate.city:.3%}\n"
                f"[bold]Special (MCTD):[/bold] {rate.special:.3%}\n"
                f"[bold]Composite:[/bold] {rate.composite:.3%}\n"
                f"[bold]Bounding Box:[/bold] lat {min_lat}..{max_lat}, "
                f"lon {min_lon}..{max_lon}",
                title=f"{region.display_name} Tax Profile",
                border_style="cyan",
            )
        )
        return

    if args.cities:
        table = Table(title="New York City Rate Overrides", box=box.ROUNDED)
        table.add_column("City", style="bold")
        table.add_column("County Rate", justify="right")
        table.add_column("City Rate", justify="right")
        table.add_column("MCTD", justify="center")
        table.add_column("Composite", justify="right")
        for name, rate in table_db.cities():
            table.add_row(
                name.title(),
                f"{rate.county:.3%}",
                f"{rate.city:.3%}" if rate.city else "-",
                "Y" if rate.has_special else "",
                f"{rate.composite:.3%}",
            )
        console.print(table)
        return

    if args.top:
        rows = table_db.highest_rate_counties(args.top)
        title = f"New York Sales Tax Rates - Top {len(rows)} Counties"
    else:
        rows = table_db.counties()
        title = "New York Sales Tax Rates - All Counties"

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("County", style="bold")
    table.add_column("County Rate", justify="right")
    table.add_column("City Rate", justify="right")
    table.add_column("MCTD", justify="center")
    table.add_column("Composite", justify="right")
    for name, rate in rows:
        table.add_row(
            name.title(),
            f"{rate.county:.3%}",
            f"{rate.city:.3%}" if rate.city else "-",
            "Y" if rate.has_special else "",
            f"{rate.composite:.3%}",
        )
    console.print(table)

    mctd = table_db.mctd_counties()
    console.print(
        f"\n[bold]MCTD counties ({len(mctd)}):[/bold] "
        f"{', '.join(name.title() for name in mctd)}"
    )


# -----------------------------------------------------------------------
# Subcommand: classify
# -----------------------------------------------------------------------


def cmd_classify(args: argparse.Namespace, settings: Settings) -> None:
    """Show every county box containing a point and the one chosen."""
    if not is_inside_new_york(args.lat, args.lon):
        console.print(f"[red]({args.lat}, {args.lon}) is outside New York State[/red]")
        sys.exit(1)

    candidates = candidate_regions(args.lat, args.lon)
    winner = pick_smallest_region(candidates)
    if winner is None:
        console.print("[yellow]No county box contains this point.[/yellow]")
        return

    table = Table(title=f"Candidates for ({args.lat}, {args.lon})", box=box.SIMPLE)
    table.add_column("County")
    table.add_column("Area (deg²)", justify="right")
    table.add_column("Chosen", justify="center")
    for region in candidates:
        table.add_row(
            region.display_name,
            f"{region.area:.4f}",
            "Y" if region is winner else "",
        )
    console.print(table)


# -----------------------------------------------------------------------
# Argument parser
# -----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ny-tax",
        description="NY Delivery Tax Engine - Jurisdiction resolution, tax calculation, and order import",
    )
    parser.add_argument("--db", help="Database URL (default: NY_TAX_DATABASE_URL)")
    parser.add_argument("--log-level", help="Log level (default: NY_TAX_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # calculate
    calc_p = subparsers.add_parser("calculate", help="Calculate delivery tax")
    calc_p.add_argument("--lat", type=float, required=True, help="Latitude")
    calc_p.add_argument("--lon", type=float, required=True, help="Longitude")
    calc_p.add_argument("--subtotal", required=True, help="Order subtotal")
    calc_p.add_argument("--city", help="City name, if known, for city overrides")
    calc_p.add_argument("--text", action="store_true", help="Print a plain-text report")
    calc_p.add_argument("--export-json", help="Export result to JSON file")
    calc_p.add_argument("--output-dir", help="Output directory for exports")
    calc_p.set_defaults(func=cmd_calculate)

    # create
    create_p = subparsers.add_parser("create", help="Create a manual order")
    create_p.add_argument("--lat", type=float, required=True, help="Latitude")
    create_p.add_argument("--lon", type=float, required=True, help="Longitude")
    create_p.add_argument("--subtotal", required=True, help="Order subtotal")
    create_p.add_argument("--timestamp", help="Order timestamp (ISO 8601)")
    create_p.add_argument("--city", help="City name, if known")
    create_p.add_argument("--customer", help="Customer name (default: Manual)")
    create_p.set_defaults(func=cmd_create)

    # import
    import_p = subparsers.add_parser("import", help="Import orders from CSV")
    import_p.add_argument(
        "--file", "-f", required=True,
        help="CSV with latitude,longitude,subtotal,timestamp columns",
    )
    import_p.add_argument(
        "--max-errors", type=int, default=25, help="Rejected rows to display"
    )
    import_p.add_argument("--text", action="store_true", help="Print a plain-text report")
    import_p.add_argument("--export-json", help="Export import report to JSON")
    import_p.add_argument("--output-dir", help="Output directory")
    import_p.set_defaults(func=cmd_import)

    # orders
    orders_p = subparsers.add_parser("orders", help="List stored orders")
    orders_p.add_argument("--page", type=int, default=1, help="Page number")
    orders_p.add_argument("--limit", type=int, help="Orders per page")
    orders_p.add_argument("--from", dest="date_from", help="Timestamp >= value")
    orders_p.add_argument("--to", dest="date_to", help="Timestamp <= value")
    orders_p.add_argument("--subtotal-min", type=float, help="Minimum subtotal")
    orders_p.add_argument("--subtotal-max", type=float, help="Maximum subtotal")
    orders_p.add_argument("--status", help="Exact status (new, delivered, ...)")
    orders_p.add_argument(
        "--sort", default="created_at", choices=sorted(SORTABLE_COLUMNS),
        help="Sort column",
    )
    orders_p.add_argument("--asc", action="store_true", help="Ascending order")
    orders_p.add_argument("--export-json", help="Export page to JSON")
    orders_p.add_argument("--export-csv", help="Export page to CSV")
    orders_p.add_argument("--output-dir", help="Output directory")
    orders_p.set_defaults(func=cmd_orders)

    # rates
    rates_p = subparsers.add_parser("rates", help="View the rate table")
    rates_p.add_argument("--county", "-c", help="County to look up")
    rates_p.add_argument(
        "--cities", action="store_true", help="List city overrides instead"
    )
    rates_p.add_argument(
        "--top", type=int, metavar="N", help="Show only the N highest-rate counties"
    )
    rates_p.set_defaults(func=cmd_rates)

    # classify
    classify_p = subparsers.add_parser("classify", help="Explain county resolution")
    classify_p.add_argument("--lat", type=float, required=True, help="Latitude")
    classify_p.add_argument("--lon", type=float, required=True, help="Longitude")
    classify_p.set_defaults(func=cmd_classify)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    try:
        args.func(args, settings)
    except TaxEngineError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
