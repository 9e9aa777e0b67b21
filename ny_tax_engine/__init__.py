"""
NY Delivery Tax Engine
======================

Order management back end for a New York State drone-delivery service:
local county classification, sales tax calculation with deterministic
fallback, bulk CSV import and order storage.

Modules:
    regions         - County bounding boxes and point classification
    rates           - NYS Publication 718 rate table
    calculator      - Single-point and batch tax calculation
    importer        - CSV bulk import orchestration
    store           - SQLAlchemy order store
    report_generator- Tax, import and order reports with CSV/JSON export
    config          - Environment settings and logging setup
    cli             - Command-line interface
"""

__version__ = "1.0.0"

from ny_tax_engine.calculator import TaxCalculator, TaxResolution
from ny_tax_engine.importer import ImportSummary, OrderImporter
from ny_tax_engine.rates import JurisdictionRateTable
from ny_tax_engine.report_generator import ReportGenerator
from ny_tax_engine.store import OrderStore

__all__ = [
    "TaxCalculator",
    "TaxResolution",
    "JurisdictionRateTable",
    "OrderImporter",
    "ImportSummary",
    "OrderStore",
    "ReportGenerator",
]
