#!/usr/bin/env python3
"""
Quick Start Example
===================

Computes delivery tax for a Manhattan drop-off, then shows both
fallback policies: a point on Lake Ontario that no county box covers,
and a rate table missing the resolved county.

Usage:
    python examples/quick_start.py
"""

from decimal import Decimal

from ny_tax_engine.calculator import TaxCalculator
from ny_tax_engine.exceptions import OutOfJurisdiction
from ny_tax_engine.rates import JurisdictionRateTable


def main() -> None:
    calculator = TaxCalculator()

    # $150 delivery to lower Manhattan
    result = calculator.calculate(40.7128, -74.0060, Decimal("150.00"))

    print(f"County:         {result.county}")
    print(f"Composite Rate: {result.composite_tax_rate:.3%}")
    print(f"Tax:            ${result.tax_amount:.2f}")
    print(f"Total w/ Tax:   ${result.total_amount:.2f}")
    print(f"Jurisdictions:  {', '.join(result.jurisdictions)}")

    # No county box contains this point: overcharge-safe NYC maximum
    print("\n--- Unresolved County ---")
    lake = calculator.calculate(43.6, -77.5, Decimal("100.00"))
    print(f"Fallback:       {lake.fallback.value}")
    print(f"Tax:            ${lake.tax_amount:.2f}")

    # County resolved but absent from the table: undercharge-safe state rate
    print("\n--- Rate Table Miss ---")
    bare = TaxCalculator(JurisdictionRateTable(county_rates={}, city_overrides={}))
    miss = bare.calculate(42.8864, -78.8784, Decimal("100.00"))
    print(f"Fallback:       {miss.fallback.value}")
    print(f"Tax:            ${miss.tax_amount:.2f}")

    print("\n--- Out of State ---")
    try:
        calculator.calculate(40.7357, -74.1724, Decimal("20.00"))  # Newark, NJ
    except OutOfJurisdiction as e:
        print(f"Rejected:       {e}")


if __name__ == "__main__":
    main()
