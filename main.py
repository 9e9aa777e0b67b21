#!/usr/bin/env python3
"""
NY Delivery Tax Engine - Entry Point

Resolves New York sales tax for drone deliveries from coordinates,
imports orders in bulk from CSV, and lists stored orders.

Usage:
    python main.py calculate --lat 40.7128 --lon -74.0060 --subtotal 150
    python main.py create --lat 42.8864 --lon -78.8784 --subtotal 42.50
    python main.py import --file data/orders.csv --export-json import.json
    python main.py orders --status new --sort subtotal --asc
    python main.py rates --county Westchester
    python main.py classify --lat 42.6526 --lon -73.7562
"""

from ny_tax_engine.cli import main

if __name__ == "__main__":
    main()
