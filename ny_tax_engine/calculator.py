"""
Sales tax calculation for drone deliveries in New York State.

Handles:
- State bounds validation (including the excluded NJ/PA pockets)
- County resolution through the local bounding-box classifier
- Two-tier fallback: state-only for a rate-table miss, NYC maximum
  when no county resolves at all
- Half-up rounding to the cent
- Single-point and batch entry points; the batch path is pure and local
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, Optional, Union

from loguru import logger

from ny_tax_engine.exceptions import (
    InvalidSubtotal,
    OutOfJurisdiction,
    TaxEngineError,
)
from ny_tax_engine.rates import (
    MCTD_LABEL,
    NYC_MAX_RATE,
    JurisdictionRate,
    JurisdictionRateTable,
)
from ny_tax_engine.regions import classify, is_inside_new_york, title_case

Amount = Union[Decimal, float, int, str]

STATE_LABEL = "New York State"
NYC_FALLBACK_LABEL = "NYC max fallback (county unresolved)"

_CENT = Decimal("0.01")
_RATE_PLACES = Decimal("0.000001")

# Largest accepted subtotal; keeps every amount inside the 28-digit context.
MAX_SUBTOTAL = Decimal("1000000000")


class FallbackPolicy(Enum):
    NONE = "none"
    STATE_ONLY = "state_only"  # locality missing from the rate table
    NYC_MAXIMUM = "nyc_maximum"  # no county resolved for the point


@dataclass(frozen=True)
class RateBreakdown:
    state_rate: Decimal
    county_rate: Decimal
    city_rate: Decimal
    special_rate: Decimal

    @classmethod
    def from_rate(cls, rate: JurisdictionRate) -> "RateBreakdown":
        return cls(
            state_rate=Decimal(str(rate.state)),
            county_rate=Decimal(str(rate.county)),
            city_rate=Decimal(str(rate.city)),
            special_rate=Decimal(str(rate.special)),
        )

    @property
    def total(self) -> Decimal:
        return self.state_rate + self.county_rate + self.city_rate + self.special_rate

    def to_dict(self) -> dict[str, float]:
        return {
            "state_rate": float(self.state_rate),
            "county_rate": float(self.county_rate),
            "city_rate": float(self.city_rate),
            "special_rates": float(self.special_rate),
        }


@dataclass(frozen=True)
class TaxResolution:
    """Tax computed for one delivery point. Never mutated after creation."""

    subtotal: Decimal
    composite_tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    breakdown: RateBreakdown
    jurisdictions: tuple[str, ...]
    county: Optional[str] = None
    fallback: FallbackPolicy = FallbackPolicy.NONE

    @property
    def fallback_rate_used(self) -> bool:
        return self.fallback is not FallbackPolicy.NONE

    def to_dict(self) -> dict[str, Any]:
        """Response shape exposed to API consumers."""
        return {
            "composite_tax_rate": float(self.composite_tax_rate),
            "tax_amount": float(self.tax_amount),
            "total_amount": float(self.total_amount),
            "breakdown": self.breakdown.to_dict(),
            "jurisdictions": list(self.jurisdictions),
            "fallback_rate_used": self.fallback_rate_used,
            "fallback_policy": self.fallback.value,
        }


@dataclass(frozen=True)
class BatchTaxItem:
    index: int
    lat: float
    lon: float
    subtotal: Amount


@dataclass(frozen=True)
class BatchTaxOutcome:
    """Per-item batch result: exactly one of ``result`` or ``error`` is set."""

    index: int
    result: Optional[TaxResolution] = None
    error: Optional[TaxEngineError] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.result is not None

    @property
    def reason(self) -> str:
        return str(self.error) if self.error else ""


def round_money(amount: Amount) -> Decimal:
    """Round to the nearest cent, halves away from zero."""
    return Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)


def validate_subtotal(amount: Amount) -> Decimal:
    """
    Convert a subtotal to Decimal, enforcing 0 <= subtotal <= MAX_SUBTOTAL.

    Raises InvalidSubtotal for anything else, including non-numeric text.
    """
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation:
        raise InvalidSubtotal(amount, "not a number") from None
    if not value.is_finite():
        raise InvalidSubtotal(amount, "must be finite")
    if value < 0:
        raise InvalidSubtotal(amount, "must not be negative")
    if value > MAX_SUBTOTAL:
        raise InvalidSubtotal(amount, f"exceeds maximum of {MAX_SUBTOTAL:,}")
    return value


class TaxCalculator:
    """
    Delivery tax calculation engine.

    Validates the point against state bounds, resolves the county,
    looks up rates and computes rounded monetary amounts. Holds no
    mutable state, so one instance is safe to share.
    """

    def __init__(self, table: Optional[JurisdictionRateTable] = None) -> None:
        self.table = table or JurisdictionRateTable()

    def _resolve_rates(
        self, lat: float, lon: float, city: Optional[str]
    ) -> tuple[JurisdictionRate, list[str], Optional[str], FallbackPolicy]:
        """
        Map a validated in-state point to rates and jurisdiction labels.

        Returns (rate, jurisdictions, county, fallback).
        """
        county = classify(lat, lon)
        if county is None:
            logger.warning(
                "No county resolved for ({}, {}). Applying NYC max rate 8.875%.",
                lat,
                lon,
            )
            return (
                NYC_MAX_RATE,
                [STATE_LABEL, NYC_FALLBACK_LABEL],
                None,
                FallbackPolicy.NYC_MAXIMUM,
            )

        rate = self.table.rates_for(city or "", county)
        jurisdictions = [STATE_LABEL, f"{title_case(county)} County"]
        if rate.has_special:
            jurisdictions.append(MCTD_LABEL)

        fallback = FallbackPolicy.NONE
        if self.table.is_default(rate):
            logger.info(
                "No rate entry for county={!r}; using state-only rate", county
            )
            fallback = FallbackPolicy.STATE_ONLY
        return rate, jurisdictions, county, fallback

    def calculate(
        self,
        lat: float,
        lon: float,
        subtotal: Amount,
        city: Optional[str] = None,
    ) -> TaxResolution:
        """
        Calculate tax for a single delivery point.

        ``city`` is only needed when a city name is known from another
        source; bounding boxes resolve counties, never cities.

        Raises OutOfJurisdiction if the point is outside New York State
        and InvalidSubtotal if the subtotal is out of range.
        """
        if not is_inside_new_york(lat, lon):
            raise OutOfJurisdiction(lat, lon)
        amount = validate_subtotal(subtotal)

        rate, jurisdictions, county, fallback = self._resolve_rates(lat, lon, city)

        breakdown = RateBreakdown.from_rate(rate)
        composite = breakdown.total
        tax_amount = round_money(amount * composite)
        total_amount = round_money(amount + tax_amount)

        return TaxResolution(
            subtotal=amount,
            composite_tax_rate=composite.quantize(_RATE_PLACES, rounding=ROUND_HALF_UP),
            tax_amount=tax_amount,
            total_amount=total_amount,
            breakdown=breakdown,
            jurisdictions=tuple(jurisdictions),
            county=county,
            fallback=fallback,
        )

    def calculate_batch(
        self, items: Iterable[BatchTaxItem]
    ) -> dict[int, BatchTaxOutcome]:
        """
        Calculate tax for many points, keyed by each item's index.

        One bad item never fails the batch: out-of-state points and
        invalid subtotals become per-item error outcomes. No I/O, linear
        in the number of items.
        """
        outcomes: dict[int, BatchTaxOutcome] = {}
        for item in items:
            try:
                result = self.calculate(item.lat, item.lon, item.subtotal)
            except TaxEngineError as e:
                outcomes[item.index] = BatchTaxOutcome(index=item.index, error=e)
            else:
                outcomes[item.index] = BatchTaxOutcome(index=item.index, result=result)
        return outcomes
