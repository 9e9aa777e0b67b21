"""Tests for the TaxCalculator engine."""

from decimal import Decimal

import pytest

from ny_tax_engine.calculator import (
    MAX_SUBTOTAL,
    NYC_FALLBACK_LABEL,
    STATE_LABEL,
    BatchTaxItem,
    FallbackPolicy,
    TaxCalculator,
    round_money,
    validate_subtotal,
)
from ny_tax_engine.exceptions import InvalidSubtotal, OutOfJurisdiction
from ny_tax_engine.rates import MCTD_LABEL, JurisdictionRateTable

MANHATTAN = (40.7128, -74.0060)
BUFFALO = (42.8864, -78.8784)
ROCHESTER = (43.1566, -77.6088)
LAKE_ONTARIO = (43.6, -77.5)


@pytest.fixture
def calc() -> TaxCalculator:
    return TaxCalculator()


@pytest.fixture
def empty_table_calc() -> TaxCalculator:
    return TaxCalculator(JurisdictionRateTable(county_rates={}, city_overrides={}))


# ── Basic tax calculation ────────────────────────────────────────────


def test_manhattan_scenario(calc: TaxCalculator):
    result = calc.calculate(*MANHATTAN, "150.00")
    assert result.composite_tax_rate == Decimal("0.08875")
    assert result.tax_amount == Decimal("13.31")
    assert result.total_amount == Decimal("163.31")
    assert STATE_LABEL in result.jurisdictions
    assert MCTD_LABEL in result.jurisdictions
    assert result.county == "new york"
    assert result.fallback_rate_used is False


def test_buffalo_calculation(calc: TaxCalculator):
    result = calc.calculate(*BUFFALO, Decimal("100.00"))
    # NYS 4% + Erie 4.75% = 8.75%
    assert result.composite_tax_rate == Decimal("0.0875")
    assert result.tax_amount == Decimal("8.75")
    assert result.total_amount == Decimal("108.75")
    assert result.jurisdictions == ("New York State", "Erie County")


def test_composite_equals_breakdown_sum(calc: TaxCalculator):
    for point in (MANHATTAN, BUFFALO, ROCHESTER, LAKE_ONTARIO):
        result = calc.calculate(*point, "57.30")
        b = result.breakdown
        component_sum = b.state_rate + b.county_rate + b.city_rate + b.special_rate
        assert abs(result.composite_tax_rate - component_sum) < Decimal("1e-6")


@pytest.mark.parametrize("subtotal", ["0", "0.01", "19.99", "150.00", "1234.56"])
def test_amounts_follow_rounding_rule(calc: TaxCalculator, subtotal: str):
    result = calc.calculate(*BUFFALO, subtotal)
    amount = Decimal(subtotal)
    assert result.tax_amount == round_money(amount * result.composite_tax_rate)
    assert result.total_amount == round_money(amount + result.tax_amount)


def test_zero_subtotal(calc: TaxCalculator):
    result = calc.calculate(*MANHATTAN, 0)
    assert result.tax_amount == Decimal("0.00")
    assert result.total_amount == Decimal("0.00")


def test_float_subtotal_accepted(calc: TaxCalculator):
    result = calc.calculate(*MANHATTAN, 150.0)
    assert result.tax_amount == Decimal("13.31")


def test_calculation_is_idempotent(calc: TaxCalculator):
    assert calc.calculate(*MANHATTAN, "99.99") == calc.calculate(*MANHATTAN, "99.99")


# ── Rounding ─────────────────────────────────────────────────────────


def test_round_half_up_at_half_cent():
    assert round_money(Decimal("0.805")) == Decimal("0.81")
    assert round_money(Decimal("8.875")) == Decimal("8.88")
    assert round_money(Decimal("0.804")) == Decimal("0.80")


def test_round_money_from_float_does_not_drift():
    # 1.005 is 1.00499999... in binary
    assert round_money(1.005) == Decimal("1.01")


def test_half_cent_tax_rounds_up(calc: TaxCalculator):
    # Monroe 8%: 10.0625 * 0.08 = 0.805
    result = calc.calculate(*ROCHESTER, "10.0625")
    assert result.tax_amount == Decimal("0.81")
    assert result.total_amount == Decimal("10.87")


# ── Transit district label ───────────────────────────────────────────


@pytest.mark.parametrize(
    "lat, lon",
    [MANHATTAN, (40.9312, -73.8988), (41.7004, -73.9210), (40.58, -74.15)],
)
def test_mctd_label_for_special_rate(calc: TaxCalculator, lat: float, lon: float):
    result = calc.calculate(lat, lon, "10.00")
    assert result.breakdown.special_rate > 0
    assert MCTD_LABEL in result.jurisdictions


@pytest.mark.parametrize("lat, lon", [BUFFALO, ROCHESTER, (44.2795, -73.9799)])
def test_no_mctd_label_without_special_rate(
    calc: TaxCalculator, lat: float, lon: float
):
    result = calc.calculate(lat, lon, "10.00")
    assert result.breakdown.special_rate == 0
    assert MCTD_LABEL not in result.jurisdictions


# ── City overrides ───────────────────────────────────────────────────


def test_city_override_applies_when_known(calc: TaxCalculator):
    result = calc.calculate(40.9312, -73.8988, "100.00", city="Yonkers")
    assert result.composite_tax_rate == Decimal("0.08875")
    assert result.county == "westchester"


def test_without_city_county_rate_applies(calc: TaxCalculator):
    result = calc.calculate(40.9312, -73.8988, "100.00")
    assert result.composite_tax_rate == Decimal("0.07875")


# ── Fallback policies ────────────────────────────────────────────────


def test_unresolved_county_uses_nyc_maximum(calc: TaxCalculator):
    result = calc.calculate(*LAKE_ONTARIO, "100.00")
    assert result.fallback is FallbackPolicy.NYC_MAXIMUM
    assert result.fallback_rate_used is True
    assert result.county is None
    assert result.composite_tax_rate == Decimal("0.08875")
    assert result.tax_amount == Decimal("8.88")
    assert result.jurisdictions == (STATE_LABEL, NYC_FALLBACK_LABEL)


def test_rate_table_miss_uses_state_only(empty_table_calc: TaxCalculator):
    result = empty_table_calc.calculate(*MANHATTAN, "150.00")
    assert result.fallback is FallbackPolicy.STATE_ONLY
    assert result.fallback_rate_used is True
    assert result.composite_tax_rate == Decimal("0.04")
    assert result.tax_amount == Decimal("6.00")
    assert result.jurisdictions == (STATE_LABEL, "New York County")


# ── Out of jurisdiction ──────────────────────────────────────────────


def test_null_island_rejected(calc: TaxCalculator):
    with pytest.raises(OutOfJurisdiction) as exc_info:
        calc.calculate(0, 0, "10.00")
    assert exc_info.value.lat == 0
    assert exc_info.value.lon == 0


@pytest.mark.parametrize(
    "lat, lon",
    [(40.7357, -74.1724), (40.5, -77.0), (45.5, -73.57), (39.95, -75.16)],
)
def test_out_of_state_points_rejected(calc: TaxCalculator, lat: float, lon: float):
    with pytest.raises(OutOfJurisdiction):
        calc.calculate(lat, lon, "10.00")


# ── Subtotal validation ──────────────────────────────────────────────


def test_maximum_subtotal_accepted(calc: TaxCalculator):
    result = calc.calculate(*MANHATTAN, MAX_SUBTOTAL)
    assert result.tax_amount == Decimal("88750000.00")


@pytest.mark.parametrize("subtotal", ["1e30", "1000000000.01", "-0.01", "NaN", "abc"])
def test_invalid_subtotal_rejected(calc: TaxCalculator, subtotal: str):
    with pytest.raises(InvalidSubtotal):
        calc.calculate(*MANHATTAN, subtotal)


def test_validate_subtotal_float():
    assert validate_subtotal(19.99) == Decimal("19.99")


# ── Response shape ───────────────────────────────────────────────────


def test_to_dict_shape(calc: TaxCalculator):
    payload = calc.calculate(*MANHATTAN, "150.00").to_dict()
    assert set(payload) == {
        "composite_tax_rate",
        "tax_amount",
        "total_amount",
        "breakdown",
        "jurisdictions",
        "fallback_rate_used",
        "fallback_policy",
    }
    assert payload["breakdown"] == {
        "state_rate": 0.04,
        "county_rate": 0.0,
        "city_rate": 0.045,
        "special_rates": 0.00375,
    }
    assert payload["tax_amount"] == 13.31
    assert payload["fallback_policy"] == "none"


# ── Batch calculation ────────────────────────────────────────────────


def test_batch_matches_single_point(calc: TaxCalculator):
    items = [
        BatchTaxItem(1, *MANHATTAN, "150.00"),
        BatchTaxItem(2, *BUFFALO, "20.00"),
        BatchTaxItem(3, *LAKE_ONTARIO, "5.55"),
    ]
    outcomes = calc.calculate_batch(items)
    for item in items:
        single = calc.calculate(item.lat, item.lon, item.subtotal)
        assert outcomes[item.index].result == single


def test_batch_isolates_out_of_state_items(calc: TaxCalculator):
    outcomes = calc.calculate_batch(
        [
            BatchTaxItem(1, *MANHATTAN, "10.00"),
            BatchTaxItem(2, 0.0, 0.0, "10.00"),
            BatchTaxItem(3, *BUFFALO, "10.00"),
        ]
    )
    assert outcomes[1].ok and outcomes[3].ok
    assert not outcomes[2].ok
    assert isinstance(outcomes[2].error, OutOfJurisdiction)
    assert "outside of New York State" in outcomes[2].reason


def test_empty_batch(calc: TaxCalculator):
    assert calc.calculate_batch([]) == {}


def test_batch_isolates_oversized_subtotal(calc: TaxCalculator):
    outcomes = calc.calculate_batch(
        [
            BatchTaxItem(1, *MANHATTAN, "1e30"),
            BatchTaxItem(2, *MANHATTAN, "10.00"),
        ]
    )
    assert not outcomes[1].ok
    assert isinstance(outcomes[1].error, InvalidSubtotal)
    assert "exceeds maximum" in outcomes[1].reason
    assert outcomes[2].result.tax_amount == Decimal("0.89")
