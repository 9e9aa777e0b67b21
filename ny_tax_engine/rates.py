"""
New York State sales tax rate table.

Every rate is split into four components: the 4% statewide rate, the
county rate, the city rate and the special (MCTD) surcharge. The
Metropolitan Commuter Transportation District surcharge of 0.375%
applies in the five NYC boroughs and in Dutchess, Nassau, Orange,
Putnam, Rockland, Suffolk and Westchester counties.

Source: NYS Publication 718 (effective March 1, 2025).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class JurisdictionRate:
    """Rate components for one locality, as decimals (0.04 = 4%)."""

    state: float
    county: float = 0.0
    city: float = 0.0
    special: float = 0.0

    @property
    def composite(self) -> Decimal:
        return sum(
            (Decimal(str(r)) for r in (self.state, self.county, self.city, self.special)),
            Decimal("0"),
        )

    @property
    def has_special(self) -> bool:
        return self.special > 0


MCTD_LABEL = "Metropolitan Commuter Transportation District (MCTD)"

# State-only rate for a locality missing from the table. Never overcharges.
DEFAULT_RATE = JurisdictionRate(state=0.04)

# Highest combined rate in the state (NYC, 8.875%). Used when no county can
# be resolved at all, where under-collection is the costlier mistake.
NYC_MAX_RATE = JurisdictionRate(state=0.04, city=0.045, special=0.00375)

_NYC = JurisdictionRate(state=0.04, city=0.045, special=0.00375)


def _county(rate: float, mctd: bool = False) -> JurisdictionRate:
    return JurisdictionRate(
        state=0.04, county=rate, special=0.00375 if mctd else 0.0
    )


# ---------------------------------------------------------------------------
# County-level rates, keyed by lowercase county name
# ---------------------------------------------------------------------------

_COUNTY_DATA: dict[str, JurisdictionRate] = {
    "albany": _county(0.04),
    "allegany": _county(0.045),
    "broome": _county(0.04),
    "cattaraugus": _county(0.04),
    "cayuga": _county(0.04),
    "chautauqua": _county(0.04),
    "chemung": _county(0.04),
    "chenango": _county(0.04),
    "clinton": _county(0.04),
    "columbia": _county(0.04),
    "cortland": _county(0.04),
    "delaware": _county(0.04),
    "dutchess": _county(0.0375, mctd=True),  # 8.125% + MCTD
    "erie": _county(0.0475),  # 8.75%
    "essex": _county(0.04),
    "franklin": _county(0.04),
    "fulton": _county(0.04),
    "genesee": _county(0.04),
    "greene": _county(0.04),
    "hamilton": _county(0.04),
    "herkimer": _county(0.0425),  # 8.25%
    "jefferson": _county(0.04),
    "lewis": _county(0.04),
    "livingston": _county(0.04),
    "madison": _county(0.04),
    "monroe": _county(0.04),
    "montgomery": _county(0.04),
    "nassau": _county(0.04875, mctd=True),  # 8.625% + MCTD
    "niagara": _county(0.04),
    "oneida": _county(0.0475),  # 8.75%
    "onondaga": _county(0.04),
    "ontario": _county(0.035),  # 7.5%
    "orange": _county(0.0375, mctd=True),  # 8.125% + MCTD
    "orleans": _county(0.04),
    "oswego": _county(0.04),
    "otsego": _county(0.04),
    "putnam": _county(0.035, mctd=True),  # 8.375% + MCTD
    "rensselaer": _county(0.04),
    "rockland": _county(0.035, mctd=True),  # 8.375% + MCTD
    "st. lawrence": _county(0.04),
    "saratoga": _county(0.03),  # 7%
    "schenectady": _county(0.04),
    "schoharie": _county(0.04),
    "schuyler": _county(0.04),
    "seneca": _county(0.04),
    "steuben": _county(0.04),
    "suffolk": _county(0.0475, mctd=True),  # 8.75% + MCTD
    "sullivan": _county(0.04),
    "tioga": _county(0.04),
    "tompkins": _county(0.04),
    "ulster": _county(0.04),
    "warren": _county(0.03),  # 7%
    "washington": _county(0.03),  # 7%
    "wayne": _county(0.04),
    "westchester": _county(0.035, mctd=True),  # 8.375% + MCTD
    "wyoming": _county(0.04),
    "yates": _county(0.04),
    # NYC boroughs: 4.5% city tax + MCTD, no county portion.
    "bronx": _NYC,
    "kings": _NYC,  # Brooklyn
    "new york": _NYC,  # Manhattan
    "queens": _NYC,
    "richmond": _NYC,  # Staten Island
    "new york city": _NYC,
}

# ---------------------------------------------------------------------------
# City overrides, keyed by lowercase city/locality name
# ---------------------------------------------------------------------------

_CITY_DATA: dict[str, JurisdictionRate] = {
    "new york": _NYC,
    "manhattan": _NYC,
    "brooklyn": _NYC,
    "bronx": _NYC,
    "queens": _NYC,
    "staten island": _NYC,
    # Yonkers levies its own surcharge on top of Westchester: 8.875%.
    "yonkers": _county(0.045, mctd=True),
    "mount vernon": _county(0.035, mctd=True),
    "new rochelle": _county(0.035, mctd=True),
    "white plains": _county(0.035, mctd=True),
    "rome": _county(0.0475),
    "utica": _county(0.0475),
    "saratoga springs": _county(0.03),
    "glens falls": _county(0.03),
    "ithaca": _county(0.04),
    "ogdensburg": _county(0.04),
    "oneida": _county(0.04),
    "auburn": _county(0.04),
    "gloversville": _county(0.04),
    "johnstown": _county(0.04),
    "olean": _county(0.04),
    "salamanca": _county(0.04),
    "norwich": _county(0.04),
    "oswego": _county(0.04),
}

COUNTY_RATES: Mapping[str, JurisdictionRate] = MappingProxyType(_COUNTY_DATA)
CITY_OVERRIDES: Mapping[str, JurisdictionRate] = MappingProxyType(_CITY_DATA)

_ALIASES = frozenset({"new york city"})


def normalize_locality(name: Optional[str]) -> str:
    """Trim and lowercase a locality name; None becomes an empty string."""
    return (name or "").strip().lower()


class JurisdictionRateTable:
    """
    Read-only view over the county and city rate tables.

    Lookups are normalized; the underlying mappings are shared and
    immutable, so one instance may serve concurrent callers.
    """

    def __init__(
        self,
        county_rates: Mapping[str, JurisdictionRate] = COUNTY_RATES,
        city_overrides: Mapping[str, JurisdictionRate] = CITY_OVERRIDES,
    ) -> None:
        self._counties = county_rates
        self._cities = city_overrides

    @property
    def county_count(self) -> int:
        return len([name for name in self._counties if name not in _ALIASES])

    def county_rate(self, county: str) -> Optional[JurisdictionRate]:
        return self._counties.get(normalize_locality(county))

    def city_override(self, city: str) -> Optional[JurisdictionRate]:
        return self._cities.get(normalize_locality(city))

    def rates_for(
        self, city: Optional[str], county: Optional[str]
    ) -> JurisdictionRate:
        """City override, then county rate, then the state-only default."""
        return (
            self.city_override(city or "")
            or self.county_rate(county or "")
            or DEFAULT_RATE
        )

    @staticmethod
    def is_default(rate: JurisdictionRate) -> bool:
        return rate is DEFAULT_RATE

    def counties(self) -> list[tuple[str, JurisdictionRate]]:
        """All counties sorted by name, aliases excluded."""
        return [
            (name, self._counties[name])
            for name in sorted(self._counties)
            if name not in _ALIASES
        ]

    def cities(self) -> list[tuple[str, JurisdictionRate]]:
        return [(name, self._cities[name]) for name in sorted(self._cities)]

    def mctd_counties(self) -> list[str]:
        """Counties inside the Metropolitan Commuter Transportation District."""
        return [name for name, rate in self.counties() if rate.has_special]

    def highest_rate_counties(self, n: int = 10) -> list[tuple[str, JurisdictionRate]]:
        """Return the N counties with the highest composite rate."""
        return sorted(
            self.counties(), key=lambda item: item[1].composite, reverse=True
        )[:n]


_TABLE = JurisdictionRateTable()


def rates_for(city: Optional[str], county: Optional[str]) -> JurisdictionRate:
    """
    Resolve rates for a locality.

    A city override wins over its county; an unknown locality gets the
    state-only default. Never raises.
    """
    return _TABLE.rates_for(city, county)
