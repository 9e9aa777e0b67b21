"""
Local jurisdiction classifier for New York State.

Maps a (latitude, longitude) pair to the county whose bounding box
contains it. Bounding boxes are a deliberate approximation of county
outlines: boxes of neighbouring counties overlap along shared borders,
and a few include slivers of neighbouring states. Overlaps are settled
by picking the smallest box, which in this data favours the denser,
more specific county over the broader rural one around it.

Coordinates are WGS84 decimal degrees. Boxes are stored as
(min_lon, min_lat, max_lon, max_lat).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

BBox = tuple[float, float, float, float]


@dataclass(frozen=True)
class CountyRegion:
    """A county approximated by its enclosing rectangle."""

    name: str  # lowercase county name, e.g. "st. lawrence"
    bbox: BBox

    @property
    def area(self) -> float:
        min_lon, min_lat, max_lon, max_lat = self.bbox
        return (max_lon - min_lon) * (max_lat - min_lat)

    def contains(self, lat: float, lon: float) -> bool:
        min_lon, min_lat, max_lon, max_lat = self.bbox
        return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat

    @property
    def display_name(self) -> str:
        return f"{title_case(self.name)} County"


@dataclass(frozen=True)
class ExcludedRegion:
    """A rectangle inside the outer state box that belongs to another state."""

    label: str
    bbox: BBox

    def contains(self, lat: float, lon: float) -> bool:
        # Strict edges: points on a shared border stay in New York.
        min_lon, min_lat, max_lon, max_lat = self.bbox
        return min_lon < lon < max_lon and min_lat < lat < max_lat


# ---------------------------------------------------------------------------
# Outer state bounds
# ---------------------------------------------------------------------------

NY_BOUNDS: BBox = (-79.8, 40.4, -71.5, 45.1)

EXCLUDED_REGIONS: tuple[ExcludedRegion, ...] = (
    # Bergen, Passaic, Essex and Hudson counties, NJ: west of the Hudson,
    # north of Staten Island and south of the Rockland line.
    ExcludedRegion("northern new jersey", (-75.60, 40.65, -74.03, 41.00)),
    # Union, Middlesex and Monmouth counties, NJ: west of Staten Island.
    ExcludedRegion("central new jersey", (-75.60, 40.40, -74.26, 40.65)),
    # Pennsylvania below the 42nd parallel, west of the Delaware.
    ExcludedRegion("pennsylvania", (-79.80, 40.40, -75.36, 42.00)),
)


# ---------------------------------------------------------------------------
# County bounding boxes (62 counties, alphabetical)
# ---------------------------------------------------------------------------

_COUNTY_BOXES: dict[str, BBox] = {
    "albany": (-74.265, 42.400, -73.676, 42.823),
    "allegany": (-78.309, 42.000, -77.720, 42.577),
    "bronx": (-73.934, 40.785, -73.765, 40.917),
    "broome": (-76.131, 42.000, -75.418, 42.408),
    "cattaraugus": (-79.061, 42.000, -78.308, 42.537),
    "cayuga": (-76.746, 42.625, -76.268, 43.480),
    "chautauqua": (-79.762, 42.000, -79.060, 42.557),
    "chemung": (-76.966, 42.000, -76.536, 42.295),
    "chenango": (-75.890, 42.180, -75.293, 42.747),
    "clinton": (-74.028, 44.384, -73.337, 45.011),
    "columbia": (-73.930, 42.010, -73.352, 42.513),
    "cortland": (-76.275, 42.395, -75.862, 42.791),
    "delaware": (-75.420, 41.850, -74.443, 42.515),
    "dutchess": (-73.935, 41.437, -73.482, 42.077),
    "erie": (-79.132, 42.437, -78.463, 43.096),
    "essex": (-74.280, 43.760, -73.340, 44.405),
    "franklin": (-74.538, 44.097, -73.998, 45.011),
    "fulton": (-74.766, 42.947, -74.092, 43.289),
    "genesee": (-78.466, 42.867, -77.905, 43.133),
    "greene": (-74.452, 42.108, -73.771, 42.432),
    "hamilton": (-74.775, 43.285, -74.137, 44.097),
    "herkimer": (-75.220, 42.830, -74.694, 44.098),
    "jefferson": (-76.420, 43.680, -75.442, 44.510),
    "kings": (-74.042, 40.566, -73.833, 40.739),
    "lewis": (-75.850, 43.465, -75.086, 44.105),
    "livingston": (-78.061, 42.478, -77.583, 42.968),
    "madison": (-75.902, 42.720, -75.246, 43.206),
    "monroe": (-78.000, 42.938, -77.370, 43.370),
    "montgomery": (-74.776, 42.760, -74.089, 43.020),
    "nassau": (-73.768, 40.542, -73.423, 40.906),
    "new york": (-74.047, 40.680, -73.907, 40.882),
    "niagara": (-79.077, 43.000, -78.464, 43.370),
    "oneida": (-75.887, 42.910, -75.071, 43.630),
    "onondaga": (-76.500, 42.770, -75.896, 43.271),
    "ontario": (-77.601, 42.575, -77.044, 43.042),
    "orange": (-74.775, 41.142, -73.933, 41.590),
    "orleans": (-78.466, 43.127, -77.995, 43.370),
    "oswego": (-76.620, 43.157, -75.760, 43.710),
    "otsego": (-75.420, 42.350, -74.630, 42.910),
    "putnam": (-73.982, 41.318, -73.511, 41.528),
    "queens": (-73.962, 40.542, -73.700, 40.801),
    "rensselaer": (-73.771, 42.428, -73.242, 42.942),
    "richmond": (-74.259, 40.496, -74.050, 40.649),
    "rockland": (-74.235, 41.000, -73.893, 41.369),
    "st. lawrence": (-75.870, 44.110, -74.525, 45.010),
    "saratoga": (-74.095, 42.772, -73.576, 43.311),
    "schenectady": (-74.264, 42.721, -73.809, 42.980),
    "schoharie": (-74.715, 42.415, -74.165, 42.780),
    "schuyler": (-77.110, 42.270, -76.730, 42.560),
    "seneca": (-76.965, 42.540, -76.695, 43.010),
    "steuben": (-77.750, 42.000, -76.965, 42.580),
    "suffolk": (-73.497, 40.600, -71.856, 41.290),
    "sullivan": (-75.146, 41.420, -74.370, 42.050),
    "tioga": (-76.540, 42.000, -76.060, 42.300),
    "tompkins": (-76.700, 42.265, -76.235, 42.630),
    "ulster": (-74.780, 41.580, -73.930, 42.180),
    "warren": (-74.220, 43.280, -73.430, 43.810),
    "washington": (-73.650, 42.855, -73.245, 43.810),
    "wayne": (-77.375, 43.010, -76.710, 43.370),
    "westchester": (-73.983, 40.880, -73.482, 41.367),
    "wyoming": (-78.465, 42.520, -77.955, 42.870),
    "yates": (-77.370, 42.500, -76.890, 42.770),
}

# Iteration order of this tuple is the tie-break order for equal areas.
COUNTY_REGIONS: tuple[CountyRegion, ...] = tuple(
    CountyRegion(name, bbox) for name, bbox in sorted(_COUNTY_BOXES.items())
)

_REGIONS_BY_NAME: Mapping[str, CountyRegion] = MappingProxyType(
    {region.name: region for region in COUNTY_REGIONS}
)


def title_case(name: str) -> str:
    """Title-case a lowercase locality name ("st. lawrence" -> "St. Lawrence")."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split())


def is_inside_new_york(lat: float, lon: float) -> bool:
    """True if the point lies in the outer NY box and outside every exclusion."""
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    min_lon, min_lat, max_lon, max_lat = NY_BOUNDS
    if not (min_lat <= lat <= max_lat and min_lon <= lon <= max_lon):
        return False
    return not any(ex.contains(lat, lon) for ex in EXCLUDED_REGIONS)


def candidate_regions(lat: float, lon: float) -> list[CountyRegion]:
    """Every county box containing the point, in table order."""
    return [region for region in COUNTY_REGIONS if region.contains(lat, lon)]


def pick_smallest_region(
    candidates: Iterable[CountyRegion],
) -> Optional[CountyRegion]:
    """
    Choose the most specific region among overlapping matches.

    The smallest area wins. Equal areas go to the candidate that comes
    first in the given order (``min`` keeps the first minimum).
    """
    return min(candidates, key=lambda region: region.area, default=None)


def classify(lat: float, lon: float) -> Optional[str]:
    """Return the lowercase county name for a point, or None if no box matches."""
    region = pick_smallest_region(candidate_regions(lat, lon))
    return region.name if region else None


def get_region(name: str) -> Optional[CountyRegion]:
    """Look up a county region by name (case and whitespace insensitive)."""
    key = name.strip().lower()
    if key.endswith(" county"):
        key = key[: -len(" county")].rstrip()
    return _REGIONS_BY_NAME.get(key)
