"""
Provider Resolution

Decides which providers to analyze for a location. Country detection is a
coarse, ordered bounding-box table: the first matching box wins.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from utils.location import BoundingBox

logger = logging.getLogger(__name__)

US_CARRIERS = ["Verizon", "AT&T", "T-Mobile"]
CANADA_CARRIERS = ["Rogers", "Bell", "Telus"]
DEFAULT_MVNO = "OXIO"
GLOBAL_DEFAULT_CARRIERS = US_CARRIERS + CANADA_CARRIERS
MOBILE_BRANDS = US_CARRIERS + CANADA_CARRIERS + [DEFAULT_MVNO, "Freedom Mobile"]

BROADBAND_BRANDS = [
    "Xfinity",
    "Spectrum",
    "AT&T Fiber",
    "Verizon Fios",
    "Rogers Ignite",
    "Bell Fibe",
    "Starlink",
]

AUTO = "auto"

# Canadian boxes come first: the contiguous US box overlaps southern Ontario and Quebec.
REGIONS: List[Tuple[str, BoundingBox]] = [
    ("US", BoundingBox(min_lat=51.0, max_lat=71.6, min_lng=-180.0, max_lng=-141.0)),  # Alaska
    ("CA", BoundingBox(min_lat=49.0, max_lat=83.2, min_lng=-141.0, max_lng=-52.5)),
    ("CA", BoundingBox(min_lat=43.5, max_lat=49.0, min_lng=-80.6, max_lng=-52.5)),
    ("CA", BoundingBox(min_lat=41.6, max_lat=46.5, min_lng=-83.0, max_lng=-80.6)),
    ("US", BoundingBox(min_lat=24.4, max_lat=49.4, min_lng=-125.0, max_lng=-66.9)),
    ("US", BoundingBox(min_lat=18.9, max_lat=22.3, min_lng=-160.3, max_lng=-154.8)),  # Hawaii
]


@dataclass
class ResolvedProviders:
    mobile: List[str] = field(default_factory=list)
    broadband: List[str] = field(default_factory=list)

    def all(self) -> List[str]:
        return self.mobile + self.broadband


def is_auto(provider: Optional[str]) -> bool:
    return provider is None or not provider.strip() or provider.strip().lower() == AUTO


def is_broadband_brand(provider: str) -> bool:
    name = provider.strip().lower()
    return any(name == brand.lower() for brand in BROADBAND_BRANDS)


def other_service_brands(service_type: Optional[str]) -> Set[str]:
    """Lower-cased catalogue names that belong to the other service type."""
    if service_type == "mobile":
        return {brand.lower() for brand in BROADBAND_BRANDS}
    if service_type == "broadband":
        return {brand.lower() for brand in MOBILE_BRANDS}
    return set()


def detect_region(lat: float, lng: float) -> Optional[str]:
    for region, box in REGIONS:
        if box.contains(lat, lng):
            return region
    return None


class ProviderResolver:
    """Maps a location (and an optional explicit provider) onto mobile/broadband provider lists."""

    def __init__(self, mvno: str = DEFAULT_MVNO, broadband_brands: Sequence[str] = BROADBAND_BRANDS):
        self.mvno = mvno
        self.broadband_brands = list(broadband_brands)

    def resolve(self, lat: float, lng: float, explicit_provider: Optional[str] = None) -> ResolvedProviders:
        if not is_auto(explicit_provider):
            name = explicit_provider.strip()
            if is_broadband_brand(name):
                return ResolvedProviders(mobile=[], broadband=[name])
            return ResolvedProviders(mobile=[name], broadband=[])

        region = detect_region(lat, lng)
        if region == "US":
            mobile = US_CARRIERS + [self.mvno]
        elif region == "CA":
            mobile = CANADA_CARRIERS + [self.mvno]
        else:
            mobile = GLOBAL_DEFAULT_CARRIERS + [self.mvno]

        logger.info("Resolved region %s for %s, %s: %d mobile providers", region or "global", lat, lng, len(mobile))
        return ResolvedProviders(mobile=mobile, broadband=list(self.broadband_brands))
