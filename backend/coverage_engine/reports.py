"""
Report Sources

A ReportSource supplies outage reports near a point. SimulatedReportSource
stands in for a real crowd-report feed until one exists.
"""

import logging
import random
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, Tuple

from utils.location import calculate_distance, destination_point

from .models import ISSUE_TYPES, SEVERITIES, Coordinates, Report
from .providers import BROADBAND_BRANDS, MOBILE_BRANDS

logger = logging.getLogger(__name__)

SIMULATED_PROVIDERS = MOBILE_BRANDS + BROADBAND_BRANDS

MIN_REPORTS = 5
MAX_REPORTS = 25


class ReportSource(ABC):
    """Anything that can return the reports within radius_km of center over the last days_back days."""

    @abstractmethod
    async def fetch_reports(self, center: Coordinates, radius_km: float, days_back: int) -> Tuple[Report, ...]:
        ...


class SimulatedReportSource(ReportSource):
    """Generates a random batch of plausible reports around the query point."""

    def __init__(
        self,
        seed: Optional[int] = None,
        providers: Sequence[str] = SIMULATED_PROVIDERS,
        rng: Optional[random.Random] = None,
    ):
        self.rng = rng or random.Random(seed)
        self.providers = list(providers)

    async def fetch_reports(self, center: Coordinates, radius_km: float, days_back: int) -> Tuple[Report, ...]:
        count = self.rng.randint(MIN_REPORTS, MAX_REPORTS)
        now = datetime.now(timezone.utc)
        reports = tuple(self._make_report(center, radius_km, days_back, now) for _ in range(count))
        logger.info("Simulated %d reports within %.1fkm of %s, %s", len(reports), radius_km, center.lat, center.lng)
        return reports

    def _make_report(self, center: Coordinates, radius_km: float, days_back: int, now: datetime) -> Report:
        provider = self.rng.choice(self.providers)
        issue_type = self.rng.choice(ISSUE_TYPES)
        days_ago = self.rng.randrange(days_back) if days_back > 0 else 0

        return Report(
            id=f"report_{uuid.UUID(int=self.rng.getrandbits(128)).hex[:12]}",
            provider=provider,
            coordinates=self._point_within(center, radius_km),
            issue_type=issue_type,
            severity=self.rng.choice(SEVERITIES),
            timestamp=now - timedelta(days=days_ago),
            user_reports=self.rng.randint(1, 100),
            description=f"{provider} {issue_type.replace('_', ' ')} reported by users in the area",
            location=f"Near {center.lat:.4f}, {center.lng:.4f}",
        )

    def _point_within(self, center: Coordinates, radius_km: float) -> Coordinates:
        origin = center.as_tuple()
        if radius_km <= 0:
            return center
        while True:
            bearing = self.rng.uniform(0, 360)
            distance = self.rng.uniform(0, radius_km)
            lat, lng = destination_point(origin, bearing, distance)
            # Redraw the rare sample that floating point pushes past the radius
            if calculate_distance(origin, (lat, lng)) <= radius_km:
                return Coordinates(lat=lat, lng=lng)
