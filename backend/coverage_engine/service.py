"""
Coverage Analysis Service

Orchestrates provider resolution, report fetching, concurrent per-provider
scoring and caching into a single LocationCoverage result.
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Callable, List, Optional

from utils.location import get_location_name

from .cache import CoverageCache, make_key
from .config import Settings
from .errors import CoverageAnalysisError, ValidationError
from .models import SERVICE_TYPES, Coordinates, CoverageAnalysis, Location, LocationCoverage
from .providers import ProviderResolver
from .reports import ReportSource, SimulatedReportSource
from .scoring import Scorer, build_scorer

logger = logging.getLogger(__name__)


def validate_coordinates(lat, lng) -> None:
    """Raise ValidationError unless lat/lng are finite numbers within range."""
    for name, value in (("lat", lat), ("lng", lng)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(f"{name} must be a number")
    if not -90 <= lat <= 90:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180 <= lng <= 180:
        raise ValidationError("Longitude must be between -180 and 180")


def _by_score(analyses: List[CoverageAnalysis]) -> List[CoverageAnalysis]:
    return sorted(analyses, key=lambda a: a.coverage_score, reverse=True)


class CoverageAnalyzer:
    """Entry point for location coverage analysis."""

    def __init__(
        self,
        report_source: ReportSource,
        scorer: Scorer,
        resolver: Optional[ProviderResolver] = None,
        cache: Optional[CoverageCache] = None,
        radius_km: float = 10.0,
        days_back: int = 30,
        request_timeout: float = 20.0,
        geocoder: Optional[Callable[[float, float], Optional[str]]] = None,
    ):
        self.report_source = report_source
        self.scorer = scorer
        self.resolver = resolver if resolver is not None else ProviderResolver()
        self.cache = cache if cache is not None else CoverageCache()
        self.radius_km = radius_km
        self.days_back = days_back
        self.request_timeout = request_timeout
        self.geocoder = geocoder

    @classmethod
    def from_settings(cls, settings: Settings) -> "CoverageAnalyzer":
        return cls(
            report_source=SimulatedReportSource(),
            scorer=build_scorer(settings),
            resolver=ProviderResolver(mvno=settings.mvno_name),
            cache=CoverageCache(ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries),
            radius_km=settings.report_radius_km,
            days_back=settings.report_days_back,
            request_timeout=settings.request_timeout_seconds,
            geocoder=get_location_name,
        )

    async def analyze(
        self, lat: float, lng: float, address: Optional[str] = None, provider: Optional[str] = None
    ) -> LocationCoverage:
        validate_coordinates(lat, lng)

        key = make_key(lat, lng, provider)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for %s", key)
            return cached

        async with self.cache.key_lock(key):
            # Another request may have filled the entry while we waited
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Cache hit for %s after waiting", key)
                return cached

            logger.info("Cache miss for %s, analyzing coverage", key)
            try:
                result = await asyncio.wait_for(
                    self._compute(lat, lng, address, provider),
                    timeout=self.request_timeout,
                )
            except asyncio.TimeoutError as e:
                raise CoverageAnalysisError(
                    f"coverage analysis for {lat}, {lng} exceeded {self.request_timeout}s"
                ) from e

            self.cache.set(key, result)
            return result

    async def _compute(self, lat, lng, address, provider) -> LocationCoverage:
        center = Coordinates(lat=lat, lng=lng)
        resolved = self.resolver.resolve(lat, lng, provider)
        reports = await self.report_source.fetch_reports(center, self.radius_km, self.days_back)

        if address is None and self.geocoder is not None:
            address = await asyncio.to_thread(self.geocoder, lat, lng)

        mobile, broadband = await asyncio.gather(
            asyncio.gather(*(self.scorer.score(p, "mobile", reports, center) for p in resolved.mobile)),
            asyncio.gather(*(self.scorer.score(p, "broadband", reports, center) for p in resolved.broadband)),
        )

        return LocationCoverage(
            location=Location(lat=lat, lng=lng, address=address),
            mobile_providers=_by_score(list(mobile)),
            broadband_providers=_by_score(list(broadband)),
            analysis_timestamp=datetime.now(timezone.utc),
            data_period=f"Last {self.days_back} days",
        )

    async def analyze_provider(self, provider: str, service_type: str, lat: float, lng: float) -> CoverageAnalysis:
        """Score a single provider at a location. Not cached."""
        validate_coordinates(lat, lng)
        if not provider or not provider.strip():
            raise ValidationError("Provider name is required")
        if service_type not in SERVICE_TYPES:
            raise ValidationError("Service type must be either 'mobile' or 'broadband'")

        center = Coordinates(lat=lat, lng=lng)
        reports = await self.report_source.fetch_reports(center, self.radius_km, self.days_back)
        return await self.scorer.score(provider.strip(), service_type, reports, center)
