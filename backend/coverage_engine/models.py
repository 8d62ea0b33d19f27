"""
Coverage Data Models

Reports are plain frozen dataclasses shared read-only between scorers.
Analysis results are pydantic models so they double as the HTTP response
schema and as the structured-output schema for the LLM.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

IssueType = Literal["network_outage", "slow_data", "no_signal", "dropped_calls", "billing_issues"]
Severity = Literal["low", "medium", "high"]
ServiceType = Literal["mobile", "broadband"]
Recommendation = Literal["excellent", "good", "fair", "poor"]

ISSUE_TYPES = ("network_outage", "slow_data", "no_signal", "dropped_calls", "billing_issues")
SEVERITIES = ("low", "medium", "high")
SERVICE_TYPES = ("mobile", "broadband")

DATA_PERIOD = "Last 30 days"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def as_tuple(self):
        return (self.lat, self.lng)


@dataclass(frozen=True)
class Report:
    """A single outage report near the query point."""
    id: str
    provider: str
    coordinates: Coordinates
    issue_type: str
    severity: str
    timestamp: datetime
    user_reports: int
    description: str
    location: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


def recommendation_for(score: int) -> Recommendation:
    """Map a 0-100 coverage score onto its recommendation bucket."""
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


class CoverageAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str = Field(description="Provider name as resolved for this request")
    service_type: ServiceType = Field(description="mobile or broadband")
    coverage_score: int = Field(ge=0, le=100, description="Estimated coverage quality, 0-100")
    reliability_rating: int = Field(ge=1, le=5, description="Star rating, 1-5")
    recent_issues: int = Field(ge=0, description="Number of reports considered")
    issue_summary: str = Field(description="Short description of the main problems")
    recommendation: Recommendation = Field(description="Bucket derived from coverage_score")
    confidence_score: float = Field(ge=0, le=1, description="How much to trust this analysis")
    last_major_outage: Optional[datetime] = Field(default=None, description="Most recent major outage, if any")


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    address: Optional[str] = None


class LocationCoverage(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: Location
    mobile_providers: List[CoverageAnalysis]
    broadband_providers: List[CoverageAnalysis]
    analysis_timestamp: datetime
    data_period: str = DATA_PERIOD


class SimilarReport(BaseModel):
    provider: Optional[str] = None
    description: str
    distance: Optional[str] = None
    timestamp: Optional[str] = None


class IssueAnalysis(BaseModel):
    issue_classification: str
    similar_issues_summary: str
    similar_reports: List[SimilarReport]
    device_pattern: Optional[str] = None
    recommendations: str
    confidence_score: float = Field(ge=0, le=1)
    affected_providers: List[str]
    issue_type: Literal["connectivity", "speed", "signal", "outage", "device", "other"]
