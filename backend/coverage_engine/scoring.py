"""
Coverage Scoring

Two interchangeable strategies turn a provider's reports into a
CoverageAnalysis: AIScorer asks the LLM for a structured assessment and
HeuristicScorer applies a fixed severity-weighted formula. FallbackScorer
composes them so a scoring call never fails.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from .config import Settings
from .errors import UpstreamScoringError
from .models import Coordinates, CoverageAnalysis, Recommendation, Report, recommendation_for
from .prompts import build_coverage_messages
from .providers import other_service_brands

logger = logging.getLogger(__name__)

SEVERITY_WEIGHT = {"high": 3, "medium": 2, "low": 1}
HEURISTIC_CONFIDENCE = 0.6


def reports_for_provider(
    provider: str, reports: Sequence[Report], service_type: Optional[str] = None
) -> List[Report]:
    """Reports whose provider matches, ignoring case, with substring matching in either direction.

    With a service_type, reports filed against a catalogued brand of the other
    service (Bell Fibe for Bell mobile, Bell for Bell Fibe broadband) are left out.
    """
    target = provider.strip().lower()
    excluded = other_service_brands(service_type) - {target}
    matches = []
    for report in reports:
        name = report.provider.strip().lower()
        if name in excluded:
            continue
        if target in name or name in target:
            matches.append(report)
    return matches


class AICoverageAssessment(BaseModel):
    """Structured response requested from the LLM."""
    coverage_score: int = Field(ge=0, le=100, description="Coverage score from 0 to 100")
    reliability_rating: int = Field(ge=1, le=5, description="Reliability rating from 1 to 5")
    recent_issues: int = Field(ge=0, description="Number of significant recent issues")
    issue_summary: str = Field(description="Brief description of the main problems")
    recommendation: Recommendation = Field(description="excellent, good, fair or poor")
    confidence_score: float = Field(ge=0, le=1, description="Confidence in this analysis from 0 to 1")
    last_major_outage: Optional[str] = Field(default=None, description="ISO-8601 timestamp of the last major outage")


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class Scorer(ABC):
    name = "scorer"

    @abstractmethod
    async def score(
        self, provider: str, service_type: str, reports: Sequence[Report], location: Coordinates
    ) -> CoverageAnalysis:
        ...


class HeuristicScorer(Scorer):
    """Deterministic severity-weighted scoring used when the AI strategy is unavailable."""
    name = "heuristic"

    def __init__(self, days_back: int = 30):
        self.days_back = days_back

    async def score(self, provider, service_type, reports, location):
        return self.score_sync(provider, service_type, reports)

    def score_sync(self, provider: str, service_type: str, reports: Sequence[Report]) -> CoverageAnalysis:
        provider_reports = reports_for_provider(provider, reports, service_type)
        total_severity = sum(SEVERITY_WEIGHT.get(r.severity, 1) for r in provider_reports)

        coverage_score = max(0, 100 - total_severity * 5)
        reliability_rating = max(1, 5 - total_severity // 5)

        return CoverageAnalysis(
            provider=provider,
            service_type=service_type,
            coverage_score=coverage_score,
            reliability_rating=reliability_rating,
            recent_issues=len(provider_reports),
            issue_summary=self._summarize(provider_reports),
            recommendation=recommendation_for(coverage_score),
            confidence_score=HEURISTIC_CONFIDENCE,
            last_major_outage=self._last_major_outage(provider_reports),
        )

    def _summarize(self, provider_reports: Sequence[Report]) -> str:
        period = f"last {self.days_back} days"
        if not provider_reports:
            return f"No reports in the {period}."
        issue_types = list(dict.fromkeys(r.issue_type for r in provider_reports))
        return f"{len(provider_reports)} reports in the {period}. Main issues: {', '.join(issue_types)}"

    @staticmethod
    def _last_major_outage(provider_reports: Sequence[Report]) -> Optional[datetime]:
        outages = [
            r.timestamp for r in provider_reports
            if r.issue_type == "network_outage" and r.severity == "high"
        ]
        return max(outages) if outages else None


class AIScorer(Scorer):
    """Scores a provider by asking the LLM for a schema-constrained assessment.

    `llm` is any runnable exposing `ainvoke(messages)` that returns an
    AICoverageAssessment (or a dict of its fields), typically
    ``ChatOpenAI(...).with_structured_output(AICoverageAssessment)``.
    Every failure is raised as UpstreamScoringError.
    """
    name = "ai"

    def __init__(self, llm, radius_km: float = 10.0, days_back: int = 30):
        self.llm = llm
        self.radius_km = radius_km
        self.days_back = days_back

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIScorer":
        llm = ChatOpenAI(
            model=settings.model,
            api_key=settings.openai_api_key,
            timeout=settings.ai_timeout_seconds,
            max_retries=0,
        )
        return cls(
            llm.with_structured_output(AICoverageAssessment),
            radius_km=settings.report_radius_km,
            days_back=settings.report_days_back,
        )

    async def score(self, provider, service_type, reports, location):
        provider_reports = reports_for_provider(provider, reports, service_type)
        system, user = build_coverage_messages(
            provider, service_type, provider_reports, location.lat, location.lng,
            radius_km=self.radius_km, days_back=self.days_back,
        )

        try:
            result = await self.llm.ainvoke([SystemMessage(content=system), HumanMessage(content=user)])
            if result is None:
                raise ValueError("empty response from model")
            assessment = (
                result if isinstance(result, AICoverageAssessment)
                else AICoverageAssessment.model_validate(result)
            )
        except Exception as e:
            raise UpstreamScoringError(provider, str(e)) from e

        logger.info("AI coverage analysis for %s: score=%d", provider, assessment.coverage_score)
        return CoverageAnalysis(
            provider=provider,
            service_type=service_type,
            coverage_score=assessment.coverage_score,
            reliability_rating=assessment.reliability_rating,
            recent_issues=assessment.recent_issues,
            issue_summary=assessment.issue_summary,
            recommendation=recommendation_for(assessment.coverage_score),
            confidence_score=assessment.confidence_score,
            last_major_outage=_parse_timestamp(assessment.last_major_outage),
        )


class FallbackScorer(Scorer):
    """Tries `primary` under a timeout and answers from `fallback` on any failure."""
    name = "fallback"

    def __init__(self, primary: Scorer, fallback: Scorer, timeout: float = 8.0):
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout

    async def score(self, provider, service_type, reports, location):
        try:
            return await asyncio.wait_for(
                self.primary.score(provider, service_type, reports, location),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s scoring for %s timed out after %.1fs, using %s",
                           self.primary.name, provider, self.timeout, self.fallback.name)
        except Exception as e:
            logger.warning("%s scoring failed for %s (%s), using %s",
                           self.primary.name, provider, e, self.fallback.name)
        return await self.fallback.score(provider, service_type, reports, location)


def build_scorer(settings: Settings) -> Scorer:
    heuristic = HeuristicScorer(days_back=settings.report_days_back)
    if not settings.ai_enabled:
        logger.info("OPENAI_API_KEY not set, scoring with the heuristic only")
        return heuristic
    return FallbackScorer(AIScorer.from_settings(settings), heuristic, timeout=settings.ai_timeout_seconds)
