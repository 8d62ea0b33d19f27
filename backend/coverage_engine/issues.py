"""
Issue Analysis

Matches a free-text issue description against nearby reports and asks the
LLM for a classification, falling back to keyword rules when it can't.
"""

import asyncio
import logging
import re
from typing import List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from utils.location import calculate_distance, format_distance

from .config import Settings
from .errors import ValidationError
from .models import Coordinates, IssueAnalysis, Report, SimilarReport
from .prompts import build_issue_messages
from .reports import ReportSource
from .service import validate_coordinates

logger = logging.getLogger(__name__)

ISSUE_DAYS_BACK = 7
MAX_SIMILAR_REPORTS = 4
FALLBACK_CONFIDENCE = 0.6

# (keywords, issue_type, matching report issue types), first match wins
KEYWORD_RULES = [
    (("no service", "signal", "no bars"), "signal", ("no_signal",)),
    (("slow", "speed", "lag", "buffer"), "speed", ("slow_data",)),
    (("outage", "down", "not working"), "outage", ("network_outage",)),
    (("call", "drop"), "connectivity", ("dropped_calls",)),
    (("5g", "4g", "lte", "network", "connect"), "connectivity", ("network_outage", "no_signal")),
    (("bill", "charge"), "other", ("billing_issues",)),
]

RECOMMENDATIONS = {
    "signal": "Move closer to a window or outdoors, toggle airplane mode and check for carrier settings updates.",
    "speed": "Restart your device, check data usage limits and run a speed test at a different time of day.",
    "outage": "Check your provider's status page and wait for service restoration before troubleshooting your device.",
    "connectivity": "Toggle airplane mode, reset network settings and confirm your plan supports the network type.",
    "device": "Update your device software and test with another SIM or device to isolate the fault.",
    "other": "Try restarting your device and checking for carrier updates.",
}


class AIIssueAssessment(BaseModel):
    issue_classification: str = Field(description="Brief technical classification of the problem")
    device_pattern: Optional[str] = Field(default=None, description="Whether this looks device-specific")
    affected_providers: List[str] = Field(description="Providers likely affected")
    issue_type: str = Field(description="connectivity, speed, signal, outage, device or other")
    recommendations: str = Field(description="Technical recommendations for resolving the issue")
    confidence_score: float = Field(ge=0, le=1)


def extract_device_info(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "Unknown Device"

    if "iPhone" in user_agent:
        match = re.search(r"iPhone OS (\d+)_(\d+)", user_agent)
        os_version = f"iOS {match.group(1)}.{match.group(2)}" if match else "iOS"
        return f"iPhone ({os_version})"

    if "Android" in user_agent:
        match = re.search(r"Android (\d+\.?\d*)", user_agent)
        os_version = f"Android {match.group(1)}" if match else "Android"
        if "SM-S" in user_agent:
            return f"Samsung Galaxy ({os_version})"
        if "Pixel" in user_agent:
            return f"Google Pixel ({os_version})"
        return f"Android Device ({os_version})"

    if "Windows" in user_agent:
        return "Windows PC"
    if "Macintosh" in user_agent:
        return "Mac"
    if "Linux" in user_agent:
        return "Linux PC"
    return "Unknown Device"


def classify_issue(description: str):
    """Return (issue_type, report issue types) for a description by keyword."""
    text = description.lower()
    for keywords, issue_type, report_types in KEYWORD_RULES:
        if any(k in text for k in keywords):
            return issue_type, report_types
    return "connectivity", ()


def find_similar_reports(center: Coordinates, reports: Sequence[Report], report_types) -> List[SimilarReport]:
    """Closest reports whose issue type matches, nearest first."""
    matches = [r for r in reports if not report_types or r.issue_type in report_types]
    matches.sort(key=lambda r: calculate_distance(center.as_tuple(), r.coordinates.as_tuple()))
    return [
        SimilarReport(
            provider=r.provider,
            description=r.description,
            distance=format_distance(calculate_distance(center.as_tuple(), r.coordinates.as_tuple())),
            timestamp=r.timestamp.isoformat(),
        )
        for r in matches[:MAX_SIMILAR_REPORTS]
    ]


class IssueAnalyzer:
    def __init__(self, report_source: ReportSource, llm=None, radius_km: float = 10.0, timeout: float = 8.0):
        self.report_source = report_source
        self.llm = llm
        self.radius_km = radius_km
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, report_source: ReportSource) -> "IssueAnalyzer":
        llm = None
        if settings.ai_enabled:
            llm = ChatOpenAI(
                model=settings.model,
                api_key=settings.openai_api_key,
                timeout=settings.ai_timeout_seconds,
                max_retries=0,
            ).with_structured_output(AIIssueAssessment)
        return cls(report_source, llm=llm, radius_km=settings.report_radius_km, timeout=settings.ai_timeout_seconds)

    async def analyze(
        self,
        lat: float,
        lng: float,
        issue_description: str,
        address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssueAnalysis:
        validate_coordinates(lat, lng)
        if not issue_description or not issue_description.strip():
            raise ValidationError("Issue description is required")

        center = Coordinates(lat=lat, lng=lng)
        device = extract_device_info(user_agent)
        reports = await self.report_source.fetch_reports(center, self.radius_km, ISSUE_DAYS_BACK)

        issue_type, report_types = classify_issue(issue_description)
        similar = find_similar_reports(center, reports, report_types)
        summary = self._summarize(similar)

        assessment = await self._assess(issue_description, device, reports, lat, lng, address)
        if assessment is None:
            return IssueAnalysis(
                issue_classification=f"{issue_type.capitalize()} issue reported on {device}",
                similar_issues_summary=summary,
                similar_reports=similar,
                device_pattern=None,
                recommendations=RECOMMENDATIONS[issue_type],
                confidence_score=FALLBACK_CONFIDENCE,
                affected_providers=sorted({s.provider for s in similar if s.provider}) or ["Multiple Providers"],
                issue_type=issue_type,
            )

        ai_type = assessment.issue_type if assessment.issue_type in RECOMMENDATIONS else issue_type
        return IssueAnalysis(
            issue_classification=assessment.issue_classification,
            similar_issues_summary=summary,
            similar_reports=similar,
            device_pattern=assessment.device_pattern,
            recommendations=assessment.recommendations,
            confidence_score=assessment.confidence_score,
            affected_providers=assessment.affected_providers or ["Multiple Providers"],
            issue_type=ai_type,
        )

    async def _assess(self, description, device, reports, lat, lng, address) -> Optional[AIIssueAssessment]:
        if self.llm is None:
            return None
        system, user = build_issue_messages(description, device, reports, lat, lng, address, ISSUE_DAYS_BACK)
        try:
            result = await asyncio.wait_for(
                self.llm.ainvoke([SystemMessage(content=system), HumanMessage(content=user)]),
                timeout=self.timeout,
            )
            if isinstance(result, AIIssueAssessment):
                return result
            return AIIssueAssessment.model_validate(result)
        except Exception as e:
            logger.warning("AI issue analysis failed, using keyword fallback: %s", e)
            return None

    @staticmethod
    def _summarize(similar: Sequence[SimilarReport]) -> str:
        if not similar:
            return "No similar issues reported in your immediate area recently."
        return (
            f"Found {len(similar)} similar reports in your area within the last {ISSUE_DAYS_BACK} days. "
            f"Most common issue: {similar[0].description.lower()}."
        )
