"""
Prompt templates for AI-assisted coverage and issue analysis.
"""

import json
from typing import Optional, Sequence

from .models import Report

SERVICE_CONTEXT = {
    "mobile": (
        "This is a MOBILE (cellular) network. Relevant failure modes: no signal, dropped calls, "
        "slow mobile data, 4G/5G outages and tower maintenance."
    ),
    "broadband": (
        "This is a BROADBAND (fixed internet) service. Relevant failure modes: cable, fiber or DSL "
        "outages, slow download speeds, modem and line faults and regional backbone incidents."
    ),
}

COVERAGE_SYSTEM_PROMPT = """You are an expert telecommunications network analyst specializing in coverage assessment and network reliability evaluation.

Your task is to analyze crowd-sourced outage reports for {provider} in the specified geographic area and provide a coverage analysis.

{service_context}

Analysis Guidelines:
1. Coverage Score (0-100): Based on frequency and severity of outages
2. Reliability Rating (1-5): Overall network dependability
3. Recent Issues Count: Number of significant problems in the area
4. Issue Summary: Brief description of main problems
5. Recommendation: excellent (90-100), good (70-89), fair (50-69), poor (<50)
6. Confidence Score (0-1): How reliable this analysis is based on data quality
7. Last Major Outage: ISO-8601 timestamp of the most recent serious outage, if any

Consider these factors:
- Frequency of reports (more reports = lower score)
- Severity of issues (network outages worse than billing)
- Geographic concentration (issues closer to target location are more relevant)
- Recent trends (recent issues weighted more heavily)
- User report volume (more users reporting = more significant issue)"""

COVERAGE_USER_TEMPLATE = """Analyze {provider} {service_type} coverage based on these outage reports near location {lat}, {lng}:

Reports Data:
{reports_json}

Total reports in area: {report_count}
Analysis period: Last {days_back} days
Geographic radius: {radius_km:g}km

Provide the coverage analysis in the requested structured format."""

ISSUE_SYSTEM_PROMPT = """You are a network infrastructure expert analyzing a user-reported network issue.

Classify the issue type (connectivity, speed, signal, outage, device, other), identify the providers
most likely affected, determine whether the problem looks device-specific, area-specific or
provider-specific, and give practical technical recommendations for resolving it."""

ISSUE_USER_TEMPLATE = """USER REPORT:
Location: {location} ({lat}, {lng})
Device: {device}
Issue Description: "{description}"

Nearby reports in the last {days_back} days:
{reports_json}"""


def build_coverage_messages(
    provider: str,
    service_type: str,
    reports: Sequence[Report],
    lat: float,
    lng: float,
    radius_km: float = 10.0,
    days_back: int = 30,
):
    """Return (system, user) prompt text for one provider's coverage analysis."""
    system = COVERAGE_SYSTEM_PROMPT.format(
        provider=provider,
        service_context=SERVICE_CONTEXT[service_type],
    )
    user = COVERAGE_USER_TEMPLATE.format(
        provider=provider,
        service_type=service_type,
        lat=lat,
        lng=lng,
        reports_json=json.dumps([r.to_dict() for r in reports], indent=2),
        report_count=len(reports),
        days_back=days_back,
        radius_km=radius_km,
    )
    return system, user


def build_issue_messages(
    description: str,
    device: str,
    reports: Sequence[Report],
    lat: float,
    lng: float,
    address: Optional[str] = None,
    days_back: int = 7,
):
    user = ISSUE_USER_TEMPLATE.format(
        location=address or f"{lat:.4f}, {lng:.4f}",
        lat=lat,
        lng=lng,
        device=device,
        description=description,
        days_back=days_back,
        reports_json=json.dumps([r.to_dict() for r in reports], indent=2),
    )
    return ISSUE_SYSTEM_PROMPT, user
