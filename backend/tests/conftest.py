import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from coverage_engine.cache import CoverageCache
from coverage_engine.models import Coordinates, Report
from coverage_engine.reports import ReportSource
from coverage_engine.scoring import HeuristicScorer
from coverage_engine.service import CoverageAnalyzer

TORONTO = (43.6532, -79.3832)


def make_report(provider, severity="medium", issue_type="slow_data", days_ago=1, idx=0, lat=TORONTO[0], lng=TORONTO[1]):
    return Report(
        id=f"r{idx}",
        provider=provider,
        coordinates=Coordinates(lat=lat, lng=lng),
        issue_type=issue_type,
        severity=severity,
        timestamp=datetime(2026, 10, 1, tzinfo=timezone.utc) - timedelta(days=days_ago),
        user_reports=10,
        description=f"{provider} {issue_type.replace('_', ' ')} reported by users in the area",
    )


class StaticReportSource(ReportSource):
    """Returns the same reports every time and counts calls."""

    def __init__(self, reports=(), delay=0.0):
        self.reports = tuple(reports)
        self.delay = delay
        self.calls = 0

    async def fetch_reports(self, center, radius_km, days_back):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.reports


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeStructuredLLM:
    """Stands in for ChatOpenAI(...).with_structured_output(...)."""

    def __init__(self, response=None, error=None, delay=0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.messages = []

    async def ainvoke(self, messages):
        self.messages.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_reports():
    return [
        make_report("Rogers", "high", "network_outage", idx=1),
        make_report("Rogers Wireless", "low", "slow_data", idx=2),
        make_report("Bell", "medium", "dropped_calls", idx=3),
        make_report("Telus", "high", "no_signal", idx=4),
        make_report("Xfinity", "low", "billing_issues", idx=5),
    ]


@pytest.fixture
def report_source(sample_reports):
    return StaticReportSource(sample_reports)


@pytest.fixture
def analyzer(report_source, clock):
    return CoverageAnalyzer(
        report_source=report_source,
        scorer=HeuristicScorer(),
        cache=CoverageCache(clock=clock),
    )
