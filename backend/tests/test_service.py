"""
End-to-end tests for CoverageAnalyzer
"""
import asyncio

import pytest

from conftest import TORONTO, StaticReportSource
from coverage_engine.cache import CoverageCache, make_key
from coverage_engine.config import Settings
from coverage_engine.errors import CoverageAnalysisError, ValidationError
from coverage_engine.providers import BROADBAND_BRANDS, CANADA_CARRIERS, ProviderResolver
from coverage_engine.scoring import AICoverageAssessment, AIScorer, FallbackScorer, HeuristicScorer, Scorer
from coverage_engine.service import CoverageAnalyzer, validate_coordinates


def scores(analyses):
    return [a.coverage_score for a in analyses]


async def test_toronto_auto_analysis(analyzer):
    result = await analyzer.analyze(*TORONTO)

    assert [a.provider for a in result.mobile_providers] != []
    assert {a.provider for a in result.mobile_providers} == set(CANADA_CARRIERS + ["OXIO"])
    assert {a.provider for a in result.broadband_providers} == set(BROADBAND_BRANDS)
    assert scores(result.mobile_providers) == sorted(scores(result.mobile_providers), reverse=True)
    assert scores(result.broadband_providers) == sorted(scores(result.broadband_providers), reverse=True)
    assert all(a.service_type == "mobile" for a in result.mobile_providers)
    assert all(a.service_type == "broadband" for a in result.broadband_providers)
    assert result.data_period == "Last 30 days"
    assert result.location.lat == TORONTO[0]


async def test_provider_lists_partition_resolved_set(analyzer):
    result = await analyzer.analyze(40.7128, -74.0060)
    resolved = ProviderResolver().resolve(40.7128, -74.0060)

    mobile = {a.provider for a in result.mobile_providers}
    broadband = {a.provider for a in result.broadband_providers}
    assert not mobile & broadband
    assert mobile | broadband == set(resolved.all())


async def test_repeat_within_ttl_is_served_from_cache(analyzer, report_source, clock):
    first = await analyzer.analyze(*TORONTO)
    clock.advance(5 * 60)
    second = await analyzer.analyze(*TORONTO)

    assert second.analysis_timestamp == first.analysis_timestamp
    assert second is first
    assert report_source.calls == 1


async def test_nearby_queries_share_cache_entry(analyzer, report_source):
    await analyzer.analyze(43.6532, -79.3832)
    await analyzer.analyze(43.6534, -79.3829)
    assert report_source.calls == 1


async def test_request_after_ttl_recomputes(analyzer, report_source, clock):
    first = await analyzer.analyze(*TORONTO)
    clock.advance(31 * 60)
    second = await analyzer.analyze(*TORONTO)

    assert second is not first
    assert analyzer.cache.get(make_key(*TORONTO)) is second
    assert report_source.calls == 2


def test_injected_cache_is_used_even_when_empty(report_source, clock):
    cache = CoverageCache(clock=clock)
    analyzer = CoverageAnalyzer(report_source, HeuristicScorer(), cache=cache)
    assert len(cache) == 0
    assert analyzer.cache is cache


def test_from_settings_keeps_cache_limits():
    analyzer = CoverageAnalyzer.from_settings(Settings(cache_ttl_seconds=60, cache_max_entries=5))

    assert analyzer.cache.ttl_seconds == 60
    assert analyzer.cache.max_entries == 5


async def test_auto_spellings_share_cache_entry(analyzer, report_source):
    first = await analyzer.analyze(*TORONTO, provider="auto")
    second = await analyzer.analyze(*TORONTO, provider="AUTO")

    assert second is first
    assert report_source.calls == 1


async def test_explicit_provider(analyzer):
    result = await analyzer.analyze(*TORONTO, provider="Rogers")

    assert [a.provider for a in result.mobile_providers] == ["Rogers"]
    assert result.broadband_providers == []


async def test_explicit_provider_has_its_own_cache_entry(analyzer):
    await analyzer.analyze(*TORONTO)
    await analyzer.analyze(*TORONTO, provider="Rogers")

    assert make_key(*TORONTO) in analyzer.cache
    assert make_key(*TORONTO, "Rogers") in analyzer.cache


@pytest.mark.parametrize("lat,lng", [
    (999, -79.3832),
    (43.6, 181),
    (-90.1, 0),
    (float("nan"), 0),
    (0, float("inf")),
    ("43.6", -79.3),
    (None, -79.3),
])
async def test_invalid_coordinates_fail_fast(analyzer, report_source, lat, lng):
    with pytest.raises(ValidationError):
        await analyzer.analyze(lat, lng)

    assert len(analyzer.cache) == 0
    assert report_source.calls == 0


def test_boundary_coordinates_are_valid():
    validate_coordinates(90, 180)
    validate_coordinates(-90, -180)


async def test_ai_failure_for_one_provider_only(sample_reports, clock):
    class PerProviderLLM:
        async def ainvoke(self, messages):
            if "Bell" in messages[0].content:
                raise TimeoutError("upstream timed out")
            return AICoverageAssessment(
                coverage_score=88, reliability_rating=4, recent_issues=1,
                issue_summary="Stable", recommendation="good", confidence_score=0.92,
            )

    analyzer = CoverageAnalyzer(
        report_source=StaticReportSource(sample_reports),
        scorer=FallbackScorer(AIScorer(PerProviderLLM()), HeuristicScorer()),
        cache=CoverageCache(clock=clock),
    )
    result = await analyzer.analyze(*TORONTO)

    by_name = {a.provider: a for a in result.mobile_providers}
    assert by_name["Bell"].confidence_score == 0.6
    assert by_name["Rogers"].confidence_score == 0.92
    assert by_name["Telus"].confidence_score == 0.92


async def test_reports_are_fetched_once_and_not_cross_contaminated(analyzer, report_source):
    result = await analyzer.analyze(*TORONTO)

    assert report_source.calls == 1
    by_name = {a.provider: a for a in result.mobile_providers + result.broadband_providers}
    assert by_name["Bell"].issue_summary.endswith("Main issues: dropped_calls")
    assert by_name["Telus"].issue_summary.endswith("Main issues: no_signal")
    assert by_name["Rogers"].issue_summary.endswith("Main issues: network_outage, slow_data")
    assert by_name["OXIO"].recent_issues == 0


async def test_scorers_run_concurrently(sample_reports, clock):
    class SlowScorer(Scorer):
        def __init__(self):
            self.active = 0
            self.peak = 0

        async def score(self, provider, service_type, reports, location):
            self.active += 1
            self.peak = max(self.peak, self.active)
            await asyncio.sleep(0.05)
            self.active -= 1
            return HeuristicScorer().score_sync(provider, service_type, reports)

    scorer = SlowScorer()
    analyzer = CoverageAnalyzer(StaticReportSource(sample_reports), scorer, cache=CoverageCache(clock=clock))
    await analyzer.analyze(*TORONTO)

    assert scorer.peak == len(CANADA_CARRIERS) + 1 + len(BROADBAND_BRANDS)


async def test_concurrent_misses_are_coalesced(sample_reports, clock):
    source = StaticReportSource(sample_reports, delay=0.05)
    analyzer = CoverageAnalyzer(source, HeuristicScorer(), cache=CoverageCache(clock=clock))

    results = await asyncio.gather(*(analyzer.analyze(*TORONTO) for _ in range(5)))

    assert source.calls == 1
    assert all(r is results[0] for r in results)


async def test_overall_deadline(sample_reports, clock):
    source = StaticReportSource(sample_reports, delay=1)
    analyzer = CoverageAnalyzer(source, HeuristicScorer(), cache=CoverageCache(clock=clock), request_timeout=0.05)

    with pytest.raises(CoverageAnalysisError):
        await analyzer.analyze(*TORONTO)
    assert len(analyzer.cache) == 0
    assert analyzer.cache._key_locks == {}


async def test_failed_requests_leave_no_key_locks(sample_reports, clock):
    source = StaticReportSource(sample_reports, delay=1)
    analyzer = CoverageAnalyzer(source, HeuristicScorer(), cache=CoverageCache(clock=clock), request_timeout=0.01)

    for i in range(20):
        with pytest.raises(CoverageAnalysisError):
            await analyzer.analyze(43.0 + i / 100, -79.0)

    assert len(analyzer.cache) == 0
    assert analyzer.cache._key_locks == {}


async def test_missing_address_is_geocoded_when_available(report_source, clock):
    analyzer = CoverageAnalyzer(
        report_source, HeuristicScorer(), cache=CoverageCache(clock=clock),
        geocoder=lambda lat, lng: "Toronto, Ontario, Canada",
    )
    result = await analyzer.analyze(*TORONTO)
    assert result.location.address == "Toronto, Ontario, Canada"

    explicit = await analyzer.analyze(40.7128, -74.0060, address="New York, NY")
    assert explicit.location.address == "New York, NY"


async def test_analyze_provider(analyzer, report_source):
    analysis = await analyzer.analyze_provider("Rogers", "mobile", *TORONTO)

    assert analysis.provider == "Rogers"
    assert analysis.recent_issues == 2
    assert len(analyzer.cache) == 0


@pytest.mark.parametrize("provider,service_type", [("Rogers", "satellite"), ("", "mobile")])
async def test_analyze_provider_validation(analyzer, provider, service_type):
    with pytest.raises(ValidationError):
        await analyzer.analyze_provider(provider, service_type, *TORONTO)


async def test_data_period_follows_days_back(report_source, clock):
    analyzer = CoverageAnalyzer(
        report_source, HeuristicScorer(days_back=7), cache=CoverageCache(clock=clock), days_back=7,
    )
    result = await analyzer.analyze(*TORONTO)

    assert result.data_period == "Last 7 days"
