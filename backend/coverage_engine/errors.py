"""
Coverage Engine Errors

Only ValidationError and CoverageAnalysisError ever reach the HTTP layer.
UpstreamScoringError is absorbed by FallbackScorer and CacheReadError by
CoverageCache.
"""


class CoverageEngineError(Exception):
    """Base class for coverage engine failures."""


class ValidationError(CoverageEngineError):
    """Request input is out of range or not numeric."""


class UpstreamScoringError(CoverageEngineError):
    """The AI scoring call failed, timed out or returned an unusable response."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class CacheReadError(CoverageEngineError):
    """A cache entry did not have the expected shape."""


class CoverageAnalysisError(CoverageEngineError):
    """The analysis pipeline could not produce a result."""
