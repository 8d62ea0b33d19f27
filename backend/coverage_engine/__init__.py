"""
Coverage Analysis Engine

Ranks mobile and broadband providers near a point by aggregating outage
reports within a radius and time window.
"""

from .cache import CoverageCache, make_key
from .config import Settings, load_settings
from .issues import IssueAnalyzer
from .models import CoverageAnalysis, LocationCoverage, Report
from .service import CoverageAnalyzer

__all__ = [
    'CoverageAnalyzer',
    'CoverageAnalysis',
    'CoverageCache',
    'IssueAnalyzer',
    'LocationCoverage',
    'Report',
    'Settings',
    'load_settings',
    'make_key',
]
