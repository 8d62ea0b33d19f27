"""
Engine Configuration

Reads settings from the environment (and a local .env file) once at startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv(override=True)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the coverage engine."""
    openai_api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    ai_timeout_seconds: float = 8.0
    request_timeout_seconds: float = 20.0
    cache_ttl_seconds: float = 30 * 60
    cache_max_entries: int = 1024
    report_radius_km: float = 10.0
    report_days_back: int = 30
    mvno_name: str = "OXIO"
    log_level: str = "INFO"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)


def load_settings() -> Settings:
    """Build Settings from environment variables, falling back to defaults."""
    defaults = Settings()
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        model=os.getenv("COVERAGE_MODEL", defaults.model),
        ai_timeout_seconds=_env_float("AI_TIMEOUT_SECONDS", defaults.ai_timeout_seconds),
        request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", defaults.request_timeout_seconds),
        cache_ttl_seconds=_env_float("COVERAGE_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds),
        cache_max_entries=_env_int("COVERAGE_CACHE_MAX_ENTRIES", defaults.cache_max_entries),
        report_radius_km=_env_float("REPORT_RADIUS_KM", defaults.report_radius_km),
        report_days_back=_env_int("REPORT_DAYS_BACK", defaults.report_days_back),
        mvno_name=os.getenv("MVNO_NAME", "").strip() or defaults.mvno_name,
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )
