"""Centralized configuration for environment variables.

This module is the single source of truth for configuration used across the
application. Import constants from here rather than calling os.getenv directly
in multiple places.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r; using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        logger.warning("%s=%s is below %s; using %s", name, value, minimum, default)
        return default
    return value


def _env_float(name: str, default: float, *, positive: bool = True) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid number for %s=%r; using %s", name, raw, default)
        return default
    if positive and not value > 0:
        logger.warning("%s=%s must be positive; using %s", name, value, default)
        return default
    return value


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw not in choices:
        logger.warning("%s=%r is not one of %s; using %s", name, raw, choices, default)
        return default
    return raw


# --- Server ---
PORT: Final[int] = _env_int("PORT", 3000, minimum=1)
SERVICE_NAME: Final[str] = "GeoTracker"

# --- Map matching ---
# Max number of trip points used for scoring.
MATCH_SAMPLE_LIMIT: Final[int] = _env_int("MATCH_SAMPLE_LIMIT", 60, minimum=1)
# A sampled point closer than this to a route counts as "on route".
MATCH_DIST_THRESHOLD_M: Final[float] = _env_float("MATCH_DIST_THRESHOLD_M", 75.0)
# Average distances are clamped to this ceiling when normalizing the score.
MATCH_MAX_DIST_M: Final[float] = _env_float("MATCH_MAX_DIST_M", 400.0)
# A day's best candidate at or above this score is treated as that route.
SAME_ROUTE_THRESHOLD: Final[float] = 0.75
# Workers for route scoring; 1 scores serially.
MATCH_WORKERS: Final[int] = _env_int("MATCH_WORKERS", 1, minimum=1)
# "thread" shares the GIL with the scoring math, so it overlaps requests but
# gives no CPU speedup; "process" scores on separate interpreters.
MATCH_EXECUTOR: Final[str] = _env_choice(
    "MATCH_EXECUTOR",
    "thread",
    ("thread", "process"),
)
# Longest date range accepted by the sync and analysis scans.
MAX_ANALYSIS_DAYS: Final[int] = _env_int("MAX_ANALYSIS_DAYS", 366, minimum=1)


def get_cors_origins() -> list[str]:
    """Allowed CORS origins from CORS_ALLOWED_ORIGINS (comma separated)."""
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


__all__ = [
    "MATCH_DIST_THRESHOLD_M",
    "MATCH_EXECUTOR",
    "MATCH_MAX_DIST_M",
    "MATCH_SAMPLE_LIMIT",
    "MATCH_WORKERS",
    "MAX_ANALYSIS_DAYS",
    "PORT",
    "SAME_ROUTE_THRESHOLD",
    "SERVICE_NAME",
    "get_cors_origins",
]
