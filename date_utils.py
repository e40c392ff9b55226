"""
Centralized date and time utilities for the application.

All timestamps are handled as timezone-aware UTC datetimes. Trips are
bucketed by UTC calendar day, so the day helpers here define what "one
trip" means for matching and analysis.
"""

import logging
from datetime import UTC, date, datetime, time

from dateutil import parser

logger = logging.getLogger(__name__)


def get_current_utc_time() -> datetime:
    """Return the current time as a timezone-aware datetime object in UTC."""
    return datetime.now(UTC)


def parse_timestamp(ts: str | datetime) -> datetime | None:
    """
    Parse an ISO 8601 string (or datetime) into a UTC-aware datetime.

    Naive values are assumed to be UTC. Returns None if parsing fails.
    """
    if not ts:
        logger.debug("Received empty timestamp; returning None.")
        return None

    if isinstance(ts, datetime):
        return ensure_utc(ts)

    try:
        parsed_time = parser.isoparse(ts)
    except (ValueError, TypeError) as e:
        logger.warning("Failed to parse timestamp '%s': %s", ts, e)
        return None
    return ensure_utc(parsed_time)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Return the datetime as an explicit UTC-aware value."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def normalize_calendar_date(value: str | datetime | date | None) -> date | None:
    """Normalize a date-like input (``YYYY-MM-DD``, datetime or date) to a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            parsed = parse_timestamp(value)
            if parsed:
                return parsed.date()
            logger.warning("Unable to interpret value '%s' as a date", value)
            return None

    logger.warning("Unsupported date input type '%s'", type(value))
    return None


def utc_day_key(dt: datetime) -> date:
    """UTC calendar day a timestamp falls in."""
    return ensure_utc(dt).date()


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    """First and last representable instants of ``day`` in UTC, both inclusive."""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    end = datetime.combine(day, time.max, tzinfo=UTC)
    return start, end


def utc_range_bounds(start_day: date, end_day: date) -> tuple[datetime, datetime]:
    """Inclusive UTC instants covering every day from ``start_day`` to ``end_day``."""
    start, _ = utc_day_bounds(start_day)
    _, end = utc_day_bounds(end_day)
    return start, end
