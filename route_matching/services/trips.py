"""Assemble per-day trips from stored GPS fixes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from date_utils import ensure_utc, utc_day_bounds, utc_day_key
from gps_points.services.repository import load_points_in_range

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from db.models import GpsPoint


@dataclass
class DayTrip:
    """All fixes recorded on one UTC calendar day, oldest first."""

    day: date
    points: list[GpsPoint] = field(default_factory=list)

    @property
    def polyline(self) -> list[list[float]]:
        return [[p.lat, p.lng] for p in self.points]

    @property
    def is_matchable(self) -> bool:
        return len(self.points) >= 2

    @property
    def duration_seconds(self) -> float:
        if len(self.points) < 2:
            return 0.0
        first = ensure_utc(self.points[0].recordedAt)
        last = ensure_utc(self.points[-1].recordedAt)
        return max(0.0, (last - first).total_seconds())


def group_points_by_day(points: Iterable[GpsPoint]) -> list[DayTrip]:
    """
    Bucket time-ordered fixes by the UTC day of ``recordedAt``.

    A drive that crosses UTC midnight ends up split across two days.
    """
    trips: dict[date, DayTrip] = {}
    for point in points:
        key = utc_day_key(point.recordedAt)
        trip = trips.get(key)
        if trip is None:
            trip = DayTrip(day=key)
            trips[key] = trip
        trip.points.append(point)
    return [trips[key] for key in sorted(trips)]


async def assemble_day_trip(day: date) -> DayTrip:
    """Load one day's fixes as a trip."""
    start, end = utc_day_bounds(day)
    points = await load_points_in_range(start, end)
    return DayTrip(day=day, points=points)
