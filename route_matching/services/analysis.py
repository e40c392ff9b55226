"""Batch scans that run the matcher over every day of a date range.

``sync_candidates`` lists the days that no stored route explains well
enough, so they can be reviewed or turned into new routes.
``route_analysis`` counts, per route, the days it explains and how long
those trips took.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from config import MAX_ANALYSIS_DAYS, SAME_ROUTE_THRESHOLD
from core.exceptions import ValidationError
from date_utils import utc_range_bounds
from gps_points.services.repository import load_points_in_range
from route_matching.models import (
    MatchCandidate,
    MatchOptions,
    RouteAnalysisEntry,
    SyncCandidate,
)
from route_matching.services.matcher import check_deadline, match_trip_to_routes
from route_matching.services.store import RouteStore
from route_matching.services.trips import DayTrip, group_points_by_day

if TYPE_CHECKING:
    from concurrent.futures import Executor
    from datetime import date

    from route_matching.services.matcher import RouteGeometry

logger = logging.getLogger(__name__)


def validate_date_range(start_day: date, end_day: date) -> None:
    if start_day > end_day:
        msg = "start must not be after end"
        raise ValidationError(msg)
    span = (end_day - start_day).days + 1
    if span > MAX_ANALYSIS_DAYS:
        msg = f"Date range spans {span} days; the maximum is {MAX_ANALYSIS_DAYS}"
        raise ValidationError(msg)


def match_day_trips(
    trips: list[DayTrip],
    routes: list[RouteGeometry],
    options: MatchOptions | None = None,
    executor: Executor | None = None,
    deadline: float | None = None,
) -> list[MatchCandidate | None]:
    """
    Best candidate for each trip, in the same order as ``trips``.

    With an ``executor`` days are matched concurrently; each day's route
    scoring then stays serial so no worker waits on another. The deadline is
    only checked between days.
    """
    if executor is None:
        results: list[MatchCandidate | None] = []
        for trip in trips:
            check_deadline(deadline, f"day {trip.day.isoformat()}")
            results.append(match_trip_to_routes(trip.polyline, routes, options))
        return results

    futures = [
        executor.submit(match_trip_to_routes, trip.polyline, routes, options)
        for trip in trips
    ]
    results = []
    try:
        for trip, future in zip(trips, futures, strict=True):
            check_deadline(deadline, f"day {trip.day.isoformat()}")
            results.append(future.result())
    except BaseException:
        for future in futures:
            future.cancel()
        raise
    return results


async def _load_scan_inputs(
    start_day: date,
    end_day: date,
    store: RouteStore,
) -> tuple[list[DayTrip], list[RouteGeometry]]:
    validate_date_range(start_day, end_day)
    start, end = utc_range_bounds(start_day, end_day)
    routes = await store.load_route_geometries()
    points = await load_points_in_range(start, end)
    return group_points_by_day(points), routes


async def sync_candidates(
    start_day: date,
    end_day: date,
    options: MatchOptions | None = None,
    *,
    store: RouteStore | None = None,
    executor: Executor | None = None,
    deadline: float | None = None,
) -> list[SyncCandidate]:
    """Days whose best match is missing or scores below SAME_ROUTE_THRESHOLD."""
    store = store or RouteStore()
    trips, routes = await _load_scan_inputs(start_day, end_day, store)

    matches = await asyncio.to_thread(
        match_day_trips, trips, routes, options, executor, deadline
    )

    items: list[SyncCandidate] = []
    for trip, candidate in zip(trips, matches, strict=True):
        if candidate is not None and candidate.score >= SAME_ROUTE_THRESHOLD:
            continue
        items.append(
            SyncCandidate(day=trip.day, polyline=trip.polyline, candidate=candidate),
        )

    logger.info(
        "Sync scan %s..%s: %d days, %d routes, %d candidates",
        start_day,
        end_day,
        len(trips),
        len(routes),
        len(items),
    )
    return items


async def route_analysis(
    start_day: date,
    end_day: date,
    options: MatchOptions | None = None,
    *,
    store: RouteStore | None = None,
    executor: Executor | None = None,
    deadline: float | None = None,
) -> list[RouteAnalysisEntry]:
    """Per-route count of confidently matched days and their mean duration."""
    store = store or RouteStore()
    trips, routes = await _load_scan_inputs(start_day, end_day, store)
    matchable = [trip for trip in trips if trip.is_matchable]

    matches = await asyncio.to_thread(
        match_day_trips, matchable, routes, options, executor, deadline
    )

    counts: dict[str, int] = {route.route_id: 0 for route in routes}
    durations: dict[str, float] = {route.route_id: 0.0 for route in routes}
    for trip, candidate in zip(matchable, matches, strict=True):
        if candidate is None or candidate.score < SAME_ROUTE_THRESHOLD:
            continue
        counts[candidate.routeId] += 1
        durations[candidate.routeId] += trip.duration_seconds

    entries = []
    for route in routes:
        count = counts[route.route_id]
        entries.append(
            RouteAnalysisEntry(
                routeId=route.route_id,
                name=route.name,
                matchedTripCount=count,
                avgDurationSeconds=durations[route.route_id] / count if count else 0.0,
            ),
        )

    logger.info(
        "Route analysis %s..%s: %d matchable days across %d routes",
        start_day,
        end_day,
        len(matchable),
        len(routes),
    )
    return entries
