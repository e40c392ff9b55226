import math
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from store_fakes import FakeRouteStore, point_stub, route_stub

from core.exceptions import OperationTimeoutError, ValidationError
from core.spatial import GeometryService
from route_matching.services import analysis, trips
from route_matching.services.analysis import (
    match_day_trips,
    route_analysis,
    sync_candidates,
    validate_date_range,
)
from route_matching.services.matcher import RouteGeometry
from route_matching.services.trips import DayTrip, assemble_day_trip, group_points_by_day

OFFSET_400M_DEG = math.degrees(400.0 / GeometryService.EARTH_RADIUS_M)


def _at(day: date, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=UTC)


def _drive(day: date, lat: float, *, minutes: int = 10, n: int = 4) -> list:
    start = _at(day, 8)
    step = timedelta(minutes=minutes) / (n - 1)
    return [
        point_stub(lat, 0.002 + i * 0.002, start + i * step)
        for i in range(n)
    ]


@pytest.fixture
def stored_points(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    loader = AsyncMock(return_value=[])
    monkeypatch.setattr(analysis, "load_points_in_range", loader)
    return loader


def test_group_points_by_day_splits_on_utc_midnight() -> None:
    d1 = date(2024, 3, 5)
    points = [
        point_stub(0.0, 0.001, _at(d1, 23, 59, 0)),
        point_stub(0.0, 0.002, _at(d1, 23, 59, 59)),
        point_stub(0.0, 0.003, _at(d1 + timedelta(days=1), 0, 0, 1)),
    ]

    grouped = group_points_by_day(points)

    assert [trip.day for trip in grouped] == [d1, date(2024, 3, 6)]
    assert grouped[0].polyline == [[0.0, 0.001], [0.0, 0.002]]
    assert grouped[0].is_matchable
    assert grouped[0].duration_seconds == 59.0
    assert not grouped[1].is_matchable
    assert grouped[1].duration_seconds == 0.0


@pytest.mark.asyncio
async def test_assemble_day_trip_loads_whole_utc_day(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    day = date(2024, 3, 5)
    points = _drive(day, 0.0)
    loader = AsyncMock(return_value=points)
    monkeypatch.setattr(trips, "load_points_in_range", loader)

    trip = await assemble_day_trip(day)

    start, end = loader.await_args.args
    assert start == datetime(2024, 3, 5, tzinfo=UTC)
    assert end.date() == day
    assert end.hour == 23
    assert trip.day == day
    assert trip.points == points
    assert trip.duration_seconds == 600.0


def test_validate_date_range() -> None:
    validate_date_range(date(2024, 1, 1), date(2024, 1, 1))
    with pytest.raises(ValidationError):
        validate_date_range(date(2024, 1, 2), date(2024, 1, 1))
    with pytest.raises(ValidationError):
        validate_date_range(date(2023, 1, 1), date(2024, 12, 31))


@pytest.mark.asyncio
async def test_sync_candidates_lists_poorly_matched_days(stored_points) -> None:
    partial_day = date(2024, 3, 5)
    good_day = date(2024, 3, 6)
    lonely_day = date(2024, 3, 7)
    far_day = date(2024, 3, 8)
    store = FakeRouteStore([route_stub("R1", [[0.0, 0.0], [0.0, 0.01]])])
    stored_points.return_value = [
        point_stub(0.0, 0.005, _at(partial_day, 8)),
        point_stub(OFFSET_400M_DEG, 0.005, _at(partial_day, 8, 10)),
        *_drive(good_day, 0.0),
        point_stub(0.0, 0.005, _at(lonely_day, 9)),
        *_drive(far_day, 0.09),
    ]

    items = await sync_candidates(partial_day, far_day, store=store)

    start, end = stored_points.await_args.args
    assert start == datetime(2024, 3, 5, tzinfo=UTC)
    assert end.date() == far_day

    assert [item.day for item in items] == [partial_day, lonely_day, far_day]

    partial = items[0]
    assert partial.candidate is not None
    assert partial.candidate.name == "R1"
    assert partial.candidate.fractionWithin == pytest.approx(0.5)
    assert partial.candidate.avgDistanceMeters == pytest.approx(200.0, abs=1e-3)
    assert partial.candidate.score == pytest.approx(0.5, abs=1e-6)
    assert partial.polyline == [[0.0, 0.005], [OFFSET_400M_DEG, 0.005]]

    assert items[1].candidate is None
    assert items[1].polyline == [[0.0, 0.005]]
    assert items[2].candidate is None


@pytest.mark.asyncio
async def test_sync_candidates_without_routes_lists_every_day(stored_points) -> None:
    day = date(2024, 3, 5)
    stored_points.return_value = _drive(day, 0.0)

    items = await sync_candidates(day, day, store=FakeRouteStore())

    assert len(items) == 1
    assert items[0].candidate is None


@pytest.mark.asyncio
async def test_sync_candidates_rejects_reversed_range(stored_points) -> None:
    with pytest.raises(ValidationError):
        await sync_candidates(
            date(2024, 3, 6),
            date(2024, 3, 5),
            store=FakeRouteStore(),
        )
    stored_points.assert_not_awaited()


@pytest.mark.asyncio
async def test_sync_candidates_honours_deadline(stored_points) -> None:
    day = date(2024, 3, 5)
    stored_points.return_value = _drive(day, 0.0)
    store = FakeRouteStore([route_stub("R1", [[0.0, 0.0], [0.0, 0.01]])])

    with pytest.raises(OperationTimeoutError):
        await sync_candidates(day, day, store=store, deadline=time.monotonic() - 1)


@pytest.mark.asyncio
async def test_route_analysis_counts_and_averages(stored_points) -> None:
    r1 = route_stub("R1", [[0.0, 0.0], [0.0, 0.01]])
    r2 = route_stub("R2", [[0.05, 0.0], [0.05, 0.01]])
    unused = route_stub("Unused", [[-0.05, 0.0], [-0.05, 0.01]])
    store = FakeRouteStore([r1, r2, unused])
    d = date(2024, 3, 1)
    stored_points.return_value = [
        *_drive(d, 0.0, minutes=10),
        *_drive(d + timedelta(days=1), 0.0, minutes=20),
        *_drive(d + timedelta(days=2), 0.05, minutes=5),
        point_stub(0.0, 0.005, _at(d + timedelta(days=3), 7)),
        point_stub(0.0, 0.005, _at(d + timedelta(days=4), 8)),
        point_stub(OFFSET_400M_DEG, 0.005, _at(d + timedelta(days=4), 8, 30)),
    ]

    entries = await route_analysis(d, d + timedelta(days=4), store=store)

    assert [e.name for e in entries] == ["R1", "R2", "Unused"]
    by_name = {e.name: e for e in entries}
    assert by_name["R1"].routeId == str(r1.id)
    assert by_name["R1"].matchedTripCount == 2
    assert by_name["R1"].avgDurationSeconds == pytest.approx(900.0)
    assert by_name["R2"].matchedTripCount == 1
    assert by_name["R2"].avgDurationSeconds == pytest.approx(300.0)
    assert by_name["Unused"].matchedTripCount == 0
    assert by_name["Unused"].avgDurationSeconds == 0.0


@pytest.mark.asyncio
async def test_route_analysis_without_points(stored_points) -> None:
    store = FakeRouteStore([route_stub("R1", [[0.0, 0.0], [0.0, 0.01]])])

    entries = await route_analysis(date(2024, 3, 1), date(2024, 3, 2), store=store)

    assert len(entries) == 1
    assert entries[0].matchedTripCount == 0
    assert entries[0].avgDurationSeconds == 0.0


def test_match_day_trips_parallel_matches_serial() -> None:
    routes = [
        RouteGeometry("a", "A", ((0.0, 0.0), (0.0, 0.01))),
        RouteGeometry("b", "B", ((0.05, 0.0), (0.05, 0.01))),
    ]
    days = [date(2024, 3, 1) + timedelta(days=i) for i in range(6)]
    day_trips = [
        DayTrip(day=day, points=_drive(day, 0.05 if i % 2 else 0.0))
        for i, day in enumerate(days)
    ]

    serial = match_day_trips(day_trips, routes)
    with ThreadPoolExecutor(max_workers=3) as pool:
        parallel = match_day_trips(day_trips, routes, executor=pool)

    assert parallel == serial
    assert [c.routeId for c in serial] == ["a", "b", "a", "b", "a", "b"]


def test_match_day_trips_parallel_honours_deadline() -> None:
    routes = [RouteGeometry("a", "A", ((0.0, 0.0), (0.0, 0.01)))]
    day = date(2024, 3, 1)
    day_trips = [DayTrip(day=day, points=_drive(day, 0.0))]

    with ThreadPoolExecutor(max_workers=2) as pool, pytest.raises(OperationTimeoutError):
        match_day_trips(day_trips, routes, executor=pool, deadline=time.monotonic() - 1)
