"""Trip-to-route map matching.

A trip polyline is downsampled, routes whose bounding box is nowhere near
the samples are rejected, and every surviving route is scored on how many
samples fall within a distance threshold and how far the samples drift on
average. The highest score wins.

Scoring is pure and synchronous; ``RouteMatcher`` is the async entry point
that loads the route catalog and keeps the work off the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from config import MATCH_EXECUTOR, MATCH_WORKERS
from core.exceptions import OperationTimeoutError
from core.spatial import BBOX_OVERLAP_TOLERANCE_DEG, GeometryService
from route_matching.models import MatchCandidate, MatchOptions

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from db.models import Route
    from route_matching.services.store import RouteStore

logger = logging.getLogger(__name__)

FRACTION_WITHIN_WEIGHT = 0.6
DISTANCE_WEIGHT = 0.4


@dataclass(frozen=True)
class RouteGeometry:
    """Read-only snapshot of a stored route, safe to ship to worker processes."""

    route_id: str
    name: str
    polyline: tuple[tuple[float, float], ...]
    bbox: dict[str, float] | None = None

    @classmethod
    def from_document(cls, route: Route) -> RouteGeometry:
        return cls(
            route_id=str(route.id),
            name=route.name,
            polyline=tuple((float(p[0]), float(p[1])) for p in route.polyline),
            bbox=dict(route.bbox) if route.bbox else None,
        )


def downsample(
    polyline: Sequence[Sequence[float]],
    sample_limit: int,
) -> list[Sequence[float]]:
    """Every ``ceil(n / sample_limit)``-th point, always ending on the last point."""
    n = len(polyline)
    if n == 0:
        return []
    stride = max(1, math.ceil(n / max(1, sample_limit)))
    samples = list(polyline[::stride])
    if (n - 1) % stride != 0:
        samples.append(polyline[-1])
    return samples


def composite_score(
    fraction_within: float,
    avg_distance_m: float,
    max_dist_m: float,
) -> float:
    """Blend of on-route fraction and normalized average drift, in [0, 1]."""
    distance_term = 1.0 - min(avg_distance_m, max_dist_m) / max_dist_m
    score = FRACTION_WITHIN_WEIGHT * fraction_within + DISTANCE_WEIGHT * distance_term
    return max(0.0, min(1.0, score))


def score_route(
    samples: Sequence[Sequence[float]],
    route: RouteGeometry,
    options: MatchOptions,
) -> MatchCandidate:
    """Score one route against already-sampled trip points."""
    total = 0.0
    within = 0
    for point in samples:
        d = GeometryService.nearest_distance_to_polyline(point, route.polyline)
        total += d
        if d <= options.distThresholdMeters:
            within += 1

    count = len(samples)
    avg_distance = total / count
    fraction_within = within / count
    return MatchCandidate(
        routeId=route.route_id,
        name=route.name,
        score=composite_score(fraction_within, avg_distance, options.maxDist),
        avgDistanceMeters=avg_distance,
        fractionWithin=fraction_within,
    )


def _score_route_job(args: tuple[Any, ...]) -> MatchCandidate:
    samples, route, options = args
    return score_route(samples, route, options)


def prefilter_routes(
    samples: Sequence[Sequence[float]],
    routes: Iterable[RouteGeometry],
    tolerance: float = BBOX_OVERLAP_TOLERANCE_DEG,
) -> list[RouteGeometry]:
    """Drop routes whose bbox cannot be near the samples; routes without a bbox pass."""
    trip_bbox = GeometryService.bounding_box(samples)
    survivors: list[RouteGeometry] = []
    for route in routes:
        if route.bbox and trip_bbox:
            if not GeometryService.bboxes_overlap(trip_bbox, route.bbox, tolerance):
                continue
        survivors.append(route)
    return survivors


def check_deadline(deadline: float | None, where: str) -> None:
    """Raise OperationTimeoutError when ``time.monotonic()`` has passed ``deadline``."""
    if deadline is not None and time.monotonic() > deadline:
        msg = f"Deadline exceeded during {where}"
        raise OperationTimeoutError(msg)


def _as_geometry(route: RouteGeometry | Route) -> RouteGeometry:
    if isinstance(route, RouteGeometry):
        return route
    return RouteGeometry.from_document(route)


def match_trip_to_routes(
    trip_polyline: Sequence[Sequence[float]],
    routes: Iterable[RouteGeometry | Route],
    options: MatchOptions | None = None,
    executor: Executor | None = None,
    deadline: float | None = None,
) -> MatchCandidate | None:
    """
    Best-matching route for a trip, or None when nothing can be matched.

    Ties keep the earliest route in ``routes`` order. With an ``executor``
    the per-route scoring runs on it; results are gathered in submission
    order so the outcome is identical to the serial path.
    """
    if trip_polyline is None or len(trip_polyline) < 2:
        return None

    options = options or MatchOptions()
    samples = downsample(trip_polyline, options.sampleLimit)
    candidates = prefilter_routes(samples, (_as_geometry(r) for r in routes))
    if not candidates:
        return None

    scored: list[MatchCandidate] = []
    if executor is not None and len(candidates) > 1:
        futures = [
            executor.submit(_score_route_job, (samples, route, options))
            for route in candidates
        ]
        try:
            for future in futures:
                check_deadline(deadline, "route scoring")
                scored.append(future.result())
        except BaseException:
            for future in futures:
                future.cancel()
            raise
    else:
        for route in candidates:
            check_deadline(deadline, "route scoring")
            scored.append(score_route(samples, route, options))

    best: MatchCandidate | None = None
    for candidate in scored:
        if best is None or candidate.score > best.score:
            best = candidate

    logger.debug(
        "Matched %d samples against %d candidate routes; best=%s",
        len(samples),
        len(candidates),
        best.routeId if best else None,
    )
    return best


_executor: Executor | None = None
_executor_lock = threading.Lock()


def _build_match_executor() -> Executor:
    if MATCH_EXECUTOR == "process":
        # Jobs are module-level functions over frozen RouteGeometry snapshots.
        return ProcessPoolExecutor(max_workers=MATCH_WORKERS)
    return ThreadPoolExecutor(
        max_workers=MATCH_WORKERS,
        thread_name_prefix="route-match",
    )


def get_match_executor() -> Executor | None:
    """Shared scoring pool, or None when MATCH_WORKERS is 1."""
    global _executor
    if MATCH_WORKERS <= 1:
        return None
    with _executor_lock:
        if _executor is None:
            _executor = _build_match_executor()
            logger.info(
                "Route scoring pool started: %s x %d",
                MATCH_EXECUTOR,
                MATCH_WORKERS,
            )
        return _executor


def shutdown_match_executor() -> None:
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=True)
            _executor = None
            logger.info("Route scoring pool shut down")


class RouteMatcher:
    """Match trips against the stored route catalog."""

    def __init__(
        self,
        store: RouteStore | None = None,
        executor: Executor | None = None,
    ) -> None:
        if store is None:
            from route_matching.services.store import RouteStore

            store = RouteStore()
        self.store = store
        self.executor = executor

    async def match(
        self,
        trip_polyline: Sequence[Sequence[float]],
        options: MatchOptions | None = None,
    ) -> MatchCandidate | None:
        if trip_polyline is None or len(trip_polyline) < 2:
            return None
        routes = await self.store.load_route_geometries()
        if not routes:
            return None
        return await asyncio.to_thread(
            match_trip_to_routes,
            trip_polyline,
            routes,
            options,
            self.executor,
        )
