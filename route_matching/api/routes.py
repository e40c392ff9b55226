"""API routes for reference routes, trip matching and batch scans."""

import logging
import time
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status

from config import SAME_ROUTE_THRESHOLD
from core.api import api_route
from core.exceptions import ValidationError
from date_utils import normalize_calendar_date
from route_matching.models import CreateRouteRequest, MatchOptions, MatchTripRequest
from route_matching.services.analysis import route_analysis, sync_candidates
from route_matching.services.matcher import RouteMatcher, get_match_executor
from route_matching.services.store import (
    RouteStore,
    serialize_route_detail,
    serialize_route_summary,
)
from route_matching.services.trips import assemble_day_trip

logger = logging.getLogger(__name__)
router = APIRouter()

store = RouteStore()


def _match_options(
    sampleLimit: Annotated[int | None, Query(ge=1)] = None,
    distThresholdMeters: Annotated[float | None, Query(gt=0)] = None,
    maxDist: Annotated[float | None, Query(gt=0)] = None,
) -> MatchOptions:
    overrides = {
        "sampleLimit": sampleLimit,
        "distThresholdMeters": distThresholdMeters,
        "maxDist": maxDist,
    }
    return MatchOptions(**{k: v for k, v in overrides.items() if v is not None})


def _require_day(value: str, field: str) -> date:
    day = normalize_calendar_date(value)
    if day is None:
        msg = f"Invalid '{field}' date: {value}"
        raise ValidationError(msg)
    return day


def _deadline(timeout_seconds: float | None) -> float | None:
    if timeout_seconds is None:
        return None
    return time.monotonic() + timeout_seconds


@router.post(
    "/api/routes",
    status_code=status.HTTP_201_CREATED,
    response_model=dict[str, Any],
)
@api_route(logger)
async def create_route(payload: CreateRouteRequest):
    """Register a reference route."""
    route = await store.create_route(
        payload.name,
        [list(pt) for pt in payload.polyline],
        description=payload.description,
    )
    return {"success": True, "route": serialize_route_detail(route)}


@router.get("/api/routes", response_model=dict[str, Any])
@api_route(logger)
async def list_routes():
    """List stored routes."""
    routes = await store.load_all_routes()
    return {
        "total": len(routes),
        "routes": [serialize_route_summary(r) for r in routes],
    }


@router.post("/api/routes/match", response_model=dict[str, Any])
@api_route(logger)
async def match_polyline(payload: MatchTripRequest):
    """Match an explicit trip polyline against the stored routes."""
    matcher = RouteMatcher(store, executor=get_match_executor())
    candidate = await matcher.match(
        [list(pt) for pt in payload.polyline],
        payload.options,
    )
    return {
        "candidate": candidate.model_dump() if candidate else None,
        "matched": bool(candidate and candidate.score >= SAME_ROUTE_THRESHOLD),
    }


@router.get("/api/routes/sync-candidates", response_model=dict[str, Any])
@api_route(logger)
async def get_sync_candidates(
    start: str,
    end: str,
    options: Annotated[MatchOptions, Depends(_match_options)],
    timeout_seconds: Annotated[float | None, Query(gt=0)] = None,
):
    """Days in the range that no stored route matches confidently."""
    items = await sync_candidates(
        _require_day(start, "start"),
        _require_day(end, "end"),
        options,
        store=store,
        executor=get_match_executor(),
        deadline=_deadline(timeout_seconds),
    )
    return {
        "total": len(items),
        "threshold": SAME_ROUTE_THRESHOLD,
        "candidates": [item.model_dump(mode="json") for item in items],
    }


@router.get("/api/routes/analysis", response_model=dict[str, Any])
@api_route(logger)
async def get_route_analysis(
    start: str,
    end: str,
    options: Annotated[MatchOptions, Depends(_match_options)],
    timeout_seconds: Annotated[float | None, Query(gt=0)] = None,
):
    """Per-route trip counts and average durations over the range."""
    entries = await route_analysis(
        _require_day(start, "start"),
        _require_day(end, "end"),
        options,
        store=store,
        executor=get_match_executor(),
        deadline=_deadline(timeout_seconds),
    )
    return {
        "threshold": SAME_ROUTE_THRESHOLD,
        "routes": [entry.model_dump() for entry in entries],
    }


@router.get("/api/routes/{route_id}", response_model=dict[str, Any])
@api_route(logger)
async def get_route(route_id: str):
    """Route detail including its polyline."""
    route = await store.get_route(route_id)
    return {"route": serialize_route_detail(route)}


@router.delete("/api/routes/{route_id}", response_model=dict[str, Any])
@api_route(logger)
async def delete_route(route_id: str):
    """Delete a stored route."""
    await store.delete_route(route_id)
    return {"success": True, "deleted": route_id}


@router.get("/api/trips/{day}/match", response_model=dict[str, Any])
@api_route(logger)
async def match_day_trip(
    day: str,
    options: Annotated[MatchOptions, Depends(_match_options)],
):
    """Assemble one UTC day's fixes into a trip and match it."""
    trip = await assemble_day_trip(_require_day(day, "day"))
    matcher = RouteMatcher(store, executor=get_match_executor())
    candidate = await matcher.match(trip.polyline, options)
    matched = candidate is not None and candidate.score >= SAME_ROUTE_THRESHOLD
    return {
        "day": trip.day.isoformat(),
        "pointCount": len(trip.points),
        "durationSeconds": trip.duration_seconds,
        "polyline": trip.polyline,
        "candidate": candidate.model_dump() if candidate else None,
        "matchedRoute": candidate.model_dump() if matched else None,
    }
