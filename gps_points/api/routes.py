"""API routes for ingesting and browsing GPS fixes."""

import logging
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Query, status

from core.api import api_route
from core.exceptions import ResourceNotFoundError, ValidationError
from date_utils import parse_timestamp
from gps_points.models import GpsPointCreateRequest
from gps_points.services.repository import (
    latest_point,
    list_points,
    save_point,
    serialize_point,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _parse_bound(value: str | None, field: str):
    if value is None or not value.strip():
        return None
    parsed = parse_timestamp(value.strip())
    if parsed is None:
        msg = f"Invalid '{field}' timestamp: {value}"
        raise ValidationError(msg)
    return parsed


@router.post(
    "/api/gps",
    status_code=status.HTTP_201_CREATED,
    response_model=dict[str, Any],
)
@api_route(logger)
async def create_gps_point(payload: GpsPointCreateRequest):
    """Store a fix reported by the device."""
    point = await save_point(payload.lat, payload.lng, payload.time)
    logger.info("Saved GPS point %s", point.id)
    return {"success": True, "message": "GPS data saved"}


@router.get("/api/gps/latest", response_model=dict[str, Any])
@api_route(logger)
async def get_latest_gps_point():
    """Most recently recorded fix."""
    point = await latest_point()
    if point is None:
        msg = "No data found"
        raise ResourceNotFoundError(msg)
    return {"success": True, "data": serialize_point(point)}


@router.get("/api/gps", response_model=dict[str, Any])
@api_route(logger)
async def list_gps_points(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=1000)] = 10,
    from_: Annotated[str | None, Query(alias="from")] = None,
    to: str | None = None,
    sort: Literal["asc", "desc"] = "desc",
):
    """Paginated fixes, optionally filtered by recorded time."""
    start = _parse_bound(from_, "from")
    end = _parse_bound(to, "to")
    if start and end and start > end:
        msg = "'from' must not be after 'to'"
        raise ValidationError(msg)

    result = await list_points(
        page=page,
        limit=limit,
        start=start,
        end=end,
        ascending=sort == "asc",
    )
    return {"success": True, **result}
