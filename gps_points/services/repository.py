"""Storage access for GPS fixes."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING

from core.serialization import serialize_datetime, serialize_object_id
from date_utils import ensure_utc, get_current_utc_time
from db.errors import storage_errors
from db.models import GpsPoint

logger = logging.getLogger(__name__)


def _recorded_range_query(
    start: datetime | None,
    end: datetime | None,
) -> dict[str, Any]:
    query: dict[str, Any] = {}
    if start is not None or end is not None:
        query["recordedAt"] = {}
        if start is not None:
            query["recordedAt"]["$gte"] = ensure_utc(start)
        if end is not None:
            query["recordedAt"]["$lte"] = ensure_utc(end)
    return query


def serialize_point(point: GpsPoint) -> dict[str, Any]:
    return {
        "id": serialize_object_id(point.id),
        "lat": point.lat,
        "lng": point.lng,
        "time": point.time,
        "recordedAt": serialize_datetime(point.recordedAt),
        "updatedAt": serialize_datetime(point.updatedAt),
    }


async def save_point(lat: float, lng: float, time: str) -> GpsPoint:
    """Persist a device fix, stamping it with the server time."""
    now = get_current_utc_time()
    point = GpsPoint(lat=lat, lng=lng, time=time, recordedAt=now, updatedAt=now)
    async with storage_errors("save_point"):
        await point.insert()
    logger.debug("Saved GPS point %s (%s, %s)", point.id, lat, lng)
    return point


async def latest_point() -> GpsPoint | None:
    async with storage_errors("latest_point"):
        return (
            await GpsPoint.find_all()
            .sort([("recordedAt", DESCENDING), ("_id", DESCENDING)])
            .limit(1)
            .first_or_none()
        )


async def list_points(
    *,
    page: int = 1,
    limit: int = 10,
    start: datetime | None = None,
    end: datetime | None = None,
    ascending: bool = False,
) -> dict[str, Any]:
    """Return one page of fixes plus pagination metadata."""
    page = max(1, int(page))
    limit = max(1, int(limit))
    query = _recorded_range_query(start, end)
    direction = ASCENDING if ascending else DESCENDING

    async with storage_errors("list_points"):
        points = (
            await GpsPoint.find(query)
            .sort([("recordedAt", direction), ("_id", direction)])
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list()
        )
        total = await GpsPoint.find(query).count()

    return {
        "pagination": {
            "totalRecords": total,
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
            "limit": limit,
        },
        "data": [serialize_point(p) for p in points],
    }


async def load_points_in_range(start: datetime, end: datetime) -> list[GpsPoint]:
    """All fixes with ``start <= recordedAt <= end``, oldest first."""
    query = _recorded_range_query(start, end)
    async with storage_errors("load_points_in_range"):
        return (
            await GpsPoint.find(query)
            .sort([("recordedAt", ASCENDING), ("_id", ASCENDING)])
            .to_list()
        )
