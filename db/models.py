"""Beanie documents for the three collections the service owns.

``gps`` holds raw device fixes, ``routes`` the reference polylines trips are
matched against, and ``server_logs`` the mirrored application log.

Usage:
    from db.models import GpsPoint, Route

    # Latest fix
    point = await GpsPoint.find_all().sort(-GpsPoint.recordedAt).first_or_none()

    # Register a route
    route = Route(name="Home to work", polyline=[[0.0, 0.0], [0.0, 1.0]])
    await route.insert()
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from date_utils import get_current_utc_time, parse_timestamp


class GpsPoint(Document):
    """A single fix reported by the tracking device."""

    lat: float
    lng: float
    # Free-form timestamp string sent by the device; never parsed for ordering.
    time: str
    recordedAt: datetime = Field(default_factory=get_current_utc_time)
    updatedAt: datetime = Field(default_factory=get_current_utc_time)

    @field_validator("recordedAt", "updatedAt", mode="before")
    @classmethod
    def parse_datetime_fields(cls, v: Any) -> datetime | None:
        """Parse datetime fields using the centralized date_utils."""
        if v is None:
            return get_current_utc_time()
        return parse_timestamp(v)

    class Settings:
        name = "gps"
        indexes = [
            IndexModel([("recordedAt", ASCENDING)], name="gps_recorded_at_idx"),
        ]

    class Config:
        extra = "allow"


class Route(Document):
    """Reference polyline that trips are matched against.

    Routes are created and deleted, never edited; ``bbox`` is computed from
    ``polyline`` once at creation.
    """

    name: Indexed(str, unique=True)
    description: str | None = None
    # Ordered [lat, lng] pairs.
    polyline: list[list[float]] = Field(default_factory=list)
    # {"minLat", "minLng", "maxLat", "maxLng"}
    bbox: dict[str, float] | None = None
    createdAt: datetime = Field(default_factory=get_current_utc_time)

    @field_validator("createdAt", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> datetime | None:
        if v is None:
            return get_current_utc_time()
        return parse_timestamp(v)

    class Settings:
        name = "routes"
        indexes = [
            IndexModel([("createdAt", ASCENDING)], name="routes_created_at_idx"),
        ]

    class Config:
        extra = "allow"


class ServerLog(Document):
    """Server log document for MongoDB logging handler."""

    timestamp: Indexed(datetime, index_type=DESCENDING) | None = None
    level: str | None = None
    logger_name: str | None = None
    message: str | None = None
    pathname: str | None = None
    lineno: int | None = None
    funcName: str | None = None
    exc_info: str | None = None

    class Settings:
        name = "server_logs"
        indexes = [
            IndexModel([("level", ASCENDING)], name="server_logs_level_idx"),
            IndexModel(
                [("timestamp", ASCENDING)],
                name="server_logs_ttl_idx",
                expireAfterSeconds=30 * 24 * 60 * 60,
            ),
        ]

    class Config:
        extra = "allow"


# List of all document models for Beanie initialization
ALL_DOCUMENT_MODELS = [
    GpsPoint,
    Route,
    ServerLog,
]
