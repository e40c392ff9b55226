from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

from bson import ObjectId

from core.exceptions import ResourceNotFoundError
from core.spatial import GeometryService
from route_matching.services.matcher import RouteGeometry


def route_stub(
    name: str,
    polyline: list[list[float]],
    *,
    created_at: datetime | None = None,
    description: str | None = None,
    with_bbox: bool = True,
) -> SimpleNamespace:
    """Attribute-compatible stand-in for a stored Route document."""
    return SimpleNamespace(
        id=ObjectId(),
        name=name,
        description=description,
        polyline=polyline,
        bbox=GeometryService.bounding_box(polyline) if with_bbox else None,
        createdAt=created_at or datetime(2024, 1, 1, tzinfo=UTC),
    )


def point_stub(lat: float, lng: float, recorded_at: datetime) -> SimpleNamespace:
    """Attribute-compatible stand-in for a stored GpsPoint document."""
    return SimpleNamespace(
        id=ObjectId(),
        lat=lat,
        lng=lng,
        time=recorded_at.isoformat(),
        recordedAt=recorded_at,
        updatedAt=recorded_at,
    )


class FakeRouteStore:
    """In-memory RouteStore keeping routes in catalog order."""

    def __init__(self, routes: list[Any] | None = None) -> None:
        self.routes = list(routes or [])

    async def load_all_routes(self) -> list[Any]:
        return list(self.routes)

    async def load_route_geometries(self) -> list[RouteGeometry]:
        return [RouteGeometry.from_document(route) for route in self.routes]

    async def get_route(self, route_id: str) -> Any:
        for route in self.routes:
            if str(route.id) == route_id:
                return route
        msg = f"Route {route_id} not found"
        raise ResourceNotFoundError(msg)

    async def delete_route(self, route_id: str) -> None:
        route = await self.get_route(route_id)
        self.routes.remove(route)
