"""Persistence of reference routes.

Routes are create-only and delete-only. The bounding box is derived from the
polyline when the route is registered and is never written again.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from beanie import PydanticObjectId
from bson import ObjectId
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from core.exceptions import DuplicateResourceError, ResourceNotFoundError, ValidationError
from core.serialization import serialize_datetime, serialize_object_id
from core.spatial import GeometryService, clean_polyline
from date_utils import get_current_utc_time
from db.errors import storage_errors
from db.models import Route
from route_matching.services.matcher import RouteGeometry

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def _parse_route_id(route_id: str) -> PydanticObjectId:
    if not ObjectId.is_valid(str(route_id)):
        msg = f"Route {route_id} not found"
        raise ResourceNotFoundError(msg)
    return PydanticObjectId(str(route_id))


def serialize_route_summary(route: Route) -> dict[str, Any]:
    return {
        "id": serialize_object_id(route.id),
        "name": route.name,
        "description": route.description,
        "pointCount": len(route.polyline),
        "bbox": route.bbox,
        "createdAt": serialize_datetime(route.createdAt),
    }


def serialize_route_detail(route: Route) -> dict[str, Any]:
    data = serialize_route_summary(route)
    data["polyline"] = route.polyline
    data["lengthMeters"] = round(GeometryService.polyline_length(route.polyline), 1)
    data["geometry"] = GeometryService.linestring_from_polyline(route.polyline)
    return data


class RouteStore:
    """Reads and writes Route documents."""

    async def load_all_routes(self) -> list[Route]:
        """Every stored route, oldest first (the matcher's tie-break order)."""
        async with storage_errors("load_all_routes"):
            return (
                await Route.find_all()
                .sort([("createdAt", ASCENDING), ("_id", ASCENDING)])
                .to_list()
            )

    async def load_route_geometries(self) -> list[RouteGeometry]:
        routes = await self.load_all_routes()
        return [RouteGeometry.from_document(route) for route in routes]

    async def get_route(self, route_id: str) -> Route:
        oid = _parse_route_id(route_id)
        async with storage_errors("get_route"):
            route = await Route.get(oid)
        if route is None:
            msg = f"Route {route_id} not found"
            raise ResourceNotFoundError(msg)
        return route

    async def create_route(
        self,
        name: str,
        polyline: Sequence[Sequence[float]],
        description: str | None = None,
    ) -> Route:
        """Validate and store a new route with its bounding box."""
        cleaned_name = (name or "").strip()
        if not cleaned_name:
            msg = "Route name must not be blank"
            raise ValidationError(msg)

        coords = clean_polyline(polyline or [])
        if len(coords) != len(polyline or []):
            msg = "Route polyline contains invalid coordinates"
            raise ValidationError(msg)
        if len(coords) < 2:
            msg = "Route polyline must contain at least 2 points"
            raise ValidationError(msg)

        cleaned_description = (description or "").strip() or None
        route = Route(
            name=cleaned_name,
            description=cleaned_description,
            polyline=coords,
            bbox=GeometryService.bounding_box(coords),
            createdAt=get_current_utc_time(),
        )

        async with storage_errors("create_route"):
            existing = await Route.find_one({"name": cleaned_name})
            if existing is not None:
                msg = f"Route named '{cleaned_name}' already exists"
                raise DuplicateResourceError(msg)
            try:
                await route.insert()
            except DuplicateKeyError as e:
                msg = f"Route named '{cleaned_name}' already exists"
                raise DuplicateResourceError(msg) from e

        logger.info("Created route %s (%s, %d points)", route.id, route.name, len(coords))
        return route

    async def delete_route(self, route_id: str) -> None:
        route = await self.get_route(route_id)
        async with storage_errors("delete_route"):
            await route.delete()
        logger.info("Deleted route %s (%s)", route_id, route.name)
