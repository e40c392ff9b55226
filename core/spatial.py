"""
Spatial and geometry utilities.

Centralizes coordinate validation, great-circle distances, point-to-segment
projection, polyline proximity and bounding-box helpers used by route
matching.

Coordinates in this module are ``(lat, lng)`` pairs in degrees, in the order
the tracking device reports them. GeoJSON output flips them to ``[lng, lat]``.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

# Largest gap allowed between two boxes that still counts as overlap. The metric
# size of one degree of longitude shrinks with latitude (~1.1 km of latitude,
# ~0.8 km of longitude at 45 deg), so this is a coarse rejection margin only.
BBOX_OVERLAP_TOLERANCE_DEG = 0.01

LatLng = tuple[float, float]


class GeometryService:
    """Authoritative geometry operations for the application."""

    EARTH_RADIUS_M = 6371000.0

    @staticmethod
    def validate_coordinate_pair(
        coord: Sequence[Any],
    ) -> tuple[bool, list[float] | None]:
        """Validate a [lat, lng] coordinate pair."""
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return False, None
        try:
            lat = float(coord[0])
            lng = float(coord[1])
        except (TypeError, ValueError, IndexError):
            return False, None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return False, None
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return False, None
        return True, [lat, lng]

    @staticmethod
    def haversine_distance(
        lat1: float,
        lng1: float,
        lat2: float,
        lng2: float,
        unit: str = "meters",
    ) -> float:
        """Calculate the great-circle distance using the Haversine formula."""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dphi = math.radians(lat2 - lat1)
        dlmb = math.radians(lng2 - lng1)
        a = (
            math.sin(dphi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
        )
        distance_m = (
            2 * GeometryService.EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))
        )
        if unit == "meters":
            return distance_m
        if unit == "miles":
            return distance_m / 1609.344
        if unit == "km":
            return distance_m / 1000.0
        msg = "Invalid unit. Use 'meters', 'miles', or 'km'."
        raise ValueError(msg)

    @staticmethod
    def point_to_segment_distance(
        p: Sequence[float],
        v: Sequence[float],
        w: Sequence[float],
    ) -> float:
        """
        Distance in meters from point ``p`` to the closest point on segment ``v-w``.

        The projection is computed on a flat plane of radian lat/lng values and
        only the final measurement is geodesic. This is an approximation that
        holds for segments of tens to a few hundred meters; it drifts for long
        segments and near the poles or the antimeridian. Switching to a true
        geodesic projection would change match scores.
        """
        if v[0] == w[0] and v[1] == w[1]:
            return GeometryService.haversine_distance(p[0], p[1], v[0], v[1])

        py, px = math.radians(p[0]), math.radians(p[1])
        vy, vx = math.radians(v[0]), math.radians(v[1])
        wy, wx = math.radians(w[0]), math.radians(w[1])

        dx = wx - vx
        dy = wy - vy
        t = ((px - vx) * dx + (py - vy) * dy) / (dx * dx + dy * dy)
        t = max(0.0, min(1.0, t))

        proj_lat = math.degrees(vy + t * dy)
        proj_lng = math.degrees(vx + t * dx)
        return GeometryService.haversine_distance(p[0], p[1], proj_lat, proj_lng)

    @staticmethod
    def nearest_distance_to_polyline(
        p: Sequence[float],
        polyline: Sequence[Sequence[float]] | None,
    ) -> float:
        """Minimum distance in meters from ``p`` to any segment of ``polyline``."""
        if not polyline:
            return math.inf
        if len(polyline) == 1:
            only = polyline[0]
            return GeometryService.haversine_distance(p[0], p[1], only[0], only[1])

        best = math.inf
        for i in range(len(polyline) - 1):
            d = GeometryService.point_to_segment_distance(
                p,
                polyline[i],
                polyline[i + 1],
            )
            if d < best:
                best = d
        return best

    @staticmethod
    def polyline_length(polyline: Sequence[Sequence[float]]) -> float:
        """Total length of a polyline in meters."""
        total = 0.0
        for i in range(1, len(polyline)):
            a = polyline[i - 1]
            b = polyline[i]
            total += GeometryService.haversine_distance(a[0], a[1], b[0], b[1])
        return total

    @staticmethod
    def bounding_box(
        points: Iterable[Sequence[float]],
    ) -> dict[str, float] | None:
        """Tight axis-aligned box around ``points``, or None when empty."""
        lats: list[float] = []
        lngs: list[float] = []
        for point in points:
            lats.append(float(point[0]))
            lngs.append(float(point[1]))
        if not lats:
            return None
        return {
            "minLat": min(lats),
            "minLng": min(lngs),
            "maxLat": max(lats),
            "maxLng": max(lngs),
        }

    @staticmethod
    def bboxes_overlap(
        a: dict[str, float],
        b: dict[str, float],
        tolerance: float = BBOX_OVERLAP_TOLERANCE_DEG,
    ) -> bool:
        """Return True unless the boxes are separated by more than ``tolerance`` degrees."""
        if a["maxLat"] < b["minLat"] - tolerance:
            return False
        if b["maxLat"] < a["minLat"] - tolerance:
            return False
        if a["maxLng"] < b["minLng"] - tolerance:
            return False
        if b["maxLng"] < a["minLng"] - tolerance:
            return False
        return True

    @staticmethod
    def linestring_from_polyline(
        polyline: Sequence[Sequence[float]],
    ) -> dict[str, Any] | None:
        """Build a GeoJSON LineString ([lng, lat] order) from a lat/lng polyline."""
        coords = [[float(pt[1]), float(pt[0])] for pt in polyline]
        if len(coords) < 2:
            return None
        return {"type": "LineString", "coordinates": coords}


def clean_polyline(
    coords: Iterable[Sequence[Any]],
    *,
    dedupe: bool = False,
) -> list[list[float]]:
    """Drop invalid [lat, lng] pairs, optionally collapsing consecutive repeats."""
    cleaned: list[list[float]] = []
    for coord in coords:
        valid, pair = GeometryService.validate_coordinate_pair(coord)
        if not valid or pair is None:
            logger.debug("Skipping invalid coordinate pair: %s", coord)
            continue
        if dedupe and cleaned and cleaned[-1] == pair:
            continue
        cleaned.append(pair)
    return cleaned
