"""Pydantic models for route registration, matching and analysis."""

from __future__ import annotations

import math
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import MATCH_DIST_THRESHOLD_M, MATCH_MAX_DIST_M, MATCH_SAMPLE_LIMIT

Coordinate = tuple[float, float]


def _check_coordinates(coords: list[Coordinate]) -> list[Coordinate]:
    for lat, lng in coords:
        if not (math.isfinite(lat) and math.isfinite(lng)):
            msg = f"non-finite coordinate: {lat}, {lng}"
            raise ValueError(msg)
        if not (-90.0 <= lat <= 90.0):
            msg = f"lat out of range [-90,90]: {lat}"
            raise ValueError(msg)
        if not (-180.0 <= lng <= 180.0):
            msg = f"lng out of range [-180,180]: {lng}"
            raise ValueError(msg)
    return coords


class MatchOptions(BaseModel):
    sampleLimit: int = Field(
        default=MATCH_SAMPLE_LIMIT,
        ge=1,
        description="Max number of trip points used for scoring",
    )
    distThresholdMeters: float = Field(
        default=MATCH_DIST_THRESHOLD_M,
        gt=0,
        allow_inf_nan=False,
        description="Distance under which a sampled point counts as on-route",
    )
    maxDist: float = Field(
        default=MATCH_MAX_DIST_M,
        gt=0,
        allow_inf_nan=False,
        description="Ceiling used to normalize the average-distance term",
    )

    model_config = ConfigDict(extra="ignore")


class MatchCandidate(BaseModel):
    routeId: str
    name: str
    score: float = Field(ge=0, le=1)
    avgDistanceMeters: float = Field(ge=0)
    fractionWithin: float = Field(ge=0, le=1)


class CreateRouteRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=2000)
    polyline: list[Coordinate] = Field(min_length=2, description="[lat, lng] pairs")

    model_config = ConfigDict(extra="ignore")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            msg = "name must not be blank"
            raise ValueError(msg)
        return cleaned

    @field_validator("polyline")
    @classmethod
    def validate_polyline(cls, coords: list[Coordinate]) -> list[Coordinate]:
        return _check_coordinates(coords)


class MatchTripRequest(BaseModel):
    polyline: list[Coordinate] = Field(description="[lat, lng] pairs in trip order")
    options: MatchOptions | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("polyline")
    @classmethod
    def validate_polyline(cls, coords: list[Coordinate]) -> list[Coordinate]:
        return _check_coordinates(coords)


class SyncCandidate(BaseModel):
    day: date
    polyline: list[list[float]]
    candidate: MatchCandidate | None = None


class RouteAnalysisEntry(BaseModel):
    routeId: str
    name: str
    matchedTripCount: int = 0
    avgDurationSeconds: float = 0.0
