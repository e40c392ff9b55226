"""Pydantic models for GPS ingestion APIs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GpsPointCreateRequest(BaseModel):
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, allow_inf_nan=False)
    time: str = Field(min_length=1, description="Device timestamp, stored verbatim")

    model_config = ConfigDict(extra="ignore")

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            msg = "time is required"
            raise ValueError(msg)
        return cleaned
