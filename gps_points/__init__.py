"""
GPS point ingestion.

Stores fixes reported by the tracking device and serves them back for
browsing and for trip assembly.
"""

from fastapi import APIRouter

from gps_points.api import routes

router = APIRouter()

router.include_router(routes.router, tags=["gps"])

__all__ = ["router"]
