"""
Route matching module.

Stores reference routes, matches day trips against them, and runs the
sync-candidate and per-route analysis scans over date ranges.
"""

from fastapi import APIRouter

from route_matching.api import routes

router = APIRouter()

router.include_router(routes.router, tags=["routes"])

__all__ = ["router"]
