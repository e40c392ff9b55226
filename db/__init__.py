"""Database package for MongoDB operations using Beanie ODM.

Modules:
    manager: DatabaseManager singleton for connection handling
    models: Beanie Document models for all collections
    errors: translation of driver failures into domain errors

Usage:
    from db.models import GpsPoint, Route

    routes = await Route.find_all().to_list()
"""

from db.errors import storage_errors
from db.manager import DatabaseManager, db_manager
from db.models import ALL_DOCUMENT_MODELS, GpsPoint, Route, ServerLog

__all__ = [
    "ALL_DOCUMENT_MODELS",
    "DatabaseManager",
    "GpsPoint",
    "Route",
    "ServerLog",
    "db_manager",
    "storage_errors",
]
