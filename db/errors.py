"""Translation of MongoDB driver failures into domain errors."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_errors(operation_name: str):
    """
    Re-raise driver errors raised inside the block as StorageUnavailableError.

    Callers can then tell "the store failed" apart from an empty result.
    """
    try:
        yield
    except (ConnectionFailure, ServerSelectionTimeoutError) as e:
        logger.exception("MongoDB unreachable during %s", operation_name)
        msg = f"Database unreachable during {operation_name}"
        raise StorageUnavailableError(msg, {"operation": operation_name}) from e
    except PyMongoError as e:
        logger.exception("MongoDB error during %s", operation_name)
        msg = f"Database error during {operation_name}: {e}"
        raise StorageUnavailableError(msg, {"operation": operation_name}) from e
