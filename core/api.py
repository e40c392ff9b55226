"""API utilities for FastAPI route handling."""

import functools
import logging
from collections.abc import Callable

from fastapi import HTTPException, status

from core.exceptions import (
    DuplicateResourceError,
    GeoTrackerError,
    OperationTimeoutError,
    ResourceNotFoundError,
    StorageUnavailableError,
    ValidationError,
)

# First match wins, so subclasses must come before GeoTrackerError.
_ERROR_STATUS: tuple[tuple[type[GeoTrackerError], int, int, str], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST, logging.WARNING, "{}"),
    (ResourceNotFoundError, status.HTTP_404_NOT_FOUND, logging.INFO, "{}"),
    (DuplicateResourceError, status.HTTP_409_CONFLICT, logging.WARNING, "{}"),
    (
        StorageUnavailableError,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        logging.ERROR,
        "Storage unavailable: {}",
    ),
    (OperationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, logging.WARNING, "{}"),
    (GeoTrackerError, status.HTTP_500_INTERNAL_SERVER_ERROR, logging.ERROR, "{}"),
)


def _to_http_exception(
    logger: logging.Logger,
    endpoint: str,
    exc: GeoTrackerError,
) -> HTTPException:
    for error_type, status_code, level, detail in _ERROR_STATUS:
        if isinstance(exc, error_type):
            logger.log(
                level,
                "%s in %s: %s",
                type(exc).__name__,
                endpoint,
                exc.message,
                exc_info=level >= logging.ERROR,
            )
            return HTTPException(
                status_code=status_code,
                detail=detail.format(exc.message),
            )
    msg = f"unmapped application error {type(exc).__name__}"
    raise TypeError(msg)


def api_route(logger: logging.Logger):
    """
    Decorator for FastAPI endpoints that provides standardized error handling.

    - HTTPException passes through untouched.
    - Application errors become the HTTP status listed in ``_ERROR_STATUS``.
    - Anything else is logged with its traceback and becomes a 500.

    Usage:
        @router.get("/api/routes")
        @api_route(logger)
        async def list_routes():
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except GeoTrackerError as e:
                raise _to_http_exception(logger, func.__name__, e) from e
            except Exception as e:
                logger.exception("Unexpected error in %s", func.__name__)
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=str(e),
                ) from e

        return wrapper

    return decorator
