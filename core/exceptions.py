"""
Centralized exception hierarchy for domain-specific errors.

This module provides custom exception classes that represent specific
error conditions in the application. "No route matched" is an ordinary
result, not an error, and has no exception here.
"""


class GeoTrackerError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(GeoTrackerError):
    """Exception raised when data validation fails."""


class ResourceNotFoundError(GeoTrackerError):
    """Exception raised when a requested resource is not found."""


class DuplicateResourceError(GeoTrackerError):
    """Exception raised when attempting to create a duplicate resource."""


class StorageUnavailableError(GeoTrackerError):
    """Exception raised when the backing store cannot serve a request."""


class OperationTimeoutError(GeoTrackerError):
    """Exception raised when a batch scan runs past its deadline."""


GeoTrackerException = GeoTrackerError
ValidationException = ValidationError
ResourceNotFoundException = ResourceNotFoundError
DuplicateResourceException = DuplicateResourceError
StorageUnavailableException = StorageUnavailableError
OperationTimeoutException = OperationTimeoutError
