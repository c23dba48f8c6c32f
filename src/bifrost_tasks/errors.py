# src/bifrost_tasks/errors.py

"""
Error taxonomy shared by the recurrence engine and the calendar sync.

- ValidationError: malformed pattern / task input (raised to the caller)
- NotFoundError:   the remote resource is gone (e.g. calendar event deleted)
- StorageError:    persistence I/O failure
- NetworkError:    calendar client call failure
"""

from __future__ import annotations


class BifrostError(Exception):
    """Base class for all errors raised by bifrost_tasks."""


class ValidationError(BifrostError, ValueError):
    pass


class NotFoundError(BifrostError):
    def __init__(self, message: str = "not found", *, resource_id: str | None = None) -> None:
        super().__init__(message)
        self.resource_id = resource_id


class StorageError(BifrostError):
    pass


class NetworkError(BifrostError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
