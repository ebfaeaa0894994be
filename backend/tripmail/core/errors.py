"""
Centralized error handling for notification API failures.
Constants and a reusable helper so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

MSG_QUEUE_UNAVAILABLE = "Notification queue unavailable. Try again shortly."
MSG_TRIP_NOT_FOUND = "Trip not found."
MSG_USER_NOT_FOUND = "User not found."

# HTTP status codes for known error categories
STATUS_NOT_FOUND = 404
STATUS_SERVICE_UNAVAILABLE = 503  # database down, pool exhausted
STATUS_INTERNAL_ERROR = 500


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code, detail_message)
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

def _is_database_error(exc: Exception) -> bool:
    return isinstance(exc, SQLAlchemyError)


# List of (predicate, status_code, detail). First match wins.
QUEUE_ERROR_RULES: list[tuple[Callable[[Exception], bool], int, str]] = [
    (_is_database_error, STATUS_SERVICE_UNAVAILABLE, MSG_QUEUE_UNAVAILABLE),
]


def queue_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from a queue operation into an HTTPException.
    Uses QUEUE_ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    for predicate, status_code, detail in QUEUE_ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))


def not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=STATUS_NOT_FOUND, detail=detail)
