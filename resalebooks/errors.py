"""
Domain Errors

Every failure the engine reports carries the name of the operation that
failed so that callers can show an explicit message instead of a silent no-op.
"""

from typing import Optional


class BooksError(Exception):
    """Base class for engine failures."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class InvalidInput(BooksError):
    """Rejected before any store call (empty required name, bad value)."""


class InvalidHierarchy(InvalidInput):
    """A taxonomy parent is missing or does not resolve."""


class NotFound(BooksError):
    """The edit/delete target no longer exists or is not visible to the actor."""


class Conflict(BooksError):
    """A uniqueness constraint rejected a write."""


class StoreUnavailable(BooksError):
    """The record store could not be reached or failed the request."""


__all__ = [
    "BooksError",
    "InvalidInput",
    "InvalidHierarchy",
    "NotFound",
    "Conflict",
    "StoreUnavailable",
]
