"""Exceptions raised by the grooming desk core."""

from __future__ import annotations


class ValidationError(RuntimeError):
    """Raised when incoming data fails validation."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(ValidationError):
    """Raised when a referenced record does not exist."""


class TransitionError(ValidationError):
    """Raised when a queue entry cannot move to the requested status."""


class PersistenceError(RuntimeError):
    """Raised when the backing store fails to read or write."""
