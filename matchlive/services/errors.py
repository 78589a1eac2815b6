"""
Error taxonomy for the live match tracker.

Validation errors are raised before any store call and leave state untouched.
Store errors are transient backend failures; the operator retries by issuing
the same command again.
"""
from __future__ import annotations

from typing import Optional


class MatchLiveError(Exception):
    """Base class for errors raised by the live match services."""


class ValidationError(MatchLiveError):
    """A command was rejected before reaching the store."""


class NotFoundError(ValidationError):
    """A referenced match, event or participant does not exist."""


class StoreError(MatchLiveError):
    """
    The persistent store failed to complete an operation.

    Args:
        message: Human-readable description of the failure
        operation: Name of the store operation that failed
    """

    def __init__(self, message: str, *, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class FinalizationError(MatchLiveError):
    """Finalizing a match failed; nothing was committed."""
