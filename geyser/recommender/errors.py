"""Exceptions raised by the Geyser recommendation core.

Every error carries a human-readable message plus a ``details`` dictionary
that the CLI and the HTTP service surface to the caller. The concrete error
kinds also derive from the matching builtin exception so callers that only
know about ``ValueError`` or ``LookupError`` still catch them.
"""

from typing import Any, Dict, Optional


class GeyserError(Exception):
    """Base exception for Geyser errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize exception.

        Args:
            message: Human-readable error message
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidArgument(GeyserError, ValueError):
    """Raised for invalid hyperparameters, votes or an empty dataset."""


class NotFound(GeyserError, LookupError):
    """Raised when a user or item index or external id is unknown."""

    def __init__(self, kind: str, key: Any):
        super().__init__(
            f"Unknown {kind}: {key!r}",
            details={"kind": kind, "key": key},
        )
        self.kind = kind
        self.key = key


class DimensionMismatch(GeyserError, ValueError):
    """Raised when model tables do not match a rating store's index space."""

    def __init__(self, expected: tuple, actual: tuple):
        super().__init__(
            f"Model dimensions {actual} do not match rating store "
            f"dimensions {expected}",
            details={"expected": list(expected), "actual": list(actual)},
        )
        self.expected = expected
        self.actual = actual
