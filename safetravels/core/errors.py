"""
safetravels/core/errors.py — Error taxonomy for report ingestion
Every failure the service can surface maps to exactly one of these types.
The HTTP layer (main.py) translates them to status codes.
"""
from __future__ import annotations

from typing import Optional


class SafeTravelsError(Exception):
    """Base class for all service errors."""


class ClientInputError(SafeTravelsError):
    """
    A submitted field is missing, malformed, out of range or disallowed.
    Always recoverable by the caller correcting the input. Maps to HTTP 400.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class ThrottledError(SafeTravelsError):
    """Submission quota exhausted for the current window. Maps to HTTP 429."""

    def __init__(self, retry_after: Optional[float] = None) -> None:
        super().__init__("Submission quota exhausted for the current window.")
        self.retry_after = retry_after

    @property
    def retry_after_seconds(self) -> Optional[int]:
        """Whole seconds for the Retry-After header (rounded up, at least 1)."""
        if self.retry_after is None:
            return None
        whole = int(self.retry_after)
        if whole < self.retry_after:
            whole += 1
        return max(1, whole)


class StorageError(SafeTravelsError):
    """Durable read or write failed. Details are logged, never returned."""


class ConfigurationError(SafeTravelsError):
    """Invalid tag catalog or limiter parameters. Fatal at startup."""
