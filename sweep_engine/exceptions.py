"""
Exception types for the Sweep Engine.

Only conditions that abort an operation are exceptions. Per-account
mutation failures are reported as ConnectorResult values and recorded
in the audit trail with a FailureKind.
"""

from typing import Optional


class SweepError(Exception):
    """Base class for all Sweep Engine errors."""


class ConfigError(SweepError):
    """Configuration file missing, unreadable or invalid."""


class DirectoryError(SweepError):
    """A directory operation could not be performed."""


class QueryFailure(DirectoryError):
    """A search root could not be queried."""

    def __init__(self, root: str, message: str, cause: Optional[Exception] = None):
        super().__init__(f"Query against {root} failed: {message}")
        self.root = root
        self.cause = cause


class InvalidTransitionError(SweepError, ValueError):
    """An account transition was attempted out of order."""
