"""
Lifecycle Policy for the Sweep Engine.

Turns the configured thresholds into decisions: which activity counts
as inactive, which names are exempt, and when a quarantined account is
old enough to delete. Also holds the FILETIME and date conversions
shared by the stages.
"""

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from ..models import FILETIME_EPOCH, MachineAccount

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d.%m.%Y"
TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def datetime_to_filetime(dt: datetime) -> int:
    """Convert a datetime to Windows FILETIME (100 ns ticks since 1601)."""
    delta = _as_utc(dt) - FILETIME_EPOCH
    return (delta.days * 86400 + delta.seconds) * 10_000_000 + delta.microseconds * 10


def filetime_to_datetime(ticks: Optional[int]) -> Optional[datetime]:
    """Convert Windows FILETIME to an aware UTC datetime; 0 or None means never."""
    if not ticks:
        return None
    return FILETIME_EPOCH + timedelta(microseconds=ticks // 10)


def format_date(dt: Optional[datetime], tz: Optional[tzinfo] = None) -> str:
    """Format as dd.MM.yyyy (in ``tz`` when given), or 'never' when there is no date."""
    if dt is None:
        return "never"
    if tz is not None:
        dt = _as_utc(dt).astimezone(tz)
    return dt.strftime(DATE_FORMAT)


def format_timestamp(dt: datetime) -> str:
    """Format as dd.MM.yyyy HH:mm:ss."""
    return dt.strftime(TIMESTAMP_FORMAT)


class LifecyclePolicy:
    """
    Time and exception rules for the account lifecycle.

    Deletion eligibility is always computed from the account's
    last-changed timestamp. The description stamped at quarantine time
    is informational and never consulted here.
    """

    def __init__(
        self,
        inactivity_days: int,
        retention_days: int,
        exception_names: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the policy.

        Args:
            inactivity_days: Days without activity before an account is a candidate
            retention_days: Days an account stays disabled in quarantine before deletion
            exception_names: Account names that are never quarantined
        """
        if inactivity_days < 1:
            raise ValueError("inactivity_days must be at least 1")
        if retention_days < 0:
            raise ValueError("retention_days must not be negative")

        self.inactivity_days = inactivity_days
        self.retention_days = retention_days
        self.exception_names = {name.strip() for name in (exception_names or []) if name}
        self._exceptions_folded = {name.casefold() for name in self.exception_names}

    @classmethod
    def from_config(cls, config) -> "LifecyclePolicy":
        return cls(
            inactivity_days=config.inactivity_days,
            retention_days=config.retention_days,
            exception_names=config.exception_names,
        )

    def inactivity_cutoff(self, now: datetime) -> int:
        """
        FILETIME boundary for inactivity.

        Accounts whose last activity is at or before this value (or who
        have no recorded activity) are inactive.
        """
        return datetime_to_filetime(now - timedelta(days=self.inactivity_days))

    def is_exempt(self, name: str) -> bool:
        """Check the exception list; directory names compare case-insensitively."""
        return name.strip().casefold() in self._exceptions_folded

    def age_in_days(self, account: MachineAccount, now: datetime) -> Optional[int]:
        """Whole days since the account was last changed, or None if unknown."""
        if account.last_changed_timestamp is None:
            return None
        elapsed = _as_utc(now) - _as_utc(account.last_changed_timestamp)
        return elapsed.days

    def is_due_for_deletion(self, account: MachineAccount, now: datetime) -> bool:
        """A disabled account is due once its age reaches the retention period."""
        if account.enabled:
            return False

        age = self.age_in_days(account, now)
        if age is None:
            logger.warning(f"No change timestamp for {account.name}; not eligible for deletion")
            return False

        return age >= self.retention_days

    def deletion_date(self, now: datetime) -> datetime:
        return now + timedelta(days=self.retention_days)

    def quarantine_description(self, now: datetime) -> str:
        """Annotation stamped on an account when it is quarantined."""
        return (
            f"Disabled on {format_date(now)}, "
            f"eligible for deletion on {format_date(self.deletion_date(now))}"
        )
