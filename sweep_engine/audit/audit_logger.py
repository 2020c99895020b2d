"""
Audit Logging Module.

This module provides the audit trail for sweep actions. Every stage
writes through the AuditSink contract, so the destination can be a
newest-first log file in production or an in-memory list in tests.
"""

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Union

from ..engine.policy import format_timestamp
from ..models import AuditEntry

logger = logging.getLogger(__name__)


def format_entry(entry: AuditEntry) -> str:
    """Render an audit entry as a single log line."""
    message = " ".join(entry.message.splitlines())
    return f"{format_timestamp(entry.timestamp)} - {message}"


class AuditSink(ABC):
    """Append-only destination for audit entries."""

    @abstractmethod
    def append(self, entry: AuditEntry) -> None:
        """
        Record an audit entry.

        Args:
            entry: The entry to record
        """
        pass


class MemoryAuditSink(AuditSink):
    """
    In-memory audit sink.

    Keeps entries in the order they were appended; lines() returns them
    newest first, the way the file log reads.
    """

    def __init__(self):
        self.entries: List[AuditEntry] = []

    def append(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def lines(self) -> List[str]:
        return [format_entry(entry) for entry in reversed(self.entries)]

    def messages(self) -> List[str]:
        return [entry.message for entry in self.entries]

    def clear(self) -> None:
        self.entries.clear()


class FileAuditLog(AuditSink):
    """
    Newest-first audit log file.

    Each append writes the new line above all previous content. A file
    left untouched for max_age_days is cleared before the next write.
    With max_lines set, only the oldest lines are dropped, so the newest
    entries always survive.
    """

    def __init__(
        self,
        log_path: Union[str, Path] = "computer_sweep.log",
        max_age_days: int = 365,
        max_lines: Optional[int] = None,
    ):
        """
        Initialize the audit log.

        Args:
            log_path: File to write audit lines to
            max_age_days: Clear the file if it has not been written for this long
            max_lines: Keep at most this many lines (oldest dropped first)
        """
        self.log_path = Path(log_path)
        self.max_age_days = max_age_days
        self.max_lines = max_lines
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, entry: AuditEntry) -> None:
        try:
            self._reset_if_stale()

            lines = [format_entry(entry)]
            lines.extend(self._read_all())
            if self.max_lines is not None:
                lines = lines[:self.max_lines]

            tmp_path = self.log_path.with_name(self.log_path.name + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
            os.replace(tmp_path, self.log_path)

        except OSError as e:
            logger.error(f"Failed to write audit log {self.log_path}: {e}")
            raise

    def read_lines(self, limit: Optional[int] = None) -> List[str]:
        """
        Read audit lines, newest first.

        Args:
            limit: Maximum number of lines to return

        Returns:
            List of formatted audit lines
        """
        lines = self._read_all()
        if limit is not None:
            return lines[:limit]
        return lines

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """Whether the file has gone untouched for longer than max_age_days."""
        if not self.log_path.exists():
            return False

        now = now or datetime.now(timezone.utc)
        modified = datetime.fromtimestamp(self.log_path.stat().st_mtime, tz=timezone.utc)
        return now - modified > timedelta(days=self.max_age_days)

    def _reset_if_stale(self):
        if self.is_stale():
            logger.info(f"Audit log {self.log_path} untouched for {self.max_age_days} days, clearing")
            self.log_path.write_text("", encoding="utf-8")

    def _read_all(self) -> List[str]:
        if not self.log_path.exists():
            return []

        with open(self.log_path, encoding="utf-8") as f:
            return [line.rstrip("\n") for line in f if line.strip()]
