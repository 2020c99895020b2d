"""
Tests for the audit sinks.
"""

import os
import time
from datetime import timedelta

import pytest

from sweep_engine.audit import FileAuditLog, MemoryAuditSink, format_entry
from sweep_engine.models import AuditEntry, FailureKind, SweepStage

from conftest import NOW


def entry(message, offset_seconds=0, **kwargs):
    return AuditEntry(
        timestamp=NOW + timedelta(seconds=offset_seconds),
        stage=SweepStage.QUARANTINE,
        event_type="quarantined",
        message=message,
        **kwargs,
    )


class TestFormatEntry:
    """Test cases for format_entry."""

    def test_timestamp_prefix(self):
        assert format_entry(entry("PC1 moved")) == "17.10.2026 06:00:00 - PC1 moved"

    def test_multiline_message_collapsed(self):
        assert format_entry(entry("first\nsecond")) == "17.10.2026 06:00:00 - first second"


class TestMemoryAuditSink:
    """Test cases for MemoryAuditSink."""

    def test_entries_in_append_order(self):
        sink = MemoryAuditSink()
        sink.append(entry("one"))
        sink.append(entry("two", 1))

        assert sink.messages() == ["one", "two"]
        assert sink.lines() == [
            "17.10.2026 06:00:01 - two",
            "17.10.2026 06:00:00 - one",
        ]

    def test_clear(self):
        sink = MemoryAuditSink()
        sink.append(entry("one"))
        sink.clear()

        assert sink.entries == []


class TestFileAuditLog:
    """Test cases for FileAuditLog."""

    @pytest.fixture
    def log_path(self, tmp_path):
        return tmp_path / "logs" / "computer_sweep.log"

    def test_creates_parent_directory(self, log_path):
        FileAuditLog(log_path)
        assert log_path.parent.is_dir()

    def test_newest_entry_first(self, log_path):
        audit_log = FileAuditLog(log_path)
        audit_log.append(entry("first"))
        audit_log.append(entry("second", 1))
        audit_log.append(entry("third", 2))

        assert log_path.read_text(encoding="utf-8").splitlines() == [
            "17.10.2026 06:00:02 - third",
            "17.10.2026 06:00:01 - second",
            "17.10.2026 06:00:00 - first",
        ]

    def test_read_lines_limit(self, log_path):
        audit_log = FileAuditLog(log_path)
        for i in range(5):
            audit_log.append(entry(f"event {i}", i))

        assert audit_log.read_lines(2) == [
            "17.10.2026 06:00:04 - event 4",
            "17.10.2026 06:00:03 - event 3",
        ]

    def test_read_missing_file(self, log_path):
        assert FileAuditLog(log_path).read_lines() == []

    def test_stale_log_is_cleared(self, log_path):
        audit_log = FileAuditLog(log_path, max_age_days=365)
        audit_log.append(entry("ancient"))

        old = time.time() - 400 * 86400
        os.utime(log_path, (old, old))
        assert audit_log.is_stale()

        audit_log.append(entry("fresh"))

        assert audit_log.read_lines() == ["17.10.2026 06:00:00 - fresh"]

    def test_recent_log_is_kept(self, log_path):
        audit_log = FileAuditLog(log_path, max_age_days=365)
        audit_log.append(entry("recent"))

        old = time.time() - 300 * 86400
        os.utime(log_path, (old, old))
        audit_log.append(entry("fresh", 1))

        assert len(audit_log.read_lines()) == 2

    def test_max_lines_drops_oldest(self, log_path):
        audit_log = FileAuditLog(log_path, max_lines=2)
        for i in range(4):
            audit_log.append(entry(f"event {i}", i))

        assert audit_log.read_lines() == [
            "17.10.2026 06:00:03 - event 3",
            "17.10.2026 06:00:02 - event 2",
        ]

    def test_failure_entries_use_same_format(self, log_path):
        audit_log = FileAuditLog(log_path)
        audit_log.append(entry("Failed to move PC1", success=False, failure=FailureKind.MOVE_FAILURE))

        assert audit_log.read_lines() == ["17.10.2026 06:00:00 - Failed to move PC1"]
