"""
Shared fixtures for the Sweep Engine tests.

All tests run against the in-memory directory with a fixed clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from sweep_engine.audit import MemoryAuditSink
from sweep_engine.connectors import MockDirectoryConnector
from sweep_engine.engine.policy import LifecyclePolicy, datetime_to_filetime
from sweep_engine.models import MachineAccount

NOW = datetime(2026, 10, 17, 6, 0, 0, tzinfo=timezone.utc)

ROOT_A = "OU=Workstations,DC=corp,DC=local"
ROOT_B = "OU=Servers,DC=corp,DC=local"
QUARANTINE = "OU=Quarantine,DC=corp,DC=local"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0):
        self.now = self.now + timedelta(days=days, hours=hours)


def make_account(
    name: str,
    path: str = ROOT_A,
    inactive_days: Optional[float] = None,
    enabled: bool = True,
    changed_days_ago: Optional[float] = None,
    description: Optional[str] = None,
    now: datetime = NOW,
) -> MachineAccount:
    """Build an account relative to the fixed clock; no inactive_days means never active."""
    return MachineAccount(
        name=name,
        path=path,
        last_activity_timestamp=(
            datetime_to_filetime(now - timedelta(days=inactive_days)) if inactive_days is not None else None
        ),
        enabled=enabled,
        last_changed_timestamp=now - timedelta(days=changed_days_ago or 0),
        description=description,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def directory(clock):
    return MockDirectoryConnector(clock=clock)


@pytest.fixture
def audit_log():
    return MemoryAuditSink()


@pytest.fixture
def policy():
    return LifecyclePolicy(inactivity_days=90, retention_days=30, exception_names=["X1"])


@pytest.fixture
def stage_kwargs(directory, audit_log, policy, clock):
    return {
        "directory": directory,
        "audit_log": audit_log,
        "policy": policy,
        "clock": clock,
        "run_id": "test-run",
    }
