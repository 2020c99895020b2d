"""
Core data models for the Sweep Engine.

This module defines the Pydantic models used throughout the system
for machine accounts, directory queries, audit entries, and stage results.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


class SearchScope(str, Enum):
    """How far below a search root the directory is queried."""
    SUBTREE = "subtree"
    ONE_LEVEL = "oneLevel"


class SweepStage(str, Enum):
    """Stages of a lifecycle sweep, in execution order."""
    SCAN = "scan"
    QUARANTINE = "quarantine"
    RECONCILE = "reconcile"
    REAP = "reap"
    SWEEP = "sweep"


class FailureKind(str, Enum):
    """Recoverable failure categories recorded in the audit trail."""
    QUERY_FAILURE = "QueryFailure"
    MOVE_FAILURE = "MoveFailure"
    DISABLE_FAILURE = "DisableFailure"
    ANNOTATE_FAILURE = "AnnotateFailure"
    DELETE_FAILURE = "DeleteFailure"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def split_distinguished_name(dn: str) -> List[str]:
    """Split a DN into its RDN components, honouring escaped commas."""
    parts = []
    current = []
    escaped = False
    for char in dn:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char == ",":
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    if current:
        parts.append("".join(current).strip())
    return [p for p in parts if p]


def is_within(path: str, root: str, scope: SearchScope = SearchScope.SUBTREE) -> bool:
    """
    Check whether a container path lies under a search root.

    Args:
        path: Container DN of the object
        root: Search root DN
        scope: SUBTREE matches the root and everything below it,
               ONE_LEVEL matches only objects directly in the root

    Returns:
        True if an object in ``path`` is covered by the search
    """
    path_parts = [p.lower() for p in split_distinguished_name(path)]
    root_parts = [p.lower() for p in split_distinguished_name(root)]

    if scope == SearchScope.ONE_LEVEL:
        return path_parts == root_parts

    if len(path_parts) < len(root_parts):
        return False
    return path_parts[len(path_parts) - len(root_parts):] == root_parts


class MachineAccount(BaseModel):
    """A directory object representing a computer's identity record."""
    name: str = Field(..., description="Short name, unique within its container")
    path: str = Field(..., description="DN of the container holding the account")
    last_activity_timestamp: Optional[int] = Field(
        None, description="Last authentication time as Windows FILETIME ticks"
    )
    enabled: bool = True
    last_changed_timestamp: Optional[datetime] = Field(
        None, description="Last metadata modification time"
    )
    description: Optional[str] = None

    @field_validator('name', 'path')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Names and paths are used to build DNs and must not be blank."""
        if not v or not v.strip():
            raise ValueError('must not be blank')
        return v.strip()

    @field_validator('last_activity_timestamp')
    @classmethod
    def normalize_never_active(cls, v: Optional[int]) -> Optional[int]:
        """AD reports 0 for accounts that never authenticated."""
        if v is not None and v <= 0:
            return None
        return v

    @property
    def distinguished_name(self) -> str:
        return f"CN={self.name},{self.path}"

    @property
    def last_activity_at(self) -> Optional[datetime]:
        if self.last_activity_timestamp is None:
            return None
        return FILETIME_EPOCH + timedelta(microseconds=self.last_activity_timestamp // 10)


class DirectoryQuery(BaseModel):
    """
    Predicate passed to a directory connector.

    Container membership is expressed through the root and scope
    arguments of the query call; this model carries the attribute filters.
    """
    enabled: Optional[bool] = Field(None, description="Match only this account status")
    inactive_since: Optional[int] = Field(
        None,
        description="FILETIME cutoff; matches activity at or before it, or no activity at all",
    )

    def matches(self, account: MachineAccount) -> bool:
        """Evaluate the predicate against an account held in memory."""
        if self.enabled is not None and account.enabled != self.enabled:
            return False

        if self.inactive_since is not None:
            last = account.last_activity_timestamp
            if last is not None and last > self.inactive_since:
                return False

        return True


class AuditEntry(BaseModel):
    """One event in the sweep audit trail."""
    timestamp: datetime = Field(default_factory=_utcnow)
    stage: SweepStage
    event_type: str = Field(..., description="Short event code (moved, ignored, deleted, ...)")
    message: str
    account_name: Optional[str] = None
    success: bool = True
    failure: Optional[FailureKind] = None
    run_id: Optional[str] = None


class ScanResult(BaseModel):
    """Candidates found by the inventory scanner."""
    candidates: List[MachineAccount] = Field(default_factory=list)
    failed_roots: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [account.name for account in self.candidates]


class StageResult(BaseModel):
    """Outcome of a single sweep stage."""
    stage: SweepStage
    started_at: datetime
    completed_at: Optional[datetime] = None
    processed: List[str] = Field(default_factory=list)
    succeeded: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failures: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures and not self.warnings


class SweepResult(BaseModel):
    """Result of a complete sweep execution."""
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    stages: List[StageResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(stage.success for stage in self.stages)

    def get_stage(self, stage: SweepStage) -> Optional[StageResult]:
        for result in self.stages:
            if result.stage == stage:
                return result
        return None


# Type aliases for convenience
MachineAccounts = List[MachineAccount]
AuditEntries = List[AuditEntry]
