"""
Base Stage Classes for the Sweep Engine.

This module provides the foundation for the scanner, quarantine,
reconcile and reap stages: a shared clock, audit trail and result
bookkeeping, so every stage records its actions the same way.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..audit.audit_logger import AuditSink
from ..connectors import DirectoryConnector
from ..engine.policy import LifecyclePolicy
from ..models import AuditEntry, FailureKind, StageResult, SweepStage

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Current time as an aware datetime in the host's local zone."""
    return datetime.now(timezone.utc).astimezone()


class BaseStage(ABC):
    """
    Abstract base class for sweep stages.

    Every stage reads and mutates the directory through a connector and
    writes one audit entry per event, in processing order.
    """

    stage: SweepStage

    def __init__(
        self,
        directory: DirectoryConnector,
        audit_log: AuditSink,
        policy: LifecyclePolicy,
        clock: Optional[Clock] = None,
        run_id: Optional[str] = None,
    ):
        """
        Initialize the stage.

        Args:
            directory: Directory connector to read and mutate accounts through
            audit_log: Destination for audit entries
            policy: Lifecycle thresholds and exception list
            clock: Returns the current time; defaults to UTC now
            run_id: Identifier shared by all stages of one sweep
        """
        self.directory = directory
        self.audit_log = audit_log
        self.policy = policy
        self.clock = clock or utc_now
        self.run_id = run_id or str(uuid.uuid4())
        self.result: Optional[StageResult] = None

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Run the stage."""
        pass

    def _start(self) -> StageResult:
        self.result = StageResult(stage=self.stage, started_at=self.clock())
        logger.info(f"Starting {self.stage.value} stage (run {self.run_id})")
        return self.result

    def _finish(self) -> StageResult:
        self.result.completed_at = self.clock()
        logger.info(
            f"Completed {self.stage.value} stage: {len(self.result.succeeded)} succeeded, "
            f"{len(self.result.failures)} failed"
        )
        return self.result

    def _record(
        self,
        event_type: str,
        message: str,
        account_name: Optional[str] = None,
        failure: Optional[FailureKind] = None,
    ) -> AuditEntry:
        """
        Append an audit entry and mirror it to the module logger.

        Args:
            event_type: Short event code
            message: Human-readable line for the audit log
            account_name: Account the event concerns, if any
            failure: Failure category when the event is an error

        Returns:
            The recorded entry
        """
        entry = AuditEntry(
            timestamp=self.clock(),
            stage=self.stage,
            event_type=event_type,
            message=message,
            account_name=account_name,
            success=failure is None,
            failure=failure,
            run_id=self.run_id,
        )
        self.audit_log.append(entry)

        if failure is None:
            logger.info(message)
        else:
            logger.error(f"{failure.value}: {message}")
        return entry

    def _record_failure(self, account_name: str, kind: FailureKind, error: str, message: str):
        if self.result is not None:
            self.result.failures.append({"account": account_name, "kind": kind.value, "error": error})
        self._record("error", message, account_name=account_name, failure=kind)

    def get_execution_summary(self) -> Dict[str, Any]:
        """Get summary of stage execution."""
        result = self.result
        failures: List[Dict[str, Any]] = result.failures if result else []
        return {
            "run_id": self.run_id,
            "stage": self.stage.value,
            "started_at": result.started_at.isoformat() if result else None,
            "completed_at": result.completed_at.isoformat() if result and result.completed_at else None,
            "processed": len(result.processed) if result else 0,
            "succeeded": len(result.succeeded) if result else 0,
            "failed": len(failures),
            "errors": [f"{f['account']}: {f['kind']} ({f['error']})" for f in failures],
        }
