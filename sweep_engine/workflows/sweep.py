"""
Lifecycle Sweep for the Sweep Engine.

Runs the four stages once, in order: scan, quarantine, reconcile, reap.
"""

import logging
import uuid
from typing import Callable, Optional

from ..audit.audit_logger import AuditSink
from ..config import SweepConfig
from ..connectors import DirectoryConnector
from ..engine.policy import LifecyclePolicy
from ..models import AuditEntry, ScanResult, StageResult, SweepResult, SweepStage
from .base_workflow import BaseStage, Clock, local_now, utc_now
from .quarantine import QuarantineTransitioner
from .reaper import RetentionReaper
from .reconciler import DriftReconciler
from .scanner import InventoryScanner

logger = logging.getLogger(__name__)


class LifecycleSweep:
    """
    One pass of the computer-account lifecycle.

    Each stage is independent: an unexpected error escaping one stage is
    recorded and the following stages still run.
    """

    def __init__(
        self,
        config: SweepConfig,
        directory: DirectoryConnector,
        audit_log: AuditSink,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the sweep.

        Args:
            config: Validated sweep configuration
            directory: Directory connector
            audit_log: Destination for audit entries
            clock: Returns the current time; defaults to local time, or UTC
                when the configuration sets local_time to false
        """
        self.config = config
        self.directory = directory
        self.audit_log = audit_log
        self.clock = clock or (local_now if config.local_time else utc_now)
        self.policy = LifecyclePolicy.from_config(config)
        self.run_id = str(uuid.uuid4())

    def _stage_kwargs(self):
        return {
            "directory": self.directory,
            "audit_log": self.audit_log,
            "policy": self.policy,
            "clock": self.clock,
            "run_id": self.run_id,
        }

    def scanner(self) -> InventoryScanner:
        return InventoryScanner(**self._stage_kwargs())

    def transitioner(self) -> QuarantineTransitioner:
        return QuarantineTransitioner(**self._stage_kwargs())

    def reconciler(self) -> DriftReconciler:
        return DriftReconciler(
            protect_exceptions=self.config.protect_exceptions_in_quarantine, **self._stage_kwargs()
        )

    def reaper(self) -> RetentionReaper:
        return RetentionReaper(
            protect_exceptions=self.config.protect_exceptions_in_quarantine, **self._stage_kwargs()
        )

    def run(self) -> SweepResult:
        """
        Execute all four stages.

        Returns:
            SweepResult with one StageResult per stage
        """
        result = SweepResult(run_id=self.run_id, started_at=self.clock())
        self._record("started", f"Computer account sweep started (run {self.run_id})")

        scan = self._run_stage(
            result,
            self.scanner(),
            lambda stage: stage.execute(
                self.config.search_roots, self.config.search_scope, self.config.quarantine_path
            ),
        )
        candidates = scan.candidates if isinstance(scan, ScanResult) else []

        self._run_stage(
            result,
            self.transitioner(),
            lambda stage: stage.execute(candidates, self.config.quarantine_path),
        )
        self._run_stage(result, self.reconciler(), lambda stage: stage.execute(self.config.quarantine_path))
        self._run_stage(result, self.reaper(), lambda stage: stage.execute(self.config.quarantine_path))

        result.completed_at = self.clock()
        failures = sum(len(stage.failures) for stage in result.stages)
        self._record("completed", f"Computer account sweep completed with {failures} failures")
        return result

    def _run_stage(self, result: SweepResult, stage: BaseStage, action: Callable[[BaseStage], object]):
        try:
            outcome = action(stage)
        except Exception as e:
            logger.exception(f"{stage.stage.value} stage failed")
            self._record("error", f"{stage.stage.value} stage aborted: {e}", success=False)
            outcome = None
            if stage.result is None:
                stage.result = StageResult(stage=stage.stage, started_at=self.clock())
            stage.result.completed_at = self.clock()
            stage.result.warnings.append(f"stage aborted: {e}")

        if stage.result is not None:
            result.stages.append(stage.result)
        return outcome

    def _record(self, event_type: str, message: str, success: bool = True):
        self.audit_log.append(
            AuditEntry(
                timestamp=self.clock(),
                stage=SweepStage.SWEEP,
                event_type=event_type,
                message=message,
                success=success,
                run_id=self.run_id,
            )
        )
        if success:
            logger.info(message)
        else:
            logger.error(message)
