"""
Quarantine Transitioner for the Sweep Engine.

Moves inactive accounts into the quarantine container, disables them
and stamps their description with the disable and deletion dates.
"""

import logging
from typing import List, Sequence

from ..engine.policy import format_date
from ..engine.state_machine import AccountTransition, TransitionState
from ..models import FailureKind, MachineAccount, SweepStage, is_within
from .base_workflow import BaseStage

logger = logging.getLogger(__name__)


class QuarantineTransitioner(BaseStage):
    """
    Stage that quarantines candidate accounts.

    Each account is handled independently as a best-effort sequence:
    move, disable, annotate. Nothing is rolled back. An account whose
    disable fails stays moved but enabled until the drift reconciler
    picks it up on the next run.
    """

    stage = SweepStage.QUARANTINE

    def execute(self, candidates: Sequence[MachineAccount], quarantine_path: str) -> List[AccountTransition]:
        """
        Quarantine each candidate account.

        Args:
            candidates: Accounts found by the scanner, in processing order
            quarantine_path: DN of the quarantine container

        Returns:
            One AccountTransition per non-exempt candidate
        """
        self._start()
        transitions: List[AccountTransition] = []

        if not candidates:
            self._record("none_found", "No machine accounts to quarantine")
            self._finish()
            return transitions

        for account in candidates:
            self.result.processed.append(account.name)

            if self.policy.is_exempt(account.name):
                self.result.skipped.append(account.name)
                self._record(
                    "ignored",
                    f"{account.name} ignored due to exception list ({account.path})",
                    account_name=account.name,
                )
                continue

            if is_within(account.path, quarantine_path):
                logger.debug(f"{account.name} is already in {quarantine_path}; left to the drift reconciler")
                self.result.skipped.append(account.name)
                continue

            transition = self._quarantine_account(account, quarantine_path)
            transitions.append(transition)
            if transition.is_quarantined:
                self.result.succeeded.append(account.name)

        self._finish()
        return transitions

    def _quarantine_account(self, account: MachineAccount, quarantine_path: str) -> AccountTransition:
        transition = AccountTransition(account, quarantine_path)

        result = self.directory.move(account, quarantine_path)
        if not result.success:
            self._fail(
                transition,
                FailureKind.MOVE_FAILURE,
                result.error or result.message,
                f"Failed to move {account.name} from {account.path} to {quarantine_path}",
            )
            return transition
        transition.advance(TransitionState.MOVED, self.clock())

        moved = account.model_copy(update={"path": quarantine_path})

        result = self.directory.set_enabled(moved, False)
        if not result.success:
            self._fail(
                transition,
                FailureKind.DISABLE_FAILURE,
                result.error or result.message,
                f"Failed to disable {account.name} in {quarantine_path}; "
                f"left enabled for the next drift check",
            )
            return transition
        transition.advance(TransitionState.DISABLED, self.clock())

        now = self.clock()
        result = self.directory.set_description(moved, self.policy.quarantine_description(now))
        if result.success:
            transition.advance(TransitionState.ANNOTATED, now)
        else:
            self._fail(
                transition,
                FailureKind.ANNOTATE_FAILURE,
                result.error or result.message,
                f"Failed to update the description of {account.name}",
            )

        self._record(
            "quarantined",
            f"{account.name} moved from {account.path} to {quarantine_path} and disabled "
            f"(last activity: {format_date(account.last_activity_at, now.tzinfo)})",
            account_name=account.name,
        )
        return transition

    def _fail(self, transition: AccountTransition, kind: FailureKind, error: str, message: str):
        transition.fail(kind, error)
        self._record_failure(transition.account.name, kind, error, f"{message}: {error}")
