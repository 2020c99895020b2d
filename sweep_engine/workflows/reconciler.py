"""
Drift Reconciler for the Sweep Engine.

Finds accounts in the quarantine container that are still enabled and
disables them.
"""

import logging
from typing import List

from ..models import DirectoryQuery, FailureKind, SearchScope, SweepStage
from .base_workflow import BaseStage

logger = logging.getLogger(__name__)


class DriftReconciler(BaseStage):
    """Stage that repairs enabled accounts found in quarantine."""

    stage = SweepStage.RECONCILE

    def __init__(self, *args, protect_exceptions: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.protect_exceptions = protect_exceptions

    def execute(self, quarantine_path: str) -> List[str]:
        """
        Disable every enabled account in the quarantine container.

        Args:
            quarantine_path: DN of the quarantine container

        Returns:
            Names of the accounts that were disabled
        """
        self._start()
        disabled: List[str] = []

        try:
            drifted = self.directory.query(
                quarantine_path, SearchScope.SUBTREE, DirectoryQuery(enabled=True)
            )
        except Exception as e:
            message = f"Quarantine container {quarantine_path} could not be queried: {e}"
            self.result.warnings.append(message)
            self._record("warning", message, failure=FailureKind.QUERY_FAILURE)
            self._finish()
            return disabled

        for account in drifted:
            self.result.processed.append(account.name)

            if self.protect_exceptions and self.policy.is_exempt(account.name):
                self.result.skipped.append(account.name)
                self._record(
                    "ignored",
                    f"{account.name} ignored due to exception list (enabled in quarantine)",
                    account_name=account.name,
                )
                continue

            result = self.directory.set_enabled(account, False)
            if result.success:
                disabled.append(account.name)
                self.result.succeeded.append(account.name)
            else:
                error = result.error or result.message
                self._record_failure(
                    account.name,
                    FailureKind.DISABLE_FAILURE,
                    error,
                    f"Failed to disable {account.name} in {quarantine_path}: {error}",
                )

        if disabled:
            self._record("disabled", f"Disabled enabled accounts in quarantine: {', '.join(disabled)}")
        elif not drifted:
            self._record("none_found", "No enabled accounts found in quarantine")

        self._finish()
        return disabled
