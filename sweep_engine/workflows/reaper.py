"""
Retention Reaper for the Sweep Engine.

Permanently deletes quarantined accounts, and any objects nested below
them, once they have been disabled for the retention period.
"""

import logging
from typing import List

from ..connectors import ConnectorResult
from ..models import DirectoryQuery, FailureKind, MachineAccount, SearchScope, SweepStage
from .base_workflow import BaseStage

logger = logging.getLogger(__name__)


class RetentionReaper(BaseStage):
    """
    Stage that deletes expired quarantined accounts.

    Eligibility is recomputed from each account's last-changed timestamp
    at reap time; the description stamped during quarantine is ignored.
    """

    stage = SweepStage.REAP

    def __init__(self, *args, protect_exceptions: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.protect_exceptions = protect_exceptions

    def execute(self, quarantine_path: str) -> List[str]:
        """
        Delete every disabled account in quarantine older than the retention period.

        Args:
            quarantine_path: DN of the quarantine container

        Returns:
            Names of the deleted accounts
        """
        self._start()
        removed: List[str] = []

        try:
            quarantined = self.directory.query(quarantine_path, SearchScope.SUBTREE, DirectoryQuery())
        except Exception as e:
            message = f"Quarantine container {quarantine_path} could not be queried: {e}"
            self.result.warnings.append(message)
            self._record("warning", message, failure=FailureKind.QUERY_FAILURE)
            self._finish()
            return removed

        now = self.clock()
        eligible = [account for account in quarantined if self.policy.is_due_for_deletion(account, now)]

        for account in eligible:
            self.result.processed.append(account.name)

            if self.protect_exceptions and self.policy.is_exempt(account.name):
                self.result.skipped.append(account.name)
                self._record(
                    "ignored",
                    f"{account.name} ignored due to exception list (retention expired)",
                    account_name=account.name,
                )
                continue

            result = self._delete_account(account)
            if result.success:
                removed.append(account.name)
                self.result.succeeded.append(account.name)
            else:
                error = result.error or result.message
                self._record_failure(
                    account.name,
                    FailureKind.DELETE_FAILURE,
                    error,
                    f"Failed to delete {account.name} from {account.path}: {error}",
                )

        if removed:
            self._record(
                "deleted",
                f"Deleted accounts disabled for {self.policy.retention_days} days or more: "
                f"{', '.join(removed)}",
            )
        elif not eligible:
            self._record("none_found", "No quarantined accounts are due for deletion")

        self._finish()
        return removed

    def _delete_account(self, account: MachineAccount) -> ConnectorResult:
        """Delete child objects first, then the account itself."""
        for child in self.directory.list_children(account):
            result = self.directory.delete_object(child, recursive=True)
            if not result.success:
                return ConnectorResult(
                    False,
                    f"Could not delete child object {child}",
                    error=f"child object {child}: {result.error or result.message}",
                )
            logger.debug(f"Deleted child object {child} of {account.name}")

        return self.directory.delete_object(account.distinguished_name)
