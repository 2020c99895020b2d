"""
Inventory Scanner for the Sweep Engine.

Finds enabled machine accounts whose last activity is older than the
inactivity threshold, across all configured search roots.
"""

import logging
from typing import List, Optional, Sequence

from ..models import (
    DirectoryQuery,
    FailureKind,
    MachineAccount,
    ScanResult,
    SearchScope,
    SweepStage,
    is_within,
)
from .base_workflow import BaseStage

logger = logging.getLogger(__name__)


class InventoryScanner(BaseStage):
    """
    Stage that discovers inactive, enabled, non-exempt accounts.

    A root that cannot be queried is skipped with a warning; the
    remaining roots are still scanned.
    """

    stage = SweepStage.SCAN

    def execute(
        self,
        search_roots: Sequence[str],
        scope: SearchScope = SearchScope.SUBTREE,
        quarantine_path: Optional[str] = None,
    ) -> ScanResult:
        """
        Scan all search roots for inactive accounts.

        Args:
            search_roots: Container DNs to search, in order
            scope: Search the whole subtree or immediate children only
            quarantine_path: Quarantine container; accounts already inside it
                are left to the drift reconciler

        Returns:
            ScanResult with candidates in root order, then directory order
        """
        self._start()
        scan = ScanResult()

        cutoff = self.policy.inactivity_cutoff(self.clock())
        query = DirectoryQuery(enabled=True, inactive_since=cutoff)

        found: List[MachineAccount] = []
        for root in search_roots:
            try:
                accounts = self.directory.query(root, scope, query)
            except Exception as e:
                self._skip_root(scan, root, str(e))
                continue

            logger.debug(f"{len(accounts)} inactive accounts under {root}")
            found.extend(accounts)

        for account in found:
            if quarantine_path and is_within(account.path, quarantine_path):
                logger.debug(f"{account.name} is already in quarantine; not a candidate")
                continue

            self.result.processed.append(account.name)
            if self.policy.is_exempt(account.name):
                logger.debug(f"Excluding exception-listed account {account.name} from candidates")
                self.result.skipped.append(account.name)
                continue
            scan.candidates.append(account)
            self.result.succeeded.append(account.name)

        if not scan.candidates:
            self._record(
                "none_found",
                f"No machine accounts inactive for {self.policy.inactivity_days} days or more were found",
            )
        else:
            self._record(
                "scanned",
                f"Found {len(scan.candidates)} machine accounts inactive for "
                f"{self.policy.inactivity_days} days or more: {', '.join(scan.names)}",
            )

        self._finish()
        return scan

    def _skip_root(self, scan: ScanResult, root: str, error: str):
        message = f"Search root {root} could not be queried and was skipped: {error}"
        scan.failed_roots.append(root)
        scan.warnings.append(message)
        self.result.warnings.append(message)
        self._record("warning", message, failure=FailureKind.QUERY_FAILURE)
