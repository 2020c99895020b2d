"""
Quarantine transition state machine.

Moving an account into quarantine is a best-effort sequence with no
rollback. Each account is tracked through Located -> Moved -> Disabled
-> Annotated so that a partial outcome is explicit: an account that
stops at Moved is still enabled and is left for the drift reconciler.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidTransitionError
from ..models import FailureKind, MachineAccount

logger = logging.getLogger(__name__)


class TransitionState(str, Enum):
    """Where an account stands in the quarantine sequence."""
    LOCATED = "Located"
    MOVED = "Moved"
    DISABLED = "Disabled"
    ANNOTATED = "Annotated"


_NEXT_STATE = {
    TransitionState.LOCATED: TransitionState.MOVED,
    TransitionState.MOVED: TransitionState.DISABLED,
    TransitionState.DISABLED: TransitionState.ANNOTATED,
}


class TransitionRecord:
    """A single state change."""

    def __init__(self, from_state: TransitionState, to_state: TransitionState, at: datetime):
        self.from_state = from_state
        self.to_state = to_state
        self.at = at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_state.value,
            "to": self.to_state.value,
            "at": self.at.isoformat(),
        }


class AccountTransition:
    """Tracks one account through the quarantine sequence."""

    def __init__(self, account: MachineAccount, target_path: str):
        self.account = account
        self.source_path = account.path
        self.target_path = target_path
        self.state = TransitionState.LOCATED
        self.history: List[TransitionRecord] = []
        self.failure: Optional[FailureKind] = None
        self.error: Optional[str] = None

    def advance(self, to_state: TransitionState, at: Optional[datetime] = None) -> None:
        """
        Move to the next state.

        Args:
            to_state: The state being entered; must directly follow the current one
            at: When the transition happened

        Raises:
            InvalidTransitionError: If the transition skips or repeats a state,
                or the transition has already failed
        """
        if self.failure is not None:
            raise InvalidTransitionError(
                f"{self.account.name} stopped at {self.state.value} after {self.failure.value}"
            )

        expected = _NEXT_STATE.get(self.state)
        if to_state != expected:
            raise InvalidTransitionError(
                f"{self.account.name} cannot go from {self.state.value} to {to_state.value}"
            )

        record = TransitionRecord(self.state, to_state, at or datetime.now(timezone.utc))
        self.history.append(record)
        self.state = to_state
        logger.debug(f"{self.account.name}: {record.from_state.value} -> {to_state.value}")

    def fail(self, kind: FailureKind, error: str) -> None:
        """Record the failure that ended (or degraded) this transition."""
        self.failure = kind
        self.error = error

    @property
    def is_complete(self) -> bool:
        return self.state == TransitionState.ANNOTATED

    @property
    def is_quarantined(self) -> bool:
        """Moved and disabled, with or without the annotation."""
        return self.state in (TransitionState.DISABLED, TransitionState.ANNOTATED)

    @property
    def needs_reconcile(self) -> bool:
        """Moved into quarantine but still enabled."""
        return self.state == TransitionState.MOVED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account.name,
            "source_path": self.source_path,
            "target_path": self.target_path,
            "state": self.state.value,
            "failure": self.failure.value if self.failure else None,
            "error": self.error,
            "history": [record.to_dict() for record in self.history],
        }
