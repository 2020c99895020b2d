"""
Policy Engine Package.

This package provides the lifecycle policy and the per-account
quarantine state machine used by the sweep stages.
"""

from .policy import (
    LifecyclePolicy,
    datetime_to_filetime,
    filetime_to_datetime,
    format_date,
    format_timestamp,
)
from .state_machine import AccountTransition, TransitionRecord, TransitionState

__all__ = [
    "LifecyclePolicy",
    "datetime_to_filetime",
    "filetime_to_datetime",
    "format_date",
    "format_timestamp",
    "AccountTransition",
    "TransitionRecord",
    "TransitionState",
]
