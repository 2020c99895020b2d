"""
Computer Account Sweep Engine

Recurring lifecycle sweep for Active Directory machine accounts:
finds inactive computers, quarantines and disables them, repairs drift
in the quarantine container, and deletes quarantined accounts once the
retention period has elapsed.
"""

__version__ = "1.0.0"
__author__ = "Sweep Engine Team"
__email__ = "team@example.com"

from .audit.audit_logger import FileAuditLog, MemoryAuditSink
from .config import SweepConfig, load_config
from .engine.policy import LifecyclePolicy
from .workflows.quarantine import QuarantineTransitioner
from .workflows.reaper import RetentionReaper
from .workflows.reconciler import DriftReconciler
from .workflows.scanner import InventoryScanner
from .workflows.sweep import LifecycleSweep

__all__ = [
    "FileAuditLog",
    "MemoryAuditSink",
    "SweepConfig",
    "load_config",
    "LifecyclePolicy",
    "InventoryScanner",
    "QuarantineTransitioner",
    "DriftReconciler",
    "RetentionReaper",
    "LifecycleSweep",
]
