"""
Workflows Package for the Sweep Engine.

This package provides the four lifecycle stages and the sweep that
runs them in order.
"""

from .base_workflow import BaseStage
from .quarantine import QuarantineTransitioner
from .reaper import RetentionReaper
from .reconciler import DriftReconciler
from .scanner import InventoryScanner
from .sweep import LifecycleSweep

__all__ = [
    "BaseStage",
    "InventoryScanner",
    "QuarantineTransitioner",
    "DriftReconciler",
    "RetentionReaper",
    "LifecycleSweep",
]
