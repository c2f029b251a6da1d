"""Scan, confirm and remove: the nuke workflow."""

from __future__ import annotations

from .audit import AuditStorage
from .blueprint import BlueprintBuilder
from .confirm import ConfirmationGate
from .reporter import NukeReporter
from .runner import NukeParameters, NukeRunner
from .safety import SafetyChecker
from .scanner import Scanner
from .scheduler import DeletionScheduler

__all__ = [
    "AuditStorage",
    "BlueprintBuilder",
    "ConfirmationGate",
    "DeletionScheduler",
    "NukeParameters",
    "NukeReporter",
    "NukeRunner",
    "SafetyChecker",
    "Scanner",
]
