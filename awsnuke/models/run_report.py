"""Run report model.

Represents the outcome of one run with counts, records and scan errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..errors import ConvergenceError, ScanError
from .deletion_record import DeletionRecord, ItemState


class RunMode(Enum):
    """Run execution mode."""

    DRY_RUN = "dry-run"
    LIVE = "live"


class RunStatus(Enum):
    """Run status.

    State transitions:
        planned (dry run, never executed)
        planned → completed (every candidate removed)
        planned → partial (some records failed or were skipped)
        planned → stuck (stuck detector aborted the run)
        planned → cancelled (operator interrupt)
    """

    PLANNED = "planned"
    COMPLETED = "completed"
    PARTIAL = "partial"
    STUCK = "stuck"
    CANCELLED = "cancelled"


EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_CONFIGURATION = 2


@dataclass
class RunReport:
    """Run report entity.

    Produced once per run and consumed by the reporter and the exit-code layer.

    Attributes:
        run_id: Unique identifier for the run
        account_id: AWS account ID (12-digit number)
        mode: dry-run or live
        status: Final run status
        timestamp: When the run was initiated (UTC)
        records: Every scanned resource with its final state
        scan_errors: Listing failures accumulated during the scan
        sweeps: Number of sweeps executed (live mode only)
        started_at: When the first sweep began (optional)
        completed_at: When the run finished (optional)
        message: Summary of why the run stopped early (optional)
    """

    run_id: str
    account_id: str
    mode: RunMode
    status: RunStatus
    timestamp: datetime
    records: list[DeletionRecord] = field(default_factory=list)
    scan_errors: list[ScanError] = field(default_factory=list)
    sweeps: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    message: Optional[str] = None

    def count(self, *states: ItemState) -> int:
        return sum(1 for record in self.records if record.state in states)

    @property
    def total_resources(self) -> int:
        return len(self.records)

    @property
    def filtered_count(self) -> int:
        return self.count(ItemState.FILTERED)

    @property
    def pending_count(self) -> int:
        return self.count(ItemState.NEW, ItemState.PENDING, ItemState.REMOVING, ItemState.WAITING)

    @property
    def removed_count(self) -> int:
        return self.count(ItemState.REMOVED)

    @property
    def failed_count(self) -> int:
        return self.count(ItemState.FAILED)

    @property
    def skipped_count(self) -> int:
        return self.count(ItemState.SKIPPED)

    @property
    def candidates(self) -> list[DeletionRecord]:
        return [record for record in self.records if not record.decision.filtered]

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def exit_code(self) -> int:
        """Process exit status for this run.

        Zero for dry runs and for live runs where every candidate was removed.
        """
        if self.mode == RunMode.DRY_RUN:
            return EXIT_OK
        if self.status in (RunStatus.STUCK, RunStatus.CANCELLED):
            return EXIT_INCOMPLETE
        if self.failed_count or self.skipped_count or self.pending_count:
            return EXIT_INCOMPLETE
        return EXIT_OK

    def finalize_status(self) -> RunStatus:
        """Derive the final status of a live run from its records."""
        if self.status in (RunStatus.STUCK, RunStatus.CANCELLED):
            return self.status
        if self.failed_count or self.skipped_count or self.pending_count:
            self.status = RunStatus.PARTIAL
        else:
            self.status = RunStatus.COMPLETED
        return self.status

    def raise_for_status(self) -> None:
        """Raise ConvergenceError when the run stopped before converging."""
        if self.status in (RunStatus.STUCK, RunStatus.CANCELLED):
            raise ConvergenceError(self.message or f"Run {self.run_id} {self.status.value}")

    def validate(self) -> bool:
        """Validate report invariants.

        Validation rules:
            - state counts add up to total_resources
            - completed_at must be after started_at
            - dry-run mode must have planned status

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        counted = (
            self.filtered_count + self.pending_count + self.removed_count + self.failed_count + self.skipped_count
        )
        if counted != self.total_resources:
            raise ValueError("Resource counts don't match total")

        if self.completed_at and self.started_at:
            if self.completed_at < self.started_at:
                raise ValueError("Completion time before start time")

        if self.mode == RunMode.DRY_RUN and self.status != RunStatus.PLANNED:
            raise ValueError("Dry-run mode must have planned status")

        return True

    def summary(self) -> dict[str, Any]:
        return {
            "total_resources": self.total_resources,
            "filtered": self.filtered_count,
            "pending": self.pending_count,
            "removed": self.removed_count,
            "failed": self.failed_count,
            "skipped": self.skipped_count,
            "scan_errors": len(self.scan_errors),
        }
