"""Deletion scheduler.

Drives every candidate through repeated sweeps until the account converges,
the run is stuck, or it is cancelled. Ordering between dependent resources is
not planned: a removal rejected because of a dependency is simply retried on
a later sweep, after the dependency is gone.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Optional

from ..aws.client import DEFAULT_CALL_TIMEOUT
from ..errors import RemovalError
from ..models.deletion_record import DeletionRecord, ItemState
from ..models.resource import Resource
from ..models.run_report import RunStatus
from ..resources.base import RemovalOutcome
from ..resources.registry import ResourceRegistry
from .scanner import DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 5.0

# Without a stuck limit, give up after this many sweeps in which every
# remaining record failed its removal call
ERROR_ONLY_SWEEP_LIMIT = 3


@dataclass
class RemovalResult:
    """Outcome of one removal call plus liveness check, computed in a worker."""

    state: ItemState
    reason: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = True


@dataclass
class SweepResult:
    visited: int = 0
    progress: int = 0
    errored: int = 0


class DeletionScheduler:
    """Iterative sweep engine.

    A sweep visits every non-terminal record once. Removal calls run on a
    thread pool; workers never touch records. Results are applied by the
    scheduler after all calls of the sweep have finished or timed out.

    Attributes:
        registry: Listers used for removal and liveness checks
        max_wait_retries: Consecutive sweeps without progress before the run
            is aborted as stuck (0 disables the stuck detector)
        max_attempts: Removal attempts per record before giving up (0 = unlimited)
        sweep_interval: Seconds to wait between sweeps
        call_timeout: Upper bound in seconds for one removal call
        sweeps: Number of sweeps of the most recent run
        message: Why the most recent run stopped early, if it did
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        max_wait_retries: int = 0,
        max_attempts: int = 0,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
        sleep: Callable[[float], None] = time.sleep,
        on_sweep: Optional[Callable[[int, list[DeletionRecord]], None]] = None,
    ) -> None:
        self.registry = registry
        self.max_wait_retries = max_wait_retries
        self.max_attempts = max_attempts
        self.sweep_interval = sweep_interval
        self.call_timeout = call_timeout
        self.max_workers = max(1, max_workers)
        self.sleep = sleep
        self.on_sweep = on_sweep
        self.sweeps = 0
        self.message: Optional[str] = None
        self._cancel = threading.Event()
        self._in_flight: list[tuple[DeletionRecord, Future]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Stop issuing removals; observed before each call and between sweeps."""
        self._cancel.set()

    def run(self, records: list[DeletionRecord]) -> RunStatus:
        """Sweep until every record is terminal or the run is aborted.

        Args:
            records: Records created from the scan; filtered ones are ignored

        Returns:
            COMPLETED when every record reached a terminal state, STUCK when
            the stuck detector aborted, CANCELLED on cancellation
        """
        self.sweeps = 0
        self.message = None
        no_progress_sweeps = 0
        error_only_sweeps = 0
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="awsnuke-remove")

        try:
            while self._remaining(records):
                if self.cancelled:
                    return self._abort(records, RunStatus.CANCELLED, "Run cancelled by operator")

                try:
                    result = self._sweep(executor, records)
                except KeyboardInterrupt:
                    logger.warning("Interrupted, no further removals will be issued")
                    self.cancel()
                    self._interrupt()
                    continue

                self.sweeps += 1
                remaining = self._remaining(records)
                try:
                    logger.info(
                        f"Sweep {self.sweeps}: {result.visited} visited, {result.progress} finished, "
                        f"{result.errored} errored, {len(remaining)} remaining"
                    )
                    if self.on_sweep is not None:
                        self.on_sweep(self.sweeps, records)
                except KeyboardInterrupt:
                    logger.warning("Interrupted, no further removals will be issued")
                    self.cancel()
                    continue

                no_progress_sweeps = 0 if result.progress else no_progress_sweeps + 1
                if self.max_wait_retries and no_progress_sweeps >= self.max_wait_retries:
                    return self._abort(
                        records,
                        RunStatus.STUCK,
                        f"Max wait retries of {self.max_wait_retries} exceeded: "
                        f"{len(remaining)} resources made no progress",
                    )

                if not self.max_wait_retries:
                    all_errored = bool(remaining) and result.errored == len(remaining)
                    error_only_sweeps = error_only_sweeps + 1 if all_errored else 0
                    if error_only_sweeps >= ERROR_ONLY_SWEEP_LIMIT:
                        self._fail_remaining(records)

                self._apply_retry_budget(records)

                if self._remaining(records) and not self.cancelled:
                    try:
                        self.sleep(self.sweep_interval)
                    except KeyboardInterrupt:
                        self.cancel()

            return RunStatus.COMPLETED
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _remaining(self, records: list[DeletionRecord]) -> list[DeletionRecord]:
        return [record for record in records if not record.is_terminal]

    def _sweep(self, executor: ThreadPoolExecutor, records: list[DeletionRecord]) -> SweepResult:
        result = SweepResult()
        self._in_flight = []

        for record in self._remaining(records):
            if self.cancelled:
                break
            # Every record in removing has an entry in _in_flight
            self._in_flight.append((record, executor.submit(self._remove, record.resource)))
            record.transition(ItemState.REMOVING, "removal requested")
            record.attempts += 1

        result.visited = len(self._in_flight)
        if not self._in_flight:
            return result

        # Barrier: every call of this sweep is finished or timed out
        rounds = math.ceil(len(self._in_flight) / self.max_workers)
        wait([future for _, future in self._in_flight], timeout=self.call_timeout * rounds)

        for record, future in self._in_flight:
            if future.done() and not future.cancelled():
                outcome = future.result()
            else:
                future.cancel()
                outcome = RemovalResult(
                    state=ItemState.WAITING,
                    error=f"removal timed out after {self.call_timeout}s",
                    retryable=True,
                )
            self._apply(record, outcome, result)

        self._in_flight = []
        return result

    def _remove(self, resource: Resource) -> RemovalResult:
        """Remove one resource and confirm; runs in a worker thread."""
        lister = self.registry.get(resource.resource_type)

        try:
            outcome = lister.remove(resource)
        except RemovalError as e:
            return RemovalResult(state=ItemState.WAITING, error=str(e), retryable=e.retryable)
        except Exception as e:
            return RemovalResult(state=ItemState.WAITING, error=f"Unexpected error: {e}", retryable=True)

        if outcome == RemovalOutcome.REMOVED:
            return RemovalResult(state=ItemState.REMOVED, reason="removed")

        try:
            present = lister.still_present(resource)
        except Exception as e:
            # A failed liveness check never counts as removed
            return RemovalResult(state=ItemState.WAITING, reason=f"liveness check failed: {e}")

        if present:
            return RemovalResult(state=ItemState.WAITING, reason="waiting for removal")
        return RemovalResult(state=ItemState.REMOVED, reason="removed")

    def _apply(self, record: DeletionRecord, outcome: RemovalResult, result: SweepResult) -> None:
        if record.state != ItemState.REMOVING:
            return

        if outcome.error is None:
            record.last_error = None
            record.transition(outcome.state, outcome.reason)
            if outcome.state == ItemState.REMOVED:
                result.progress += 1
                logger.info(f"{record.resource.resource_type} {record.resource} removed")
            return

        record.last_error = outcome.error
        if outcome.retryable:
            record.transition(ItemState.WAITING, outcome.error)
            result.errored += 1
            logger.debug(f"{record.resource.resource_type} {record.resource}: {outcome.error}")
        else:
            record.transition(ItemState.FAILED, outcome.error)
            result.progress += 1
            logger.error(f"{record.resource.resource_type} {record.resource} failed: {outcome.error}")

    def _interrupt(self) -> None:
        """Settle records of a sweep interrupted before its barrier."""
        for record, future in self._in_flight:
            if record.state != ItemState.REMOVING:
                future.cancel()
                continue
            if future.done() and not future.cancelled():
                self._apply(record, future.result(), SweepResult())
            else:
                future.cancel()
                record.transition(ItemState.WAITING, "removal interrupted")
        self._in_flight = []

    def _apply_retry_budget(self, records: list[DeletionRecord]) -> None:
        if not self.max_attempts:
            return
        for record in self._remaining(records):
            if record.attempts < self.max_attempts:
                continue
            if record.last_error:
                record.transition(ItemState.FAILED, f"gave up after {record.attempts} attempts: {record.last_error}")
            else:
                record.transition(ItemState.SKIPPED, f"still present after {record.attempts} attempts")

    def _fail_remaining(self, records: list[DeletionRecord]) -> None:
        logger.error("There are resources in failed state, but none are ready for deletion anymore")
        for record in self._remaining(records):
            record.transition(ItemState.FAILED, record.last_error or "removal kept failing")

    def _abort(self, records: list[DeletionRecord], status: RunStatus, message: str) -> RunStatus:
        self.message = message
        logger.error(message)
        for record in self._remaining(records):
            if record.state == ItemState.REMOVING:
                record.transition(ItemState.WAITING, "removal interrupted")
            record.transition(ItemState.SKIPPED, message)
        return status
