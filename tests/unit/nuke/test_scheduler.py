"""Tests for DeletionScheduler.

Test coverage for sweep convergence, stuck detection, retry budgets and
cancellation. Sleeping is replaced by a mock so no test waits between sweeps.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock, patch

import pytest

from awsnuke.models.deletion_record import DeletionRecord, ItemState
from awsnuke.models.resource import FilterDecision, Resource
from awsnuke.models.run_report import RunStatus
from awsnuke.nuke.scheduler import ERROR_ONLY_SWEEP_LIMIT, DeletionScheduler
from awsnuke.resources.base import RemovalOutcome
from tests.fixtures.nuke import FakeLister, StuckLister, create_pending_record, create_registry, create_resource


def pending_records(*identifiers: str) -> list:
    return [create_pending_record(create_resource(identifier)) for identifier in identifiers]


def make_scheduler(lister: FakeLister, **kwargs) -> DeletionScheduler:
    kwargs.setdefault("sleep", Mock())
    kwargs.setdefault("call_timeout", 5)
    kwargs.setdefault("max_workers", 4)
    return DeletionScheduler(create_registry(lister), **kwargs)


class TestDeletionScheduler:
    """Test suite for DeletionScheduler."""

    def test_converges_in_one_sweep(self) -> None:
        records = pending_records("a", "b", "c")
        lister = FakeLister([record.resource for record in records])
        sleep = Mock()
        scheduler = make_scheduler(lister, sleep=sleep)

        status = scheduler.run(records)

        assert status == RunStatus.COMPLETED
        assert scheduler.sweeps == 1
        assert all(record.state == ItemState.REMOVED for record in records)
        assert all(record.attempts == 1 for record in records)
        sleep.assert_not_called()

    def test_filtered_records_are_never_removed(self) -> None:
        protected = DeletionRecord.from_scan(create_resource("keep"), FilterDecision.protected("not targeted"))
        records = [protected] + pending_records("a")
        lister = FakeLister([record.resource for record in records])

        make_scheduler(lister).run(records)

        assert protected.state == ItemState.FILTERED
        assert lister.remove_calls == ["a"]

    def test_pending_removal_waits_for_liveness(self) -> None:
        records = pending_records("vol-1")
        lister = FakeLister([records[0].resource], outcome=RemovalOutcome.PENDING, linger=1)
        seen = []
        sleep = Mock()
        scheduler = make_scheduler(
            lister, sleep=sleep, sweep_interval=7, on_sweep=lambda sweep, recs: seen.append(recs[0].state)
        )

        status = scheduler.run(records)

        assert status == RunStatus.COMPLETED
        assert seen == [ItemState.WAITING, ItemState.REMOVED]
        assert records[0].attempts == 2
        sleep.assert_called_once_with(7)

    def test_dependency_error_is_retried_next_sweep(self) -> None:
        records = pending_records("subnet", "instance")
        lister = FakeLister([record.resource for record in records])
        lister.fail("subnet", times=1)

        status = make_scheduler(lister).run(records)

        assert status == RunStatus.COMPLETED
        assert records[0].state == ItemState.REMOVED
        assert records[0].attempts == 2
        assert records[0].last_error is None
        assert records[1].attempts == 1

    def test_non_retryable_error_fails_immediately(self) -> None:
        records = pending_records("locked")
        lister = FakeLister([records[0].resource])
        lister.fail("locked", times=1, retryable=False, message="AccessDenied")

        status = make_scheduler(lister).run(records)

        assert status == RunStatus.COMPLETED
        assert records[0].state == ItemState.FAILED
        assert records[0].attempts == 1
        assert records[0].last_error == "AccessDenied"

    @pytest.mark.parametrize("max_wait_retries", [1, 3, 5])
    def test_stuck_after_exactly_max_wait_retries(self, max_wait_retries: int) -> None:
        records = pending_records("a", "b")
        scheduler = make_scheduler(StuckLister([record.resource for record in records]), max_wait_retries=max_wait_retries)

        status = scheduler.run(records)

        assert status == RunStatus.STUCK
        assert scheduler.sweeps == max_wait_retries
        assert all(record.state == ItemState.SKIPPED for record in records)
        assert f"Max wait retries of {max_wait_retries} exceeded" in scheduler.message

    @pytest.mark.parametrize("max_wait_retries", [1, 3, 5])
    def test_always_failing_removals_are_stuck_after_max_wait_retries(self, max_wait_retries: int) -> None:
        records = pending_records("a", "b")
        lister = FakeLister([record.resource for record in records])
        for record in records:
            lister.fail(record.resource.identifier, times=100)
        scheduler = make_scheduler(lister, max_wait_retries=max_wait_retries)

        status = scheduler.run(records)

        assert status == RunStatus.STUCK
        assert scheduler.sweeps == max_wait_retries
        assert all(record.state == ItemState.SKIPPED for record in records)
        assert all(record.attempts == max_wait_retries for record in records)
        assert all(record.last_error == "DependencyViolation" for record in records)

    def test_progress_resets_stuck_counter(self) -> None:
        records = pending_records("fast", "slow")
        lister = FakeLister([record.resource for record in records], outcome=RemovalOutcome.PENDING)
        lister._remaining_checks["slow"] = 2

        status = make_scheduler(lister, max_wait_retries=2).run(records)

        assert status == RunStatus.COMPLETED
        assert all(record.state == ItemState.REMOVED for record in records)

    def test_error_only_sweeps_fail_remaining_records(self) -> None:
        records = pending_records("a")
        lister = FakeLister([records[0].resource])
        lister.fail("a", times=10)
        scheduler = make_scheduler(lister)

        status = scheduler.run(records)

        assert status == RunStatus.COMPLETED
        assert scheduler.sweeps == ERROR_ONLY_SWEEP_LIMIT
        assert records[0].state == ItemState.FAILED
        assert records[0].reason == "DependencyViolation"

    def test_retry_budget_skips_resources_that_stay(self) -> None:
        records = pending_records("a")
        scheduler = make_scheduler(StuckLister([records[0].resource]), max_attempts=2)

        status = scheduler.run(records)

        assert status == RunStatus.COMPLETED
        assert scheduler.sweeps == 2
        assert records[0].state == ItemState.SKIPPED
        assert records[0].reason == "still present after 2 attempts"

    def test_retry_budget_fails_resources_that_error(self) -> None:
        records = pending_records("a")
        lister = FakeLister([records[0].resource])
        lister.fail("a", times=5)

        make_scheduler(lister, max_attempts=2).run(records)

        assert records[0].state == ItemState.FAILED
        assert records[0].reason.startswith("gave up after 2 attempts")

    def test_failed_liveness_check_is_never_removed(self) -> None:
        records = pending_records("a")
        lister = FakeLister([records[0].resource], outcome=RemovalOutcome.PENDING)
        lister.liveness_error = RuntimeError("Throttling")
        seen = []

        make_scheduler(lister, max_attempts=1, on_sweep=lambda sweep, recs: seen.append(recs[0].reason)).run(records)

        assert seen[0].startswith("liveness check failed")
        assert records[0].state == ItemState.SKIPPED

    def test_timed_out_call_counts_as_error(self) -> None:
        release = threading.Event()

        class SlowLister(FakeLister):
            def remove(self, resource: Resource) -> RemovalOutcome:
                release.wait(5)
                return RemovalOutcome.REMOVED

        records = pending_records("slow")
        try:
            make_scheduler(SlowLister([records[0].resource]), call_timeout=0.05, max_attempts=1).run(records)
        finally:
            release.set()

        assert records[0].state == ItemState.FAILED
        assert "timed out" in records[0].last_error

    def test_cancel_before_run_skips_everything(self) -> None:
        records = pending_records("a", "b")
        lister = FakeLister([record.resource for record in records])
        scheduler = make_scheduler(lister)
        scheduler.cancel()

        status = scheduler.run(records)

        assert status == RunStatus.CANCELLED
        assert lister.remove_calls == []
        assert all(record.state == ItemState.SKIPPED for record in records)

    def test_interrupt_between_sweeps_cancels(self) -> None:
        records = pending_records("a")
        sleep = Mock(side_effect=KeyboardInterrupt)
        scheduler = make_scheduler(StuckLister([records[0].resource]), sleep=sleep)

        status = scheduler.run(records)

        assert status == RunStatus.CANCELLED
        assert scheduler.sweeps == 1
        assert records[0].state == ItemState.SKIPPED

    def test_no_records_means_no_sweeps(self) -> None:
        scheduler = make_scheduler(FakeLister())

        assert scheduler.run([]) == RunStatus.COMPLETED
        assert scheduler.sweeps == 0

    def test_interrupt_while_submitting_cancels_cleanly(self) -> None:
        records = pending_records("a", "b", "c")
        lister = FakeLister([record.resource for record in records])
        submit = ThreadPoolExecutor.submit
        submitted = []

        def interrupted_submit(executor, fn, *args, **kwargs):
            submitted.append(args)
            if len(submitted) == 2:
                raise KeyboardInterrupt
            return submit(executor, fn, *args, **kwargs)

        with patch.object(ThreadPoolExecutor, "submit", interrupted_submit):
            status = make_scheduler(lister).run(records)

        assert status == RunStatus.CANCELLED
        assert records[0].state in (ItemState.REMOVED, ItemState.SKIPPED)
        assert records[1].state == ItemState.SKIPPED
        assert records[2].state == ItemState.SKIPPED
        assert records[1].attempts == 0
        assert "b" not in lister.remove_calls

    def test_abort_settles_records_left_removing(self) -> None:
        records = pending_records("a", "b")
        records[0].transition(ItemState.REMOVING, "removal requested")
        scheduler = make_scheduler(FakeLister([record.resource for record in records]))

        status = scheduler._abort(records, RunStatus.CANCELLED, "Run cancelled by operator")

        assert status == RunStatus.CANCELLED
        assert all(record.state == ItemState.SKIPPED for record in records)

    def test_interrupt_in_sweep_callback_cancels(self) -> None:
        records = pending_records("a")
        lister = StuckLister([records[0].resource])
        scheduler = make_scheduler(lister, on_sweep=Mock(side_effect=KeyboardInterrupt))

        status = scheduler.run(records)

        assert status == RunStatus.CANCELLED
        assert scheduler.sweeps == 1
        assert lister.remove_calls == ["a"]
        assert records[0].state == ItemState.SKIPPED
