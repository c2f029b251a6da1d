"""Scan/filter pipeline.

Lists every enabled resource type in every applicable region and classifies
each resource through the SafetyChecker. The scanner never removes anything.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from itertools import islice
from typing import Iterator

from ..aws.client import DEFAULT_CALL_TIMEOUT
from ..config.loader import GLOBAL_REGION
from ..errors import ScanError
from ..models.resource import FilterDecision, Resource
from ..resources.registry import ResourceRegistry
from .safety import SafetyChecker

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class ScanJob:
    """One listing call: a resource type in a region."""

    resource_type: str
    region: str


class Scanner:
    """Scan/filter pipeline.

    Jobs run on a thread pool with a bounded number in flight and are yielded
    in job order (configured region order, then resource type name), so the
    output is stable for identical account state.

    Attributes:
        registry: Listers of the enabled resource types
        checker: Safety checker classifying each resource
        regions: Configured regions in configuration order
        errors: Listing failures of the most recent scan
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        checker: SafetyChecker,
        regions: list[str],
        max_workers: int = DEFAULT_MAX_WORKERS,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.checker = checker
        self.regions = list(regions)
        self.max_workers = max(1, max_workers)
        self.call_timeout = call_timeout
        self.errors: list[ScanError] = []

    def jobs(self) -> list[ScanJob]:
        """Listing jobs in output order.

        Global listers run only in the "global" region, regional listers in
        every other configured region.
        """
        jobs = []
        for region in self.regions:
            for resource_type in self.registry.names():
                is_global = self.registry.get(resource_type).is_global_service
                if is_global == (region == GLOBAL_REGION):
                    jobs.append(ScanJob(resource_type=resource_type, region=region))
        return jobs

    def scan(self) -> Iterator[tuple[Resource, FilterDecision]]:
        """Lazily yield every scanned resource with its filter decision.

        Each call starts a fresh scan and resets `errors`.
        """
        self.errors = []
        job_iter = iter(self.jobs())
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="awsnuke-scan")
        in_flight: deque[tuple[ScanJob, Future]] = deque()

        try:
            for job in islice(job_iter, self.max_workers * 2):
                in_flight.append((job, executor.submit(self._list, job)))

            while in_flight:
                job, future = in_flight.popleft()
                resources = self._collect(job, future)

                next_job = next(job_iter, None)
                if next_job is not None:
                    in_flight.append((next_job, executor.submit(self._list, next_job)))

                for resource in resources:
                    yield resource, self.checker.evaluate(resource)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _list(self, job: ScanJob) -> list[Resource]:
        lister = self.registry.get(job.resource_type)
        resources = lister.list(job.region)
        return sorted(resources, key=lambda resource: resource.identifier)

    def _collect(self, job: ScanJob, future: Future) -> list[Resource]:
        """Wait for a listing job; failures are recorded and yield nothing."""
        try:
            resources = future.result(timeout=self.call_timeout)
        except FutureTimeoutError:
            self._record_error(job, f"listing timed out after {self.call_timeout}s")
            return []
        except Exception as e:
            # One failing type/region must not abort the scan
            self._record_error(job, str(e))
            return []

        logger.debug(f"Listed {len(resources)} {job.resource_type} in {job.region}")
        return resources

    def _record_error(self, job: ScanJob, message: str) -> None:
        error = ScanError(job.resource_type, job.region, message)
        self.errors.append(error)
        logger.error(f"Listing {job.resource_type} in {job.region} failed: {message}")
