"""Nuke runner.

Main orchestrator with preview (dry-run) and execution modes: scans and
classifies the account, shows the result, passes the confirmation gate and
hands the candidates to the deletion scheduler.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

from ..config.loader import NukeConfig
from ..errors import ConfigurationError
from ..models.deletion_record import DeletionRecord
from ..models.run_report import RunMode, RunReport, RunStatus
from ..resources.registry import ResourceRegistry
from .audit import AuditStorage
from .confirm import DEFAULT_FORCE_SLEEP, ConfirmationGate
from .reporter import NukeReporter
from .safety import SafetyChecker
from .scanner import DEFAULT_MAX_WORKERS, Scanner
from .scheduler import DEFAULT_SWEEP_INTERVAL, DeletionScheduler

if TYPE_CHECKING:
    from ..aws.account import Account

logger = logging.getLogger(__name__)


@dataclass
class NukeParameters:
    """Run options, usually taken from the command line.

    Attributes:
        targets: Resource types to limit the run to
        excludes: Resource types never to scan
        no_dry_run: Actually remove resources
        force: Replace the interactive confirmation with a delay
        force_sleep: Seconds to wait when force is set
        max_wait_retries: Sweeps without progress before aborting (0 = never)
        max_attempts: Removal attempts per resource (0 = unlimited)
        quiet: Hide filtered resources in the output
    """

    targets: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    no_dry_run: bool = False
    force: bool = False
    force_sleep: int = DEFAULT_FORCE_SLEEP
    max_wait_retries: int = 0
    max_attempts: int = 0
    quiet: bool = False

    def validate(self) -> bool:
        """Validate option combinations.

        Raises:
            ConfigurationError: If any option is out of range
        """
        if self.max_wait_retries < 0:
            raise ConfigurationError("--max-wait-retries cannot be negative")
        if self.max_attempts < 0:
            raise ConfigurationError("--max-attempts cannot be negative")
        return True


class NukeRunner:
    """Nuke orchestrator.

    Attributes:
        account: Account context of the run
        config: Loaded filter configuration
        params: Run options
        registry: Listers of the resource types selected for this run
        checker: Safety checker built from the account's filters
        scanner: Scan/filter pipeline
    """

    def __init__(
        self,
        account: "Account",
        config: NukeConfig,
        params: NukeParameters,
        registry: Optional[ResourceRegistry] = None,
        reporter: Optional[NukeReporter] = None,
        audit_storage: Optional[AuditStorage] = None,
        gate: Optional[ConfirmationGate] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize nuke runner.

        Resolves the resource types of the run and compiles the filters, so
        configuration errors surface before any scan.

        Raises:
            ConfigurationError: If parameters, targets or filters are invalid
        """
        params.validate()
        config.validate_for_run()

        self.account = account
        self.config = config
        self.params = params
        self.reporter = reporter or NukeReporter(quiet=params.quiet)
        self.audit_storage = audit_storage
        self.gate = gate or ConfirmationGate(force=params.force, force_sleep=params.force_sleep)
        self.max_workers = max_workers
        self.sweep_interval = sweep_interval
        self.sleep = sleep

        catalogue = registry if registry is not None else ResourceRegistry.from_account(account)
        resource_types = config.resolve_resource_types(
            catalogue.names(),
            account_id=account.account_id,
            targets=params.targets,
            excludes=params.excludes,
        )
        self.registry = catalogue.restrict(resource_types)
        self.checker = SafetyChecker(
            filter_groups=config.filter_groups(account.account_id),
            targets=resource_types,
            regions=config.regions,
        )
        self.scanner = Scanner(
            registry=self.registry,
            checker=self.checker,
            regions=config.regions,
            max_workers=max_workers,
            call_timeout=account.call_timeout,
        )

    @property
    def confirmation_text(self) -> str:
        return self.account.alias or self.account.account_id

    def run(self) -> RunReport:
        """Dry run or live run, depending on the parameters."""
        if self.params.no_dry_run:
            return self.execute()

        self.reporter.notice("Dry run: do real changes with --no-dry-run")
        report = self.preview()
        if report.candidates:
            self.reporter.notice(
                "The above resources would be deleted with the supplied configuration. "
                "Provide --no-dry-run to actually destroy resources."
            )
        return report

    def preview(self) -> RunReport:
        """Scan and classify the account without removing anything.

        Returns:
            RunReport in planned status with every scanned resource
        """
        report = RunReport(
            run_id=f"run_{uuid.uuid4()}",
            account_id=self.account.account_id,
            mode=RunMode.DRY_RUN,
            status=RunStatus.PLANNED,
            timestamp=datetime.now(timezone.utc),
        )

        for resource, decision in self.scanner.scan():
            record = DeletionRecord.from_scan(resource, decision)
            report.records.append(record)
            self.reporter.print_record(record)

        report.scan_errors = list(self.scanner.errors)
        self.reporter.print_scan_summary(report)
        return report

    def execute(self) -> RunReport:
        """Scan, confirm and remove every candidate.

        Returns:
            RunReport with the final state of every resource

        Raises:
            ConfigurationError: If the account is not allowed by the configuration
            NukeAborted: If the operator aborts at the confirmation gate
        """
        self.account.validate_against(self.config)

        if not self.params.force:
            self.gate.confirm(
                f"Do you really want to nuke the account with the ID {self.account.account_id} "
                f"and the alias '{self.confirmation_text}'?",
                self.confirmation_text,
            )

        report = self.preview()
        report.mode = RunMode.LIVE

        candidates = [record for record in report.records if not record.is_terminal]
        if not candidates:
            self.reporter.notice("No resource to delete.")
            report.status = RunStatus.COMPLETED
            self._finish(report)
            return report

        self.gate.confirm(
            f"Do you really want to nuke these {len(candidates)} resources on the account with the ID "
            f"{self.account.account_id} and the alias '{self.confirmation_text}'?",
            self.confirmation_text,
        )

        scheduler = DeletionScheduler(
            registry=self.registry,
            max_wait_retries=self.params.max_wait_retries,
            max_attempts=self.params.max_attempts,
            sweep_interval=self.sweep_interval,
            call_timeout=self.account.call_timeout,
            max_workers=self.max_workers,
            sleep=self.sleep,
            on_sweep=self.reporter.print_sweep,
        )

        report.started_at = datetime.now(timezone.utc)
        report.status = scheduler.run(report.records)
        report.sweeps = scheduler.sweeps
        report.message = scheduler.message
        report.finalize_status()
        self._finish(report)
        return report

    def _finish(self, report: RunReport) -> None:
        report.completed_at = datetime.now(timezone.utc)
        if report.started_at is None:
            report.started_at = report.timestamp
        self.reporter.print_final_summary(report)

        if self.audit_storage is not None:
            path = self.audit_storage.log_report(report)
            logger.info(f"Audit log written to {path}")
