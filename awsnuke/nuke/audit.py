"""Audit storage for nuke runs.

Stores run reports as YAML files for compliance and troubleshooting.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

from ..models.run_report import RunReport


class AuditStorage:
    """Audit log storage and retrieval.

    Stores run reports as YAML files organized by year/month.

    Storage structure:
        ~/.awsnuke/audit-logs/
            2026/
                10/
                    run-run_123.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.awsnuke/audit-logs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".awsnuke" / "audit-logs")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_report(self, report: RunReport) -> Path:
        """Write a run report to audit storage.

        Overwrites an existing log with the same run ID.

        Returns:
            Path of the written file
        """
        year_month_dir = self.storage_dir / str(report.timestamp.year) / f"{report.timestamp.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "nuke_run",
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            "run": {
                "run_id": report.run_id,
                "account_id": report.account_id,
                "mode": report.mode.value,
                "status": report.status.value,
                "timestamp": report.timestamp.isoformat(),
                "started_at": report.started_at.isoformat() if report.started_at else None,
                "completed_at": report.completed_at.isoformat() if report.completed_at else None,
                "duration_seconds": report.duration_seconds,
                "sweeps": report.sweeps,
                "message": report.message,
                "exit_code": report.exit_code,
                **report.summary(),
            },
            "scan_errors": [
                {"resource_type": error.resource_type, "region": error.region, "message": error.message}
                for error in report.scan_errors
            ],
            "records": [
                {
                    **record.resource.to_dict(),
                    "state": record.state.value,
                    "reason": record.reason,
                    "attempts": record.attempts,
                    "last_error": record.last_error,
                    "filter_rule": record.decision.rule,
                }
                for record in report.records
            ],
        }

        audit_file = year_month_dir / f"run-{report.run_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.safe_dump(audit_data, f, default_flow_style=False, sort_keys=False)
        return audit_file
