"""Tool settings for the CLI.

Settings come from ~/.awsnuke/config.yaml, then AWSNUKE_* environment
variables; command line options override both.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from ..aws.client import DEFAULT_CALL_TIMEOUT
from ..errors import ConfigurationError
from ..nuke.scanner import DEFAULT_MAX_WORKERS
from ..nuke.scheduler import DEFAULT_SWEEP_INTERVAL

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".awsnuke" / "config.yaml"

ENV_VARS = {
    "log_level": "AWSNUKE_LOG_LEVEL",
    "max_workers": "AWSNUKE_MAX_WORKERS",
    "call_timeout": "AWSNUKE_CALL_TIMEOUT",
    "sweep_interval": "AWSNUKE_SWEEP_INTERVAL",
    "audit_dir": "AWSNUKE_AUDIT_DIR",
    "aws_profile": "AWS_PROFILE",
}


@dataclass
class Config:
    """CLI settings.

    Attributes:
        log_level: Level of awsnuke loggers when not verbose
        max_workers: Concurrent listing and removal calls
        call_timeout: Upper bound in seconds for one AWS call
        sweep_interval: Seconds between deletion sweeps
        audit_dir: Directory for run audit logs (None disables audit logs)
        aws_profile: Default AWS profile
    """

    log_level: str = "WARNING"
    max_workers: int = DEFAULT_MAX_WORKERS
    call_timeout: float = DEFAULT_CALL_TIMEOUT
    sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    audit_dir: Optional[str] = None
    aws_profile: Optional[str] = None

    @classmethod
    def load(cls, path: Optional[Path] = None, environ: Optional[dict[str, str]] = None) -> "Config":
        """Load settings from the settings file and the environment.

        Args:
            path: Settings file (default: ~/.awsnuke/config.yaml)
            environ: Environment mapping (default: os.environ)

        Raises:
            ConfigurationError: If the file or a variable holds an invalid value
        """
        values: dict[str, Any] = {}

        config_path = path or DEFAULT_CONFIG_PATH
        if config_path.exists():
            try:
                data = yaml.safe_load(config_path.read_text()) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Failed to parse settings file {config_path}: {e}")
            if not isinstance(data, dict):
                raise ConfigurationError(f"Settings file {config_path} must be a mapping")
            known = {f.name for f in fields(cls)}
            for key, value in data.items():
                name = str(key).replace("-", "_")
                if name in known:
                    values[name] = value
                else:
                    logger.warning(f"Ignoring unknown setting '{key}' in {config_path}")

        env = os.environ if environ is None else environ
        for name, variable in ENV_VARS.items():
            if env.get(variable):
                values[name] = env[variable]

        config = cls(**values)
        config._coerce()
        return config

    def _coerce(self) -> None:
        try:
            self.max_workers = int(self.max_workers)
            self.call_timeout = float(self.call_timeout)
            self.sweep_interval = float(self.sweep_interval)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}")

        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        if self.call_timeout <= 0:
            raise ConfigurationError("call_timeout must be positive")
        if self.sweep_interval < 0:
            raise ConfigurationError("sweep_interval cannot be negative")
        self.log_level = str(self.log_level).upper()
