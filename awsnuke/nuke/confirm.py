"""Confirmation gate shown before anything destructive happens."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import typer

from ..errors import ConfigurationError, NukeAborted

logger = logging.getLogger(__name__)

MIN_FORCE_SLEEP = 3
DEFAULT_FORCE_SLEEP = 15


class ConfirmationGate:
    """Operator confirmation or forced delay.

    Without force, the operator has to type the account alias (or the account
    ID when the account has no alias). With force, the gate waits force_sleep
    seconds instead; an interrupt during the wait aborts the run.
    """

    def __init__(
        self,
        force: bool = False,
        force_sleep: int = DEFAULT_FORCE_SLEEP,
        prompt: Optional[Callable[[str], str]] = None,
        echo: Optional[Callable[[str], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize confirmation gate.

        Raises:
            ConfigurationError: If force_sleep is below the minimum
        """
        if force_sleep < MIN_FORCE_SLEEP:
            raise ConfigurationError(
                f"Value for --force-sleep cannot be less than {MIN_FORCE_SLEEP} seconds. "
                "This is for your own protection."
            )
        self.force = force
        self.force_sleep = force_sleep
        self.prompt = prompt or (lambda text: typer.prompt(text, default="", show_default=False))
        self.echo = echo or typer.echo
        self.sleep = sleep

    def confirm(self, question: str, expected: str) -> None:
        """Ask the operator to confirm by typing the expected answer.

        Args:
            question: Question shown to the operator
            expected: Text the operator has to enter to continue

        Raises:
            NukeAborted: If the answer does not match or the wait is interrupted
        """
        self.echo(question)

        if self.force:
            self.echo(f"Waiting {self.force_sleep}s before continuing.")
            try:
                for remaining in range(self.force_sleep, 0, -1):
                    if remaining % 5 == 0 or remaining <= 3:
                        self.echo(f"{remaining}...")
                    self.sleep(1)
            except KeyboardInterrupt:
                raise NukeAborted("Aborted during the confirmation delay")
            return

        try:
            answer = self.prompt("Do you want to continue? Enter account alias to continue.")
        except (KeyboardInterrupt, EOFError, typer.Abort):
            raise NukeAborted("Aborted at the confirmation prompt")

        if answer.strip() != expected:
            raise NukeAborted(f"Invalid confirmation '{answer.strip()}', expected '{expected}'. Aborting.")
        logger.debug("Confirmation accepted")
