"""Exception hierarchy shared by the filter engine, scanner and scheduler."""

from __future__ import annotations

from typing import Optional


class NukeError(Exception):
    """Base class for all awsnuke errors."""


class ConfigurationError(NukeError):
    """Invalid configuration document, filter pattern or target selection.

    Always raised before any scan begins.
    """


class CredentialValidationError(NukeError):
    """Credentials could not be resolved or the account failed validation."""


class ScanError(NukeError):
    """Listing failed for one resource type in one region."""

    def __init__(self, resource_type: str, region: str, message: str) -> None:
        self.resource_type = resource_type
        self.region = region
        self.message = message
        super().__init__(f"{resource_type} in {region}: {message}")


class RemovalError(NukeError):
    """A lister could not remove a resource.

    Attributes:
        retryable: False when retrying can never succeed (e.g. access denied)
        error_code: AWS error code, when the failure came from the API
    """

    def __init__(self, message: str, retryable: bool = True, error_code: Optional[str] = None) -> None:
        self.retryable = retryable
        self.error_code = error_code
        super().__init__(message)


class LivenessCheckError(NukeError):
    """Checking whether a resource still exists failed."""


class ConvergenceError(NukeError):
    """The scheduler stopped before every record reached a terminal state."""


class NukeAborted(NukeError):
    """The operator aborted at the confirmation gate."""
