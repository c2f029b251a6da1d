"""Account bootstrap: credentials, identity and safety validation.

The Account is the explicit context value handed to the scanner, listers and
scheduler. It carries the session, the default region used for global
services and the per-call timeout, so that nothing relies on process-wide
settings.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config.loader import GLOBAL_REGION, NukeConfig
from ..errors import ConfigurationError, CredentialValidationError
from .client import DEFAULT_CALL_TIMEOUT, create_boto_client, create_session

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


@dataclass
class Credentials:
    """Credential source for the AWS API.

    Either a profile or static keys may be used, never both.
    """

    profile: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None

    def has_keys(self) -> bool:
        return bool(self.access_key_id or self.secret_access_key)

    def has_profile(self) -> bool:
        return bool(self.profile)

    def validate(self) -> bool:
        """Validate the credential combination.

        Raises:
            CredentialValidationError: If the combination is invalid
        """
        if self.has_profile() and self.has_keys():
            raise CredentialValidationError("You have to specify a profile or credentials, not both")
        if self.has_keys() and not (self.access_key_id and self.secret_access_key):
            raise CredentialValidationError("You have to specify both --access-key-id and --secret-access-key")
        if self.session_token and not self.has_keys():
            raise CredentialValidationError("--session-token requires --access-key-id and --secret-access-key")
        return True

    def new_session(self, region_name: str) -> boto3.Session:
        return create_session(
            profile_name=self.profile,
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            session_token=self.session_token,
            region_name=region_name,
        )


class Account:
    """AWS account context shared by every component of a run.

    Attributes:
        session: boto3 session
        account_id: 12-digit account ID
        aliases: IAM account aliases
        default_region: Region used for global service endpoints
        call_timeout: Upper bound in seconds for each API call
    """

    def __init__(
        self,
        session: boto3.Session,
        account_id: str,
        aliases: Optional[list[str]] = None,
        default_region: str = DEFAULT_REGION,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self.session = session
        self.account_id = account_id
        self.aliases = aliases or []
        self.default_region = default_region
        self.call_timeout = call_timeout
        self._clients: dict[tuple[str, str], Any] = {}
        self._lock = threading.Lock()

    @classmethod
    def connect(
        cls,
        credentials: Credentials,
        default_region: Optional[str] = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> "Account":
        """Resolve the account identity for a set of credentials.

        Raises:
            CredentialValidationError: If the credentials are invalid or the
                identity cannot be resolved
        """
        credentials.validate()
        region = default_region or DEFAULT_REGION

        try:
            session = credentials.new_session(region)
            identity = session.client("sts", region_name=region).get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            raise CredentialValidationError(f"Failed to resolve AWS identity: {e}")

        account = cls(
            session=session,
            account_id=identity["Account"],
            default_region=region,
            call_timeout=call_timeout,
        )

        try:
            response = account.client("iam", GLOBAL_REGION).list_account_aliases()
            account.aliases = list(response.get("AccountAliases", []))
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.warning(f"Could not list account aliases: {error_code}")

        logger.debug(f"Resolved account {account.account_id} aliases={account.aliases}")
        return account

    @property
    def alias(self) -> Optional[str]:
        return self.aliases[0] if self.aliases else None

    def endpoint_region(self, region: str) -> str:
        """Region to send API calls to; global services use the default region."""
        return self.default_region if region == GLOBAL_REGION else region

    def client(self, service_name: str, region: str) -> Any:
        """Cached service client for a region."""
        key = (service_name, self.endpoint_region(region))
        with self._lock:
            if key not in self._clients:
                self._clients[key] = create_boto_client(
                    session=self.session,
                    service_name=service_name,
                    region_name=key[1],
                    call_timeout=self.call_timeout,
                )
            return self._clients[key]

    def validate_against(self, config: NukeConfig) -> bool:
        """Refuse to run against accounts the configuration does not allow.

        Validation rules:
            - the account blocklist must not be empty
            - the account must not be blocklisted
            - the account must be configured under 'accounts'
            - the account must have an alias, which must not contain "prod"

        Returns:
            True if validation passes

        Raises:
            ConfigurationError: If any validation rule fails
        """
        if not config.account_blocklist:
            raise ConfigurationError(
                "The config file contains an empty blocklist. "
                "For safety reasons you need to specify at least one account ID. "
                "This should be your production account."
            )

        if self.account_id in config.account_blocklist:
            raise ConfigurationError(
                f"You are trying to nuke the account with the ID {self.account_id}, but it is blocklisted. Aborting."
            )

        if self.account_id not in config.accounts:
            raise ConfigurationError(f"Your account ID {self.account_id} isn't listed in the config. Aborting.")

        if not self.aliases:
            raise ConfigurationError(
                "The specified account doesn't have an alias. "
                "For safety reasons you need to specify an account alias. "
                "Your production account should contain the term 'prod'."
            )

        for alias in self.aliases:
            if "prod" in alias.lower():
                raise ConfigurationError(
                    f"You are trying to nuke an account with the alias '{alias}', "
                    "but it has the substring 'prod' in it. Aborting."
                )

        return True
