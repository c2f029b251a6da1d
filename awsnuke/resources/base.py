"""Resource lister capability.

Every resource type the tool can nuke is implemented as a ResourceLister
subclass that knows how to enumerate, remove and re-check resources of that
kind. Listers are stateless apart from the account context they receive.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import LivenessCheckError, RemovalError
from ..models.resource import Resource

if TYPE_CHECKING:
    from ..aws.account import Account


class RemovalOutcome(Enum):
    """Result of a successful removal call."""

    REMOVED = "removed"
    PENDING = "pending"


# Error codes meaning the resource is already gone
NOT_FOUND_CODES = frozenset(
    {
        "InvalidInstanceID.NotFound",
        "InvalidVolume.NotFound",
        "InvalidGroup.NotFound",
        "NoSuchEntity",
        "NoSuchBucket",
        "ResourceNotFoundException",
        "FileSystemNotFound",
        "MountTargetNotFound",
        "CacheClusterNotFound",
        "NotFound",
        "404",
    }
)

# Error codes that retrying can never fix
NON_RETRYABLE_CODES = frozenset(
    {
        "AccessDenied",
        "AccessDeniedException",
        "UnauthorizedOperation",
        "OperationNotPermitted",
        "UnsupportedOperation",
        "InvalidClientTokenId",
    }
)


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


def error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


def is_not_found(error: ClientError) -> bool:
    return error_code(error) in NOT_FOUND_CODES


def removal_error(error: Exception, resource: Resource) -> RemovalError:
    """Classify an API failure raised while removing a resource."""
    if isinstance(error, ClientError):
        code = error_code(error)
        return RemovalError(
            f"{code}: {error_message(error)}",
            retryable=code not in NON_RETRYABLE_CODES,
            error_code=code,
        )
    return RemovalError(f"Unexpected error removing {resource}: {error}")


class ResourceLister(ABC):
    """Capability to list, remove and re-check one kind of resource.

    Subclasses set the class attributes and implement list() and remove().

    Attributes:
        resource_type: Name used in configuration and output (e.g. "S3Bucket")
        service_name: boto3 service name
        is_global_service: True when the resource is listed once, in "global"
        id_property: Property that identifies a resource in generated filters
    """

    resource_type: str = ""
    service_name: str = ""
    is_global_service: bool = False
    id_property: Optional[str] = None

    def __init__(self, account: "Account") -> None:
        self.account = account
        self.logger = logging.getLogger(f"{__name__.rsplit('.', 1)[0]}.{self.resource_type}")

    def _create_client(self, region: str) -> Any:
        return self.account.client(self.service_name, region)

    @abstractmethod
    def list(self, region: str) -> list[Resource]:
        """Enumerate resources of this type in a region.

        Raises:
            ClientError: On API failures; the scanner records them per region
        """

    @abstractmethod
    def remove(self, resource: Resource) -> RemovalOutcome:
        """Request removal of a resource.

        Raises:
            RemovalError: If the removal was rejected
        """

    def still_present(self, resource: Resource) -> bool:
        """Check whether a resource still exists by listing its region again.

        Raises:
            LivenessCheckError: If the listing failed
        """
        try:
            return any(current.identifier == resource.identifier for current in self.list(resource.region))
        except (ClientError, BotoCoreError) as e:
            raise LivenessCheckError(f"Failed to list {self.resource_type} in {resource.region}: {e}")

    def _resource(
        self,
        identifier: str,
        region: str,
        properties: Optional[dict[str, Any]] = None,
        tags: Optional[list[dict]] = None,
        label: Optional[str] = None,
    ) -> Resource:
        resource = Resource(
            resource_type=self.resource_type,
            identifier=identifier,
            region=region,
            properties=dict(properties or {}),
            label=label,
        )
        tag_map = tags_to_dict(tags)
        resource.set_tags(tag_map)
        if resource.label is None and tag_map.get("Name"):
            resource.label = tag_map["Name"]
        return resource

    def _call_removal(
        self,
        resource: Resource,
        method: Callable[..., Any],
        outcome: RemovalOutcome,
        **params: Any,
    ) -> RemovalOutcome:
        """Invoke a boto3 removal method and classify its errors.

        Args:
            resource: Resource being removed
            method: Bound boto3 client method
            outcome: Outcome to report when the call succeeds
            params: Parameters for the call

        Returns:
            The given outcome, or REMOVED if the resource is already gone

        Raises:
            RemovalError: If the call failed for any other reason
        """
        try:
            method(**params)
        except ClientError as e:
            if is_not_found(e):
                self.logger.info(f"{self.resource_type} {resource.identifier} already removed")
                return RemovalOutcome.REMOVED
            raise removal_error(e, resource)
        except BotoCoreError as e:
            raise removal_error(e, resource)
        return outcome


def tags_to_dict(tags: Optional[list[dict]]) -> dict[str, str]:
    """Convert an AWS tag list ([{"Key": k, "Value": v}]) to a mapping."""
    result = {}
    for tag in tags or []:
        key = tag.get("Key", tag.get("key"))
        if key is not None:
            result[key] = tag.get("Value", tag.get("value", ""))
    return result
