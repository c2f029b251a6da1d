"""EFS listers: file systems and their mount targets.

A file system cannot be deleted while mount targets exist; the removal is
rejected with FileSystemInUse and retried on later sweeps, after the mount
targets are gone.
"""

from __future__ import annotations

from botocore.exceptions import ClientError

from ..models.resource import Resource
from .base import RemovalOutcome, ResourceLister, error_code
from .registry import register

# Regions where EFS is not offered or not enabled
_UNAVAILABLE_CODES = ("OptInRequired", "InvalidAction", "UnsupportedOperation")


def _describe_file_systems(lister: ResourceLister, client, region: str) -> list[dict]:
    try:
        paginator = client.get_paginator("describe_file_systems")
        return [fs for page in paginator.paginate() for fs in page.get("FileSystems", [])]
    except ClientError as e:
        if error_code(e) in _UNAVAILABLE_CODES:
            lister.logger.debug(f"EFS not available in {region}: {error_code(e)}")
            return []
        raise


@register
class EFSFileSystemLister(ResourceLister):
    resource_type = "EFSFileSystem"
    service_name = "efs"
    id_property = "FileSystemId"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        for fs in _describe_file_systems(self, client, region):
            if fs.get("LifeCycleState") == "deleted":
                continue
            resources.append(
                self._resource(
                    identifier=fs["FileSystemId"],
                    region=region,
                    properties={
                        "FileSystemId": fs["FileSystemId"],
                        "LifeCycleState": fs.get("LifeCycleState", "unknown"),
                        "PerformanceMode": fs.get("PerformanceMode", "generalPurpose"),
                        "Encrypted": fs.get("Encrypted", False),
                        "CreationTime": fs.get("CreationTime"),
                        "NumberOfMountTargets": fs.get("NumberOfMountTargets", 0),
                    },
                    tags=fs.get("Tags"),
                    label=fs.get("Name"),
                )
            )

        self.logger.debug(f"Listed {len(resources)} EFS file systems in {region}")
        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        return self._call_removal(
            resource, client.delete_file_system, RemovalOutcome.PENDING, FileSystemId=resource.identifier
        )


@register
class EFSMountTargetLister(ResourceLister):
    resource_type = "EFSMountTarget"
    service_name = "efs"
    id_property = "MountTargetId"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        for fs in _describe_file_systems(self, client, region):
            response = client.describe_mount_targets(FileSystemId=fs["FileSystemId"])
            for target in response.get("MountTargets", []):
                if target.get("LifeCycleState") == "deleted":
                    continue
                resources.append(
                    self._resource(
                        identifier=target["MountTargetId"],
                        region=region,
                        properties={
                            "MountTargetId": target["MountTargetId"],
                            "FileSystemId": fs["FileSystemId"],
                            "SubnetId": target.get("SubnetId"),
                            "LifeCycleState": target.get("LifeCycleState"),
                        },
                        tags=fs.get("Tags"),
                    )
                )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        return self._call_removal(
            resource, client.delete_mount_target, RemovalOutcome.PENDING, MountTargetId=resource.identifier
        )
