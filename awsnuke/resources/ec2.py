"""EC2 listers: instances, volumes and security groups."""

from __future__ import annotations

from botocore.exceptions import ClientError

from ..errors import LivenessCheckError
from ..models.resource import Resource
from .base import RemovalOutcome, ResourceLister, error_code, is_not_found
from .registry import register


@register
class EC2InstanceLister(ResourceLister):
    """EC2 instances. Terminated instances are not listed."""

    resource_type = "EC2Instance"
    service_name = "ec2"
    id_property = "InstanceId"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        paginator = client.get_paginator("describe_instances")
        for page in paginator.paginate():
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    state = instance.get("State", {}).get("Name", "unknown")
                    if state == "terminated":
                        continue
                    resources.append(
                        self._resource(
                            identifier=instance["InstanceId"],
                            region=region,
                            properties={
                                "InstanceId": instance["InstanceId"],
                                "InstanceType": instance.get("InstanceType"),
                                "State": state,
                                "LaunchTime": instance.get("LaunchTime"),
                                "ImageId": instance.get("ImageId"),
                            },
                            tags=instance.get("Tags"),
                        )
                    )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        return self._call_removal(
            resource, client.terminate_instances, RemovalOutcome.PENDING, InstanceIds=[resource.identifier]
        )

    def still_present(self, resource: Resource) -> bool:
        client = self._create_client(resource.region)
        try:
            response = client.describe_instances(InstanceIds=[resource.identifier])
        except ClientError as e:
            if is_not_found(e):
                return False
            raise LivenessCheckError(f"Failed to describe instance {resource.identifier}: {error_code(e)}")

        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if instance.get("State", {}).get("Name") != "terminated":
                    return True
        return False


@register
class EC2VolumeLister(ResourceLister):
    """EBS volumes."""

    resource_type = "EC2Volume"
    service_name = "ec2"
    id_property = "VolumeId"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        paginator = client.get_paginator("describe_volumes")
        for page in paginator.paginate():
            for volume in page.get("Volumes", []):
                if volume.get("State") == "deleted":
                    continue
                resources.append(
                    self._resource(
                        identifier=volume["VolumeId"],
                        region=region,
                        properties={
                            "VolumeId": volume["VolumeId"],
                            "State": volume.get("State"),
                            "Size": volume.get("Size"),
                            "VolumeType": volume.get("VolumeType"),
                            "CreateTime": volume.get("CreateTime"),
                            "Encrypted": volume.get("Encrypted", False),
                        },
                        tags=volume.get("Tags"),
                    )
                )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        return self._call_removal(resource, client.delete_volume, RemovalOutcome.PENDING, VolumeId=resource.identifier)


@register
class EC2SecurityGroupLister(ResourceLister):
    """Security groups. Default groups cannot be removed and are not listed."""

    resource_type = "EC2SecurityGroup"
    service_name = "ec2"
    id_property = "GroupId"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        paginator = client.get_paginator("describe_security_groups")
        for page in paginator.paginate():
            for group in page.get("SecurityGroups", []):
                if group.get("GroupName") == "default":
                    continue
                resources.append(
                    self._resource(
                        identifier=group["GroupId"],
                        region=region,
                        properties={
                            "GroupId": group["GroupId"],
                            "GroupName": group.get("GroupName"),
                            "VpcId": group.get("VpcId"),
                            "Description": group.get("Description"),
                        },
                        tags=group.get("Tags"),
                        label=group.get("GroupName"),
                    )
                )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        return self._call_removal(
            resource, client.delete_security_group, RemovalOutcome.REMOVED, GroupId=resource.identifier
        )
