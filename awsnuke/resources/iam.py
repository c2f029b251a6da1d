"""IAM listers."""

from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from ..models.resource import Resource
from .base import RemovalOutcome, ResourceLister, is_not_found, removal_error
from .registry import register

# Service-linked roles are owned by AWS services and cannot be deleted directly
_SERVICE_ROLE_PATH = "/aws-service-role/"


@register
class IAMRoleLister(ResourceLister):
    """IAM roles.

    Removal detaches managed policies, deletes inline policies and removes the
    role from its instance profiles before deleting the role itself.
    """

    resource_type = "IAMRole"
    service_name = "iam"
    is_global_service = True
    id_property = "RoleName"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        paginator = client.get_paginator("list_roles")
        for page in paginator.paginate():
            for role in page.get("Roles", []):
                if role.get("Path", "/").startswith(_SERVICE_ROLE_PATH):
                    continue
                name = role["RoleName"]
                resources.append(
                    self._resource(
                        identifier=name,
                        region=region,
                        properties={
                            "RoleName": name,
                            "Path": role.get("Path"),
                            "CreateDate": role.get("CreateDate"),
                        },
                        tags=role.get("Tags"),
                        label=name,
                    )
                )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        name = resource.identifier

        try:
            for page in client.get_paginator("list_attached_role_policies").paginate(RoleName=name):
                for policy in page.get("AttachedPolicies", []):
                    client.detach_role_policy(RoleName=name, PolicyArn=policy["PolicyArn"])

            for page in client.get_paginator("list_role_policies").paginate(RoleName=name):
                for policy_name in page.get("PolicyNames", []):
                    client.delete_role_policy(RoleName=name, PolicyName=policy_name)

            for page in client.get_paginator("list_instance_profiles_for_role").paginate(RoleName=name):
                for profile in page.get("InstanceProfiles", []):
                    client.remove_role_from_instance_profile(
                        InstanceProfileName=profile["InstanceProfileName"], RoleName=name
                    )
        except ClientError as e:
            if is_not_found(e):
                return RemovalOutcome.REMOVED
            raise removal_error(e, resource)
        except BotoCoreError as e:
            raise removal_error(e, resource)

        return self._call_removal(resource, client.delete_role, RemovalOutcome.REMOVED, RoleName=name)
