"""Tests for the built-in AWS listers with mocked boto3 clients."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, call

import pytest
from botocore.exceptions import ClientError

from awsnuke.errors import LivenessCheckError, RemovalError
from awsnuke.resources.awslambda import LambdaFunctionLister
from awsnuke.resources.base import RemovalOutcome
from awsnuke.resources.ec2 import EC2InstanceLister, EC2SecurityGroupLister, EC2VolumeLister
from awsnuke.resources.efs import EFSFileSystemLister, EFSMountTargetLister
from awsnuke.resources.elasticache import ElastiCacheClusterLister
from awsnuke.resources.iam import IAMRoleLister
from awsnuke.resources.s3 import S3BucketLister
from tests.fixtures.nuke import create_resource


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def mock_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def account(mock_client: MagicMock) -> Mock:
    account = Mock()
    account.client.return_value = mock_client
    return account


def paginate(mock_client: MagicMock, pages: dict) -> None:
    """Serve paginator pages per operation name."""

    def get_paginator(operation: str) -> MagicMock:
        paginator = MagicMock()
        paginator.paginate.return_value = pages.get(operation, [])
        return paginator

    mock_client.get_paginator.side_effect = get_paginator


class TestS3BucketLister:
    """Tests for S3BucketLister."""

    def test_list_buckets_with_tags(self, account: Mock, mock_client: MagicMock) -> None:
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        mock_client.list_buckets.return_value = {
            "Buckets": [{"Name": "tagged", "CreationDate": created}, {"Name": "plain", "CreationDate": created}]
        }
        mock_client.get_bucket_tagging.side_effect = [
            {"TagSet": [{"Key": "Env", "Value": "dev"}]},
            client_error("NoSuchTagSet"),
        ]

        resources = S3BucketLister(account).list("global")

        assert [r.identifier for r in resources] == ["tagged", "plain"]
        assert resources[0].get_property("tag:Env") == "dev"
        assert resources[0].get_property("CreationDate") == created
        assert resources[1].tags == {}
        account.client.assert_called_with("s3", "global")

    def test_remove_empties_bucket_in_batches(self, account: Mock, mock_client: MagicMock) -> None:
        versions = [{"Key": f"k{i}", "VersionId": str(i)} for i in range(1001)]
        paginate(mock_client, {"list_object_versions": [{"Versions": versions, "DeleteMarkers": []}]})

        outcome = S3BucketLister(account).remove(create_resource("b", "S3Bucket", region="global"))

        assert outcome == RemovalOutcome.REMOVED
        assert mock_client.delete_objects.call_count == 2
        assert len(mock_client.delete_objects.call_args_list[0].kwargs["Delete"]["Objects"]) == 1000
        mock_client.delete_bucket.assert_called_once_with(Bucket="b")

    def test_remove_missing_bucket(self, account: Mock, mock_client: MagicMock) -> None:
        mock_client.get_paginator.side_effect = client_error("NoSuchBucket")

        assert S3BucketLister(account).remove(create_resource("b", "S3Bucket")) == RemovalOutcome.REMOVED

    def test_still_present(self, account: Mock, mock_client: MagicMock) -> None:
        lister = S3BucketLister(account)
        bucket = create_resource("b", "S3Bucket", region="global")

        assert lister.still_present(bucket) is True
        mock_client.head_bucket.side_effect = client_error("404")
        assert lister.still_present(bucket) is False
        mock_client.head_bucket.side_effect = client_error("403")
        with pytest.raises(LivenessCheckError):
            lister.still_present(bucket)


class TestEC2Listers:
    """Tests for EC2 instance, volume and security group listers."""

    def test_instances_skip_terminated(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(
            mock_client,
            {
                "describe_instances": [
                    {
                        "Reservations": [
                            {
                                "Instances": [
                                    {
                                        "InstanceId": "i-1",
                                        "State": {"Name": "running"},
                                        "Tags": [{"Key": "Name", "Value": "web"}],
                                    },
                                    {"InstanceId": "i-2", "State": {"Name": "terminated"}},
                                ]
                            }
                        ]
                    }
                ]
            },
        )

        resources = EC2InstanceLister(account).list("us-east-1")

        assert [r.identifier for r in resources] == ["i-1"]
        assert str(resources[0]) == "web"
        assert resources[0].get_property("State") == "running"

    def test_terminate_is_pending(self, account: Mock, mock_client: MagicMock) -> None:
        outcome = EC2InstanceLister(account).remove(create_resource("i-1", "EC2Instance"))

        assert outcome == RemovalOutcome.PENDING
        mock_client.terminate_instances.assert_called_once_with(InstanceIds=["i-1"])

    def test_instance_still_present_until_terminated(self, account: Mock, mock_client: MagicMock) -> None:
        lister = EC2InstanceLister(account)
        instance = create_resource("i-1", "EC2Instance")

        mock_client.describe_instances.return_value = {
            "Reservations": [{"Instances": [{"InstanceId": "i-1", "State": {"Name": "shutting-down"}}]}]
        }
        assert lister.still_present(instance) is True

        mock_client.describe_instances.return_value = {
            "Reservations": [{"Instances": [{"InstanceId": "i-1", "State": {"Name": "terminated"}}]}]
        }
        assert lister.still_present(instance) is False

        mock_client.describe_instances.side_effect = client_error("InvalidInstanceID.NotFound")
        assert lister.still_present(instance) is False

    def test_volume_removal(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(mock_client, {"describe_volumes": [{"Volumes": [{"VolumeId": "vol-1", "State": "available", "Size": 8}]}]})
        lister = EC2VolumeLister(account)

        volume = lister.list("us-east-1")[0]

        assert volume.get_property("Size") == 8
        assert lister.remove(volume) == RemovalOutcome.PENDING
        mock_client.delete_volume.assert_called_once_with(VolumeId="vol-1")

    def test_default_security_group_is_not_listed(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(
            mock_client,
            {
                "describe_security_groups": [
                    {
                        "SecurityGroups": [
                            {"GroupId": "sg-1", "GroupName": "default"},
                            {"GroupId": "sg-2", "GroupName": "web"},
                        ]
                    }
                ]
            },
        )

        resources = EC2SecurityGroupLister(account).list("us-east-1")

        assert [r.identifier for r in resources] == ["sg-2"]
        assert str(resources[0]) == "web"

    def test_security_group_dependency_violation_is_retryable(self, account: Mock, mock_client: MagicMock) -> None:
        mock_client.delete_security_group.side_effect = client_error("DependencyViolation")

        with pytest.raises(RemovalError) as exc_info:
            EC2SecurityGroupLister(account).remove(create_resource("sg-2", "EC2SecurityGroup"))

        assert exc_info.value.retryable is True


class TestIAMRoleLister:
    """Tests for IAMRoleLister."""

    def test_service_linked_roles_are_not_listed(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(
            mock_client,
            {
                "list_roles": [
                    {
                        "Roles": [
                            {"RoleName": "AWSServiceRoleForSupport", "Path": "/aws-service-role/support/"},
                            {"RoleName": "app", "Path": "/"},
                        ]
                    }
                ]
            },
        )

        resources = IAMRoleLister(account).list("global")

        assert [r.identifier for r in resources] == ["app"]

    def test_remove_detaches_everything_first(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(
            mock_client,
            {
                "list_attached_role_policies": [{"AttachedPolicies": [{"PolicyArn": "arn:aws:iam::aws:policy/X"}]}],
                "list_role_policies": [{"PolicyNames": ["inline"]}],
                "list_instance_profiles_for_role": [{"InstanceProfiles": [{"InstanceProfileName": "profile"}]}],
            },
        )

        outcome = IAMRoleLister(account).remove(create_resource("app", "IAMRole", region="global"))

        assert outcome == RemovalOutcome.REMOVED
        mock_client.detach_role_policy.assert_called_once_with(RoleName="app", PolicyArn="arn:aws:iam::aws:policy/X")
        mock_client.delete_role_policy.assert_called_once_with(RoleName="app", PolicyName="inline")
        mock_client.remove_role_from_instance_profile.assert_called_once_with(
            InstanceProfileName="profile", RoleName="app"
        )
        mock_client.delete_role.assert_called_once_with(RoleName="app")

    def test_remove_access_denied_is_not_retryable(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(mock_client, {})
        mock_client.delete_role.side_effect = client_error("AccessDenied")

        with pytest.raises(RemovalError) as exc_info:
            IAMRoleLister(account).remove(create_resource("app", "IAMRole", region="global"))

        assert exc_info.value.retryable is False


class TestLambdaFunctionLister:
    """Tests for LambdaFunctionLister."""

    def test_list_and_remove(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(mock_client, {"list_functions": [{"Functions": [{"FunctionName": "fn", "Runtime": "python3.12"}]}]})
        lister = LambdaFunctionLister(account)

        function = lister.list("eu-west-1")[0]

        assert function.get_property("Runtime") == "python3.12"
        assert lister.remove(function) == RemovalOutcome.REMOVED
        mock_client.delete_function.assert_called_once_with(FunctionName="fn")


class TestEFSListers:
    """Tests for EFS file system and mount target listers."""

    def test_file_systems_skip_deleted(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(
            mock_client,
            {
                "describe_file_systems": [
                    {
                        "FileSystems": [
                            {"FileSystemId": "fs-1", "LifeCycleState": "available", "Name": "shared"},
                            {"FileSystemId": "fs-2", "LifeCycleState": "deleted"},
                        ]
                    }
                ]
            },
        )

        resources = EFSFileSystemLister(account).list("us-east-1")

        assert [r.identifier for r in resources] == ["fs-1"]
        assert str(resources[0]) == "shared"

    def test_unavailable_region_lists_nothing(self, account: Mock, mock_client: MagicMock) -> None:
        mock_client.get_paginator.side_effect = client_error("OptInRequired")

        assert EFSFileSystemLister(account).list("ap-east-1") == []

    def test_mount_targets(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(mock_client, {"describe_file_systems": [{"FileSystems": [{"FileSystemId": "fs-1"}]}]})
        mock_client.describe_mount_targets.return_value = {
            "MountTargets": [{"MountTargetId": "fsmt-1", "SubnetId": "subnet-1", "LifeCycleState": "available"}]
        }
        lister = EFSMountTargetLister(account)

        target = lister.list("us-east-1")[0]

        assert target.get_property("FileSystemId") == "fs-1"
        assert lister.remove(target) == RemovalOutcome.PENDING
        mock_client.delete_mount_target.assert_called_once_with(MountTargetId="fsmt-1")

    def test_file_system_in_use_is_retryable(self, account: Mock, mock_client: MagicMock) -> None:
        mock_client.delete_file_system.side_effect = client_error("FileSystemInUse")

        with pytest.raises(RemovalError) as exc_info:
            EFSFileSystemLister(account).remove(create_resource("fs-1", "EFSFileSystem"))

        assert exc_info.value.retryable is True


class TestElastiCacheClusterLister:
    """Tests for ElastiCacheClusterLister."""

    def test_list_with_tags(self, account: Mock, mock_client: MagicMock) -> None:
        paginate(
            mock_client,
            {
                "describe_cache_clusters": [
                    {"CacheClusters": [{"CacheClusterId": "redis-1", "Engine": "redis", "ARN": "arn:redis-1"}]}
                ]
            },
        )
        mock_client.list_tags_for_resource.return_value = {"TagList": [{"Key": "Team", "Value": "cache"}]}

        resources = ElastiCacheClusterLister(account).list("us-east-1")

        assert resources[0].get_property("Engine") == "redis"
        assert resources[0].get_property("tag:Team") == "cache"
        mock_client.list_tags_for_resource.assert_called_once_with(ResourceName="arn:redis-1")

    def test_pagination_skips_node_info(self, account: Mock, mock_client: MagicMock) -> None:
        paginator = MagicMock()
        paginator.paginate.return_value = []
        mock_client.get_paginator.return_value = paginator

        ElastiCacheClusterLister(account).list("us-east-1")

        assert paginator.paginate.call_args == call(ShowCacheNodeInfo=False)

    def test_remove_is_pending(self, account: Mock, mock_client: MagicMock) -> None:
        outcome = ElastiCacheClusterLister(account).remove(create_resource("redis-1", "ElastiCacheCluster"))

        assert outcome == RemovalOutcome.PENDING
        mock_client.delete_cache_cluster.assert_called_once_with(CacheClusterId="redis-1")
