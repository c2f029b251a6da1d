"""S3 listers."""

from __future__ import annotations

from botocore.exceptions import ClientError

from ..errors import LivenessCheckError
from ..models.resource import Resource
from .base import RemovalOutcome, ResourceLister, error_code, is_not_found, removal_error
from .registry import register

# delete_objects accepts at most 1000 keys per request
_DELETE_BATCH = 1000


@register
class S3BucketLister(ResourceLister):
    """S3 buckets. Buckets are emptied (all object versions) before removal."""

    resource_type = "S3Bucket"
    service_name = "s3"
    is_global_service = True
    id_property = "Name"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        for bucket in client.list_buckets().get("Buckets", []):
            name = bucket["Name"]
            tags = []
            try:
                tags = client.get_bucket_tagging(Bucket=name).get("TagSet", [])
            except ClientError as e:
                # Untagged buckets answer with NoSuchTagSet
                if error_code(e) not in ("NoSuchTagSet", "NoSuchBucket"):
                    self.logger.debug(f"Could not read tags of bucket {name}: {error_code(e)}")

            resources.append(
                self._resource(
                    identifier=name,
                    region=region,
                    properties={"Name": name, "CreationDate": bucket.get("CreationDate")},
                    tags=tags,
                    label=name,
                )
            )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        try:
            self._empty_bucket(client, resource.identifier)
        except ClientError as e:
            if is_not_found(e):
                return RemovalOutcome.REMOVED
            raise removal_error(e, resource)

        return self._call_removal(resource, client.delete_bucket, RemovalOutcome.REMOVED, Bucket=resource.identifier)

    def _empty_bucket(self, client, bucket: str) -> None:
        paginator = client.get_paginator("list_object_versions")
        batch: list[dict] = []

        for page in paginator.paginate(Bucket=bucket):
            for entry in page.get("Versions", []) + page.get("DeleteMarkers", []):
                batch.append({"Key": entry["Key"], "VersionId": entry["VersionId"]})
                if len(batch) == _DELETE_BATCH:
                    client.delete_objects(Bucket=bucket, Delete={"Objects": batch, "Quiet": True})
                    batch = []

        if batch:
            client.delete_objects(Bucket=bucket, Delete={"Objects": batch, "Quiet": True})

    def still_present(self, resource: Resource) -> bool:
        client = self._create_client(resource.region)
        try:
            client.head_bucket(Bucket=resource.identifier)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise LivenessCheckError(f"Failed to check bucket {resource.identifier}: {error_code(e)}")
        return True
