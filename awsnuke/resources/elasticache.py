"""ElastiCache listers."""

from __future__ import annotations

from botocore.exceptions import ClientError

from ..models.resource import Resource
from .base import RemovalOutcome, ResourceLister, error_code
from .registry import register


@register
class ElastiCacheClusterLister(ResourceLister):
    """ElastiCache cache clusters (Redis and Memcached)."""

    resource_type = "ElastiCacheCluster"
    service_name = "elasticache"
    id_property = "CacheClusterId"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        paginator = client.get_paginator("describe_cache_clusters")
        # ShowCacheNodeInfo=False for performance (node-level details are not needed)
        for page in paginator.paginate(ShowCacheNodeInfo=False):
            for cluster in page.get("CacheClusters", []):
                cluster_id = cluster["CacheClusterId"]
                if cluster.get("CacheClusterStatus") == "deleting":
                    self.logger.debug(f"ElastiCache cluster {cluster_id} is already deleting")

                tags = []
                if cluster.get("ARN"):
                    try:
                        tags = client.list_tags_for_resource(ResourceName=cluster["ARN"]).get("TagList", [])
                    except ClientError as e:
                        self.logger.debug(f"Could not get tags for ElastiCache cluster {cluster_id}: {error_code(e)}")

                resources.append(
                    self._resource(
                        identifier=cluster_id,
                        region=region,
                        properties={
                            "CacheClusterId": cluster_id,
                            "Engine": cluster.get("Engine"),
                            "CacheNodeType": cluster.get("CacheNodeType"),
                            "CacheClusterStatus": cluster.get("CacheClusterStatus"),
                            "CacheClusterCreateTime": cluster.get("CacheClusterCreateTime"),
                            "ReplicationGroupId": cluster.get("ReplicationGroupId"),
                        },
                        tags=tags,
                        label=cluster_id,
                    )
                )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        return self._call_removal(
            resource, client.delete_cache_cluster, RemovalOutcome.PENDING, CacheClusterId=resource.identifier
        )
