"""Lambda listers."""

from __future__ import annotations

from ..models.resource import Resource
from .base import RemovalOutcome, ResourceLister
from .registry import register


@register
class LambdaFunctionLister(ResourceLister):
    resource_type = "LambdaFunction"
    service_name = "lambda"
    id_property = "FunctionName"

    def list(self, region: str) -> list[Resource]:
        client = self._create_client(region)
        resources = []

        paginator = client.get_paginator("list_functions")
        for page in paginator.paginate():
            for function in page.get("Functions", []):
                name = function["FunctionName"]
                resources.append(
                    self._resource(
                        identifier=name,
                        region=region,
                        properties={
                            "FunctionName": name,
                            "Runtime": function.get("Runtime"),
                            "LastModified": function.get("LastModified"),
                            "MemorySize": function.get("MemorySize"),
                        },
                        label=name,
                    )
                )

        return resources

    def remove(self, resource: Resource) -> RemovalOutcome:
        client = self._create_client(resource.region)
        return self._call_removal(
            resource, client.delete_function, RemovalOutcome.REMOVED, FunctionName=resource.identifier
        )
