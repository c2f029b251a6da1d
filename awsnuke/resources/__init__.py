"""Resource listers.

Importing this package registers every built-in lister in the catalogue.
"""

from __future__ import annotations

from . import awslambda, ec2, efs, elasticache, iam, s3  # noqa: F401
from .base import RemovalOutcome, ResourceLister
from .registry import ResourceRegistry, lister_names, register

__all__ = [
    "RemovalOutcome",
    "ResourceLister",
    "ResourceRegistry",
    "lister_names",
    "register",
]
