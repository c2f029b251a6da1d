"""boto3 session and client construction."""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 300


def client_config(call_timeout: float = DEFAULT_CALL_TIMEOUT) -> BotoConfig:
    """botocore configuration bounding every API call.

    Args:
        call_timeout: Upper bound in seconds for connecting and reading
    """
    return BotoConfig(
        connect_timeout=min(call_timeout, 60),
        read_timeout=call_timeout,
        retries={"max_attempts": 5, "mode": "adaptive"},
    )


def create_session(
    profile_name: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    session_token: Optional[str] = None,
    region_name: Optional[str] = None,
) -> boto3.Session:
    """Create a boto3 session from a profile or static keys."""
    kwargs: dict[str, Any] = {}
    if profile_name:
        kwargs["profile_name"] = profile_name
    if access_key_id:
        kwargs["aws_access_key_id"] = access_key_id
        kwargs["aws_secret_access_key"] = secret_access_key
        if session_token:
            kwargs["aws_session_token"] = session_token
    if region_name:
        kwargs["region_name"] = region_name
    return boto3.Session(**kwargs)


def create_boto_client(
    session: boto3.Session,
    service_name: str,
    region_name: str,
    call_timeout: float = DEFAULT_CALL_TIMEOUT,
) -> Any:
    """Create a service client bound to a region.

    Args:
        session: boto3 session carrying the credentials
        service_name: AWS service name (e.g. "ec2")
        region_name: AWS region
        call_timeout: Upper bound in seconds for each API call
    """
    logger.debug(f"Creating {service_name} client in {region_name}")
    return session.client(service_name, region_name=region_name, config=client_config(call_timeout))
