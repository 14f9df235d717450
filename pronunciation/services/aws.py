"""Shared AWS helpers for service clients."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from pronunciation.config.settings import settings

# Retries are owned by RetryPolicy; botocore only enforces socket timeouts.
_CLIENT_CONFIG = Config(
    connect_timeout=5,
    read_timeout=int(settings.retry.timeout_seconds),
    retries={"max_attempts": 1, "mode": "standard"},
)


def create_boto3_client(
    service_name: str,
    *,
    region_name: str | None = None,
) -> Any:
    """Instantiate a boto3 client using configured credentials if available."""

    client_kwargs: dict[str, Any] = {
        "region_name": region_name or settings.s3.region,
        "config": _CLIENT_CONFIG,
    }
    if settings.s3.access_key and settings.s3.secret_key:
        client_kwargs["aws_access_key_id"] = settings.s3.access_key
        client_kwargs["aws_secret_access_key"] = settings.s3.secret_key
    return boto3.client(service_name, **client_kwargs)


__all__ = ["create_boto3_client"]
