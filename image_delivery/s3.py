"""
AWS S3 access — original image download and transformed image upload.

Flow:
  1. The pipeline downloads the original object with the default client.
  2. After transformation, the result is written once to the transformed
     bucket, through a regional client when the descriptor names a region.
  3. Nothing is read back or retried; the CDN origin group re-requests on
     failure.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from image_delivery.config import Settings
from image_delivery.constants import DEFAULT_CONTENT_TYPE, PUBLIC_READ_ACL
from image_delivery.exceptions import OriginFetchFailed, PersistFailed
from image_delivery.schemas import TransformedArtifact

logger = logging.getLogger(__name__)

_CLIENT_CONFIG = Config(max_pool_connections=25)


def _make_client(region: str | None) -> Any:
    return boto3.client("s3", region_name=region or None, config=_CLIENT_CONFIG)


class StoreClients:
    """Process-wide S3 clients.

    The default client is created on first use and shared by every request.
    Regional clients are created once per region; two requests racing on a
    new region may both build one, which is harmless.
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[str | None], Any] = _make_client,
    ) -> None:
        self._default_region = settings.aws_region or None
        self._factory = client_factory
        self._default: Any | None = None
        self._regional: dict[str, Any] = {}

    @property
    def default(self) -> Any:
        if self._default is None:
            self._default = self._factory(self._default_region)
        return self._default

    def for_region(self, region: str | None) -> Any:
        if not region:
            return self.default
        client = self._regional.get(region)
        if client is None:
            logger.info("Creating S3 client for region %s", region)
            client = self._factory(region)
            self._regional[region] = client
        return client


def fetch_original(client: Any, bucket: str | None, key: str) -> tuple[bytes, str]:
    """Return (body, content_type) of the original image."""
    try:
        response = client.get_object(Bucket=bucket, Key=key)
        body: bytes = response["Body"].read()
    except (BotoCoreError, ClientError) as exc:
        raise OriginFetchFailed() from exc
    logger.info("Downloaded s3://%s/%s (%d bytes)", bucket, key, len(body))
    return body, response.get("ContentType") or DEFAULT_CONTENT_TYPE


def publish_transformed(
    client: Any,
    artifact: TransformedArtifact,
    *,
    bucket: str,
    key: str,
    cache_control: str,
    region: str | None = None,
) -> None:
    """Write the transformed image, publicly readable, in a single PUT."""
    try:
        client.put_object(
            Body=artifact.body,
            Bucket=bucket,
            Key=key,
            ContentType=artifact.content_type,
            Metadata={"cache-control": cache_control},
            ACL=PUBLIC_READ_ACL,
        )
    except (BotoCoreError, ClientError) as exc:
        raise PersistFailed(bucket, region, key) from exc
    logger.info(
        "Uploaded s3://%s/%s (%d bytes, %s)",
        bucket, key, artifact.byte_length, artifact.content_type,
    )
