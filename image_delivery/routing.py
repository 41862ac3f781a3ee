"""
Resolution of origin / destination buckets for one request.

Single-bucket deployments read both buckets from configuration and may run
without a destination. Multi-bucket deployments take them from the
descriptor, where a destination is mandatory.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from image_delivery.config import Settings
from image_delivery.constants import FROM_BUCKET, TO_BUCKET, TO_BUCKET_REGION, BucketMode
from image_delivery.exceptions import MissingDestinationStore


@dataclass(frozen=True)
class SingleBucketRoute:
    origin_bucket: str
    destination_bucket: str | None

    @property
    def destination_region(self) -> None:
        return None


@dataclass(frozen=True)
class MultiBucketRoute:
    origin_bucket: str | None
    destination_bucket: str
    destination_region: str | None = None


Route = SingleBucketRoute | MultiBucketRoute


def origin_bucket_for(settings: Settings, operations: Mapping[str, str]) -> str | None:
    if settings.bucket_mode == BucketMode.SINGLE:
        return settings.original_image_bucket_name
    return operations.get(FROM_BUCKET) or settings.original_image_bucket_name or None


def resolve_route(settings: Settings, operations: Mapping[str, str]) -> Route:
    """Pick buckets for a request. Raises MissingDestinationStore in multi mode."""
    origin = origin_bucket_for(settings, operations)
    if settings.bucket_mode == BucketMode.SINGLE:
        return SingleBucketRoute(
            origin_bucket=origin,
            destination_bucket=settings.transformed_image_bucket_name or None,
        )

    destination = operations.get(TO_BUCKET)
    if not destination:
        raise MissingDestinationStore()
    return MultiBucketRoute(
        origin_bucket=origin,
        destination_bucket=destination,
        destination_region=operations.get(TO_BUCKET_REGION) or None,
    )
