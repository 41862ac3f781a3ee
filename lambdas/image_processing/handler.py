"""
AWS Lambda handler — On-demand Image Transformation

Invoked through a Lambda Function URL, as the fallback origin of the CDN
when the transformed bucket does not hold the requested variant yet.

Flow:
  1. Checks x-origin-secret-header against SECRET_KEY and that the method is GET.
  2. Splits /<original key>/<descriptor> and downloads the original from S3.
  3. Auto-orients, resizes and re-encodes the image as the descriptor asks.
  4. Uploads the result to the transformed bucket (when configured) under
     <original key>/<descriptor>, public-read, with cache-control metadata.
  5. Returns a JSON reference to the servable image and a Server-Timing header.

Environment variables:
  BUCKET_MODE                    — "single" (fixed buckets) or "multi" (buckets in the descriptor)
  ORIGINAL_IMAGE_BUCKET_NAME     — S3 bucket holding original images
  TRANSFORMED_IMAGE_BUCKET_NAME  — S3 bucket for transformed images (optional)
  TRANSFORMED_IMAGE_CACHE_TTL    — cache-control metadata, e.g. max-age=31622400
  SECRET_KEY                     — shared secret sent by the CDN
  MAX_IMAGE_SIZE                 — largest transformed image returned, in bytes
  AWS_REGION                     — AWS region (set by Lambda runtime)
"""
from __future__ import annotations

import logging

from image_delivery.config import Settings
from image_delivery.pipeline import TransformationPipeline
from image_delivery.s3 import StoreClients
from image_delivery.schemas import ImageRequest

settings = Settings()

logger = logging.getLogger()
logger.setLevel(settings.log_level.upper())

# Reused across warm invocations
stores = StoreClients(settings)


def handler(event: dict, context: object) -> dict:
    """Lambda entry point — transforms one image per invocation."""
    request = ImageRequest.from_lambda_event(event)
    pipeline = TransformationPipeline(settings, stores)
    response = pipeline.run(request)
    logger.info(
        "%s %s -> %d (%s)",
        request.method, request.path, response.status_code, pipeline.state.value,
    )
    return response.to_lambda_response()
