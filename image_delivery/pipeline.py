"""
Transformation pipeline — one instance per image request.

Flow:
  1. Reject requests without the CDN shared secret (403) or not GET (400).
  2. Resolve buckets; multi-bucket mode without a destination fails (500).
  3. Download the original (img-download).
  4. Transform it (img-transform).
  5. Refuse outputs above MAX_IMAGE_SIZE with 413 and the original reference.
  6. Upload to the transformed bucket when one is configured (img-upload).
  7. Answer with the servable reference and a Server-Timing header.

Phase failures are raised as the HTTP exceptions in ``image_delivery.exceptions``
and converted into a response here; ``run`` itself never raises them.
"""
from __future__ import annotations

import enum
import hmac
import logging

from fastapi import HTTPException, status

from image_delivery.config import Settings
from image_delivery.constants import SECRET_HEADER, TimingPhase
from image_delivery.exceptions import BadMethod, OutputTooLarge, Unauthorized
from image_delivery.operations import destination_key, parse_resource_path
from image_delivery.routing import Route, origin_bucket_for, resolve_route
from image_delivery.s3 import StoreClients, fetch_original, publish_transformed
from image_delivery.schemas import (
    ImageReference,
    ImageRequest,
    ResponseEnvelope,
    TransformedArtifact,
)
from image_delivery.timing import TimingLog
from image_delivery.transform import ImageEngine, PillowEngine, TransformOptions

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    UNAUTHORIZED = "UNAUTHORIZED"
    BAD_REQUEST = "BAD_REQUEST"
    AUTHORIZED = "AUTHORIZED"
    MISCONFIGURED = "MISCONFIGURED"
    DOWNLOADING = "DOWNLOADING"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    TRANSFORMING = "TRANSFORMING"
    TRANSFORM_FAILED = "TRANSFORM_FAILED"
    SIZE_CHECKED = "SIZE_CHECKED"
    UPLOADING = "UPLOADING"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    TOO_LARGE = "TOO_LARGE"
    SUCCESS = "SUCCESS"


# State a phase ends in when it raises
_FAILED_STATES: dict[PipelineState, PipelineState] = {
    PipelineState.AUTHORIZED: PipelineState.MISCONFIGURED,
    PipelineState.DOWNLOADING: PipelineState.DOWNLOAD_FAILED,
    PipelineState.TRANSFORMING: PipelineState.TRANSFORM_FAILED,
    PipelineState.SIZE_CHECKED: PipelineState.TOO_LARGE,
    PipelineState.UPLOADING: PipelineState.UPLOAD_FAILED,
}


class TransformationPipeline:
    def __init__(
        self,
        settings: Settings,
        stores: StoreClients,
        engine: ImageEngine | None = None,
    ) -> None:
        self._settings = settings
        self._stores = stores
        self._engine = engine or PillowEngine()
        self.state = PipelineState.RECEIVED
        self.timing = TimingLog()

    # ── Entry ────────────────────────────────────────────────────────────────

    def run(self, request: ImageRequest) -> ResponseEnvelope:
        try:
            self._authorize(request)
        except HTTPException as exc:
            logger.warning("Rejected %s %s: %s", request.method, request.path, exc.detail)
            return ResponseEnvelope(status_code=exc.status_code, body={"error": exc.detail})
        self.state = PipelineState.AUTHORIZED

        original_key, operations = parse_resource_path(request.path)
        reference = ImageReference(
            bucket=origin_bucket_for(self._settings, operations),
            key=original_key,
        )
        try:
            route = resolve_route(self._settings, operations)
            reference = self._execute(route, reference, operations)
        except HTTPException as exc:
            self.state = _FAILED_STATES.get(self.state, self.state)
            logger.error(
                "APPLICATION ERROR %s: %s", exc.detail, original_key,
                exc_info=exc.__cause__,
            )
            return self._respond(exc.status_code, reference.with_error(exc.detail))

        self.state = PipelineState.SUCCESS
        return self._respond(status.HTTP_200_OK, reference)

    def _authorize(self, request: ImageRequest) -> None:
        secret = request.headers.get(SECRET_HEADER) or ""
        expected = self._settings.secret_key
        if not secret or not expected or not hmac.compare_digest(secret.encode(), expected.encode()):
            self.state = PipelineState.UNAUTHORIZED
            raise Unauthorized()
        if request.method.upper() != "GET":
            self.state = PipelineState.BAD_REQUEST
            raise BadMethod()

    # ── Phases ───────────────────────────────────────────────────────────────

    def _execute(
        self, route: Route, original: ImageReference, operations: dict[str, str],
    ) -> ImageReference:
        self.state = PipelineState.DOWNLOADING
        with self.timing.phase(TimingPhase.DOWNLOAD.value):
            body, content_type = fetch_original(
                self._stores.default, route.origin_bucket, original.key,
            )

        self.state = PipelineState.TRANSFORMING
        options = TransformOptions.from_operations(operations)
        with self.timing.phase(TimingPhase.TRANSFORM.value):
            artifact = self._engine.transform(body, content_type, options)

        self.state = PipelineState.SIZE_CHECKED
        self._check_size(artifact)

        if route.destination_bucket is None:
            return original
        return self._upload(route, original, operations, artifact)

    def _check_size(self, artifact: TransformedArtifact) -> None:
        limit = self._settings.max_image_size
        if artifact.byte_length > limit:
            raise OutputTooLarge(limit, artifact.byte_length)

    def _upload(
        self,
        route: Route,
        original: ImageReference,
        operations: dict[str, str],
        artifact: TransformedArtifact,
    ) -> ImageReference:
        self.state = PipelineState.UPLOADING
        key = destination_key(original.key, operations)
        client = self._stores.for_region(route.destination_region)
        with self.timing.phase(TimingPhase.UPLOAD.value):
            publish_transformed(
                client,
                artifact,
                bucket=route.destination_bucket,
                key=key,
                cache_control=self._settings.transformed_image_cache_ttl,
                region=route.destination_region,
            )
        return ImageReference(bucket=route.destination_bucket, key=key, transformed=True)

    # ── Response ─────────────────────────────────────────────────────────────

    def _respond(self, status_code: int, reference: ImageReference) -> ResponseEnvelope:
        return ResponseEnvelope(
            status_code=status_code,
            body=reference.as_body(),
            server_timing=self.timing.header_value(),
        )
