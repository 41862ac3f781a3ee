"""
Image delivery — domain-specific HTTP exceptions.

Every exception carries a preset status code and message so call sites never
specify them. The transformation pipeline raises these inside its phases and
turns them into a response envelope at its boundary.
"""
from fastapi import HTTPException, status


# ── Entry checks ─────────────────────────────────────────────────────────────

class Unauthorized(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Request unauthorized",
        )


class BadMethod(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad Request",
        )


# ── Routing ──────────────────────────────────────────────────────────────────

class MissingDestinationStore(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Transformed bucket not found",
        )


# ── Pipeline phases ──────────────────────────────────────────────────────────

class OriginFetchFailed(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unexpected error during original image downloading",
        )


class TransformFailed(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unexpected error during image transformation",
        )


class OutputTooLarge(HTTPException):
    def __init__(self, max_bytes: int, actual_bytes: int) -> None:
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=(
                "Requested transformed image is too big. "
                f"(max: {max_bytes} bytes, actual: {actual_bytes} bytes)"
            ),
        )


class PersistFailed(HTTPException):
    def __init__(self, bucket: str, region: str | None, key: str) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=(
                f"Could not upload transformed image in S3 bucket: {bucket}, "
                f"region: {region or 'default'}, key: {key}"
            ),
        )
