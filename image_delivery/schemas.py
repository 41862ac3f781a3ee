"""
Image delivery — request, result and response types.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict

from image_delivery.constants import JSON_CONTENT_TYPE


class ImageReference(BaseModel):
    """Where the servable image lives: the original or the transformed copy."""
    model_config = ConfigDict(frozen=True)

    bucket: str | None
    key: str
    transformed: bool = False
    error: str | None = None

    def with_error(self, message: str) -> ImageReference:
        return self.model_copy(update={"error": message})

    def as_body(self) -> dict[str, Any]:
        body = self.model_dump()
        if body["error"] is None:
            del body["error"]
        return body


@dataclass(frozen=True)
class TransformedArtifact:
    body: bytes
    content_type: str

    @property
    def byte_length(self) -> int:
        return len(self.body)


@dataclass(frozen=True)
class ImageRequest:
    """The parts of an inbound HTTP request the pipeline looks at."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_lambda_event(cls, event: Mapping[str, Any]) -> ImageRequest:
        """Build from a Lambda Function URL (payload v2) event."""
        http = (event.get("requestContext") or {}).get("http") or {}
        headers = {
            str(k).lower(): v for k, v in (event.get("headers") or {}).items()
        }
        return cls(
            method=http.get("method", ""),
            path=http.get("path", ""),
            headers=headers,
        )


@dataclass
class ResponseEnvelope:
    status_code: int
    body: dict[str, Any]
    server_timing: str = ""

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        if self.server_timing:
            headers["Server-Timing"] = self.server_timing
        return headers

    def to_lambda_response(self) -> dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "headers": self.headers,
            "body": json.dumps(self.body),
        }
