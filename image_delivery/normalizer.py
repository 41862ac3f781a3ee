"""
Edge request normalizer.

Runs once per viewer request, before the CDN cache lookup. Free-form query
parameters are validated and folded into a canonical descriptor appended to
the path; the query string is then dropped so the rewritten path is the only
cache key. Invalid parameters are ignored, never reported.
"""
from __future__ import annotations

import urllib.parse
from collections.abc import Mapping
from dataclasses import dataclass

from image_delivery.constants import (
    FORMAT,
    HEIGHT,
    ORIGINAL_MARKER,
    QUALITY,
    RATIO,
    ROUTING_QUERY_PARAMS,
    SUPPORTED_FORMATS,
    TO_BUCKET_PATH,
    TRANSFORM_KEYS,
    WIDTH,
    ImageFormat,
)
from image_delivery.operations import encode_operations, parse_leading_int
# Characters encodeURIComponent leaves alone besides alphanumerics and -_.~
_URI_COMPONENT_SAFE = "!*'()"


@dataclass(frozen=True)
class RewrittenRequest:
    uri: str
    querystring: str = ""


def _positive_int(value: str) -> int | None:
    number = parse_leading_int(value)
    if number is None or number <= 0:
        return None
    return number


def resolve_auto_format(uri: str, accept: str | None) -> str:
    """Pick an output format from the file extension and the Accept header."""
    if uri.rsplit(".", 1)[-1].lower() == ImageFormat.PNG.value:
        fmt = ImageFormat.PNG.value
    else:
        fmt = ImageFormat.JPEG.value
    if accept:
        # webp is preferred over avif when both are accepted
        if "webp" in accept:
            fmt = ImageFormat.WEBP.value
        elif "avif" in accept:
            fmt = ImageFormat.AVIF.value
    return fmt


def normalize_operations(
    uri: str,
    query: Mapping[str, str],
    accept: str | None = None,
) -> dict[str, str]:
    """Validate query parameters and map them to descriptor keys."""
    operations: dict[str, str] = {}
    for name, value in query.items():
        if not value:
            continue
        param = name.lower()

        if param in ROUTING_QUERY_PARAMS:
            key = ROUTING_QUERY_PARAMS[param]
            if key == TO_BUCKET_PATH:
                value = urllib.parse.quote(value, safe=_URI_COMPONENT_SAFE)
            operations[key] = value
        elif param == RATIO:
            operations[RATIO] = value.lower()
        elif param == FORMAT:
            fmt = value.lower()
            if fmt not in SUPPORTED_FORMATS:
                continue
            if fmt == ImageFormat.AUTO.value:
                fmt = resolve_auto_format(uri, accept)
            operations[FORMAT] = fmt
        elif param in (WIDTH, HEIGHT):
            size = _positive_int(value)
            if size is not None:
                operations[param] = str(size)
        elif param == QUALITY:
            quality = _positive_int(value)
            if quality is not None:
                operations[QUALITY] = str(min(quality, 100))
    return operations


def normalize_request(
    uri: str,
    query: Mapping[str, str],
    accept: str | None = None,
) -> RewrittenRequest:
    """Rewrite ``uri`` to ``<uri>/<canonical descriptor>`` and clear the query."""
    operations = normalize_operations(uri, query, accept)
    descriptor = encode_operations(operations)

    if not descriptor:
        return RewrittenRequest(uri=f"{uri}/{ORIGINAL_MARKER}")
    if any(key in operations for key in TRANSFORM_KEYS):
        return RewrittenRequest(uri=f"{uri}/{descriptor}")
    # Custom routing without a transform still needs the marker up front
    return RewrittenRequest(uri=f"{uri}/{ORIGINAL_MARKER},{descriptor}")
