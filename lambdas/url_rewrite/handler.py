"""
Lambda@Edge handler — Viewer Request URL Rewrite

Runs on every viewer request before the CDN cache lookup. Turns query
parameters into a canonical descriptor path so equivalent requests share one
cache entry:

  /images/rio/1.jpeg?width=300&format=auto  ->  /images/rio/1.jpeg/format=webp,width=300

No environment variables: Lambda@Edge does not support them.
"""
from __future__ import annotations

import urllib.parse

from image_delivery.normalizer import normalize_request


def handler(event: dict, context: object) -> dict:
    """Lambda entry point — returns the rewritten request to the CDN."""
    request = event["Records"][0]["cf"]["request"]

    query = dict(
        urllib.parse.parse_qsl(request.get("querystring") or "", keep_blank_values=True)
    )
    accept = None
    for header in (request.get("headers") or {}).get("accept", []):
        accept = header.get("value")

    rewritten = normalize_request(request.get("uri", ""), query, accept)
    request["uri"] = rewritten.uri
    request["querystring"] = rewritten.querystring
    return request
