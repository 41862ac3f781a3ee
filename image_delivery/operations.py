"""
Operation descriptor codec.

A descriptor is the ``key=value,key=value`` segment at the end of a resource
path, e.g. ``/images/rio/1.jpeg/format=webp,width=100``. It fully determines
a transform and doubles as its cache key, so serialization is deterministic.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from image_delivery.constants import CANONICAL_ORDER, ORIGINAL_MARKER, ROUTING_KEYS

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_leading_int(value: str | None) -> int | None:
    """Leading-integer parse: ``"120px"`` -> 120, ``"100.5"`` -> 100, ``"abc"`` -> None."""
    match = _LEADING_INT.match(value or "")
    return int(match.group(1)) if match else None


def decode_operations(serialized: str) -> dict[str, str]:
    """Parse a descriptor segment into an ordered mapping.

    Fragments without ``=`` or with an empty value are dropped, so the
    ``original`` marker decodes to nothing.
    """
    operations: dict[str, str] = {}
    for fragment in serialized.split(","):
        parts = fragment.split("=")
        if len(parts) < 2 or not parts[1]:
            continue
        operations[parts[0]] = parts[1]
    return operations


def encode_operations(
    operations: Mapping[str, str | None],
    order: Iterable[str] = CANONICAL_ORDER,
) -> str:
    """Serialize ``operations`` following ``order``; empty values are omitted."""
    return ",".join(
        f"{key}={operations[key]}" for key in order if operations.get(key)
    )


def strip_routing(operations: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``operations`` without the bucket routing keys."""
    return {k: v for k, v in operations.items() if k not in ROUTING_KEYS}


def parse_resource_path(path: str) -> tuple[str, dict[str, str]]:
    """Split ``/<original key>/<descriptor>`` into the key and decoded operations."""
    segments = path.split("/")
    descriptor = segments.pop()
    if segments and segments[0] == "":
        segments.pop(0)
    return "/".join(segments), decode_operations(descriptor)


def destination_key(original_key: str, operations: Mapping[str, str]) -> str:
    """Key of the transformed object: ``<original key>/<descriptor w/o routing>``."""
    descriptor = encode_operations(strip_routing(operations))
    return f"{original_key}/{descriptor or ORIGINAL_MARKER}"
