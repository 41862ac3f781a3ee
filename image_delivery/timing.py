"""Per-request phase timings, rendered as a ``Server-Timing`` header value."""
from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager


class TimingLog:
    """Append-only ``(phase, milliseconds)`` entries for one request."""

    def __init__(self) -> None:
        self._entries: list[tuple[str, int]] = []

    @property
    def entries(self) -> list[tuple[str, int]]:
        return list(self._entries)

    def record(self, phase: str, duration_ms: int) -> None:
        self._entries.append((phase, duration_ms))

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        """Time the block; the entry is written even when the block raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, int((time.perf_counter() - start) * 1000))

    def header_value(self) -> str:
        return ",".join(f"{name};dur={ms}" for name, ms in self._entries)
