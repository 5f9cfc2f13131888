"""Shared test utilities for godot-lsp-bridge tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any


def frame(body: bytes | str | dict[str, Any]) -> bytes:
    """Build a Content-Length framed message from bytes, text or a JSON dict."""
    if isinstance(body, dict):
        body = json.dumps(body, separators=(",", ":"))
    if isinstance(body, str):
        body = body.encode("utf-8")
    return f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body


def make_reader(data: bytes = b"", *, eof: bool = True) -> asyncio.StreamReader:
    """Create a StreamReader preloaded with data."""
    reader = asyncio.StreamReader()
    if data:
        reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


class CaptureWriter:
    """Minimal StreamWriter stand-in that records everything written."""

    def __init__(self) -> None:
        self.buffer = bytearray()
        self.closed = False
        self.eof_written = False

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def can_write_eof(self) -> bool:
        return True

    def write_eof(self) -> None:
        self.eof_written = True

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


class FakeSupervisor:
    """Records launch/cleanup calls instead of starting Godot."""

    def __init__(self, *, fail: Exception | None = None) -> None:
        self.launches: list[tuple[Any, ...]] = []
        self.cleanups = 0
        self.terminated = 0
        self._fail = fail

    @property
    def launched(self) -> bool:
        return bool(self.launches)

    async def launch(self, executable, project, port, extra_args=()):
        if self._fail is not None:
            raise self._fail
        self.launches.append((executable, project, port, tuple(extra_args)))

    async def cleanup(self) -> None:
        self.cleanups += 1
        if self.launches:
            self.terminated += 1
