"""Tests for the bidirectional stream proxy."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from godot_lsp_bridge.transport.framing import FrameInterceptor
from godot_lsp_bridge.transport.proxy import StreamProxy
from tests.utils import CaptureWriter, frame, make_reader


def make_proxy(
    client_data: bytes = b"",
    server_data: bytes = b"",
    *,
    client_eof: bool = True,
    server_eof: bool = True,
    interceptor: FrameInterceptor | None = None,
) -> StreamProxy:
    return StreamProxy(
        client_reader=make_reader(client_data, eof=client_eof),
        client_writer=CaptureWriter(),
        server_reader=make_reader(server_data, eof=server_eof),
        server_writer=CaptureWriter(),
        interceptor=interceptor,
    )


class TestStreamProxy:
    """Tests for StreamProxy.run."""

    @pytest.mark.asyncio
    async def test_server_to_client_unmodified(self) -> None:
        """Server bytes reach the client untouched, even rewrite targets."""
        payload = frame('{"languageId":"plaintext"}') + b"Content-Length: 9"
        proxy = make_proxy(server_data=payload, client_eof=False, interceptor=FrameInterceptor())

        await proxy.run()

        assert bytes(proxy.client_writer.buffer) == payload
        assert proxy.bytes_to_client == len(payload)

    @pytest.mark.asyncio
    async def test_client_to_server_intercepted(self) -> None:
        payload = frame('{"languageId":"plaintext"}')
        server_reader = asyncio.StreamReader()
        proxy = make_proxy(client_data=payload, interceptor=FrameInterceptor())
        proxy.server_reader = server_reader

        task = asyncio.create_task(proxy.run())
        await asyncio.sleep(0.05)
        server_reader.feed_eof()
        await asyncio.wait_for(task, timeout=1.0)

        assert bytes(proxy.server_writer.buffer) == frame('{"languageId":"gdscript"}')

    @pytest.mark.asyncio
    async def test_client_to_server_raw_without_interceptor(self) -> None:
        payload = b"anything at all"
        server_reader = asyncio.StreamReader()
        proxy = make_proxy(client_data=payload)
        proxy.server_reader = server_reader

        task = asyncio.create_task(proxy.run())
        await asyncio.sleep(0.05)
        server_reader.feed_eof()
        await asyncio.wait_for(task, timeout=1.0)

        assert bytes(proxy.server_writer.buffer) == payload

    @pytest.mark.asyncio
    async def test_client_eof_half_closes_and_keeps_reading(self) -> None:
        """Client EOF sends EOF to the server; the reply still arrives."""
        server_reader = asyncio.StreamReader()
        proxy = make_proxy(client_data=frame({"id": 1}))
        proxy.server_reader = server_reader

        task = asyncio.create_task(proxy.run())
        await asyncio.sleep(0.05)
        assert proxy.server_writer.eof_written
        assert not task.done()

        reply = frame({"id": 1, "result": None})
        server_reader.feed_data(reply)
        server_reader.feed_eof()
        await asyncio.wait_for(task, timeout=1.0)

        assert bytes(proxy.client_writer.buffer) == reply

    @pytest.mark.asyncio
    async def test_server_close_ends_run(self) -> None:
        """The client side may stay open; server EOF still ends the proxy."""
        proxy = make_proxy(client_eof=False)
        await asyncio.wait_for(proxy.run(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_incomplete_frame_withheld(self) -> None:
        data = frame({"id": 1})
        server_reader = asyncio.StreamReader()
        proxy = make_proxy(client_data=data[:-2], interceptor=FrameInterceptor())
        proxy.server_reader = server_reader

        task = asyncio.create_task(proxy.run())
        await asyncio.sleep(0.05)
        server_reader.feed_eof()
        await asyncio.wait_for(task, timeout=1.0)

        assert proxy.server_writer.buffer == b""
        assert proxy.interceptor.pending == len(data) - 2

    @pytest.mark.asyncio
    async def test_pump_error_propagates(self) -> None:
        proxy = make_proxy(client_eof=False)
        proxy.server_reader = MagicMock()
        proxy.server_reader.read = AsyncMock(side_effect=ConnectionResetError("reset"))

        with pytest.raises(ConnectionResetError):
            await proxy.run()

    @pytest.mark.asyncio
    async def test_write_error_propagates(self) -> None:
        """A socket write failure ends the session."""
        server_reader = asyncio.StreamReader()
        proxy = make_proxy(client_data=frame({"id": 1}))
        proxy.server_reader = server_reader
        proxy.server_writer.drain = AsyncMock(side_effect=BrokenPipeError("gone"))

        with pytest.raises(BrokenPipeError):
            await asyncio.wait_for(proxy.run(), timeout=1.0)
