"""Proxy transport - bidirectional byte pump between editor and Godot.

Bytes flow:
- Editor → (stdin) → FrameInterceptor → (socket) → Godot
- Godot → (socket) → (stdout) → Editor, unmodified

The two directions are independent tasks. The session ends when Godot
closes the socket; an editor EOF only half-closes the socket so Godot can
finish answering.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from godot_lsp_bridge.logging import get_logger
from godot_lsp_bridge.transport.framing import FrameInterceptor

log = get_logger("proxy")

CHUNK_SIZE = 64 * 1024


@dataclass
class StreamProxy:
    """Pump bytes between the editor streams and the server socket."""

    client_reader: asyncio.StreamReader
    client_writer: asyncio.StreamWriter
    server_reader: asyncio.StreamReader
    server_writer: asyncio.StreamWriter
    interceptor: FrameInterceptor | None = None
    bytes_to_server: int = 0
    bytes_to_client: int = 0

    async def run(self) -> None:
        """Run both directions until the server closes the connection.

        Raises:
            ConnectionError, OSError: a socket or pipe failed mid-session.
        """
        upstream = asyncio.create_task(self._forward_client_to_server(), name="client->server")
        downstream = asyncio.create_task(self._forward_server_to_client(), name="server->client")

        pending: set[asyncio.Task[None]] = {upstream, downstream}
        try:
            while downstream in pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    # Re-raise pump failures
                    task.result()
        finally:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    async def _forward_client_to_server(self) -> None:
        """Read from the editor, intercept, write to the socket."""
        while True:
            chunk = await self.client_reader.read(CHUNK_SIZE)
            if not chunk:
                break

            if self.interceptor is not None:
                chunk = self.interceptor.feed(chunk)
            if not chunk:
                continue

            self.server_writer.write(chunk)
            await self.server_writer.drain()
            self.bytes_to_server += len(chunk)

        if self.interceptor is not None and self.interceptor.pending:
            log.warning(
                "Client closed with %d bytes of an incomplete frame", self.interceptor.pending
            )

        log.debug("Client input closed, half-closing server connection")
        if self.server_writer.can_write_eof():
            self.server_writer.write_eof()

    async def _forward_server_to_client(self) -> None:
        """Read from the socket, write to the editor unmodified."""
        while True:
            chunk = await self.server_reader.read(CHUNK_SIZE)
            if not chunk:
                log.debug("Server closed the connection")
                return

            self.client_writer.write(chunk)
            await self.client_writer.drain()
            self.bytes_to_client += len(chunk)
