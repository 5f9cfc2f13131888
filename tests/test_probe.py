"""Tests for port probing and readiness polling."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import patch

import pytest

from godot_lsp_bridge.transport.probe import Endpoint, is_port_open, wait_until_ready


class CountingProbe:
    """Probe that starts succeeding on a given attempt."""

    def __init__(self, ready_on: int | None) -> None:
        self.ready_on = ready_on
        self.calls: list[tuple[Endpoint, float]] = []

    async def __call__(self, endpoint: Endpoint, timeout: float) -> bool:
        self.calls.append((endpoint, timeout))
        return self.ready_on is not None and len(self.calls) >= self.ready_on


class TestEndpoint:
    """Tests for the Endpoint value type."""

    def test_str(self) -> None:
        assert str(Endpoint("127.0.0.1", 6005)) == "127.0.0.1:6005"

    def test_alternate_ports(self) -> None:
        """6005 and 6008 swap; anything else has no alternate."""
        assert Endpoint("h", 6005).alternate() == Endpoint("h", 6008)
        assert Endpoint("h", 6008).alternate() == Endpoint("h", 6005)
        assert Endpoint("h", 7000).alternate() is None

    def test_with_port_is_new_value(self) -> None:
        original = Endpoint("h", 6005)
        moved = original.with_port(6008)
        assert original.port == 6005
        assert moved == Endpoint("h", 6008)


class TestIsPortOpen:
    """Tests for is_port_open against real sockets."""

    @pytest.mark.asyncio
    async def test_open_port(self) -> None:
        """A listening server is reported as open."""
        accepted = asyncio.Event()

        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            accepted.set()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        async with server:
            assert await is_port_open(Endpoint("127.0.0.1", port)) is True
            await asyncio.wait_for(accepted.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_closed_port(self, closed_port: int) -> None:
        """Nothing listening is reported as closed, quickly."""
        started = time.monotonic()
        assert await is_port_open(Endpoint("127.0.0.1", closed_port), timeout=1.0) is False
        assert time.monotonic() - started < 1.5

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self) -> None:
        """A connect that never completes resolves to False at the timeout."""

        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        with patch("asyncio.open_connection", hang):
            started = time.monotonic()
            assert await is_port_open(Endpoint("127.0.0.1", 1), timeout=0.05) is False
            assert time.monotonic() - started < 1.0

    @pytest.mark.asyncio
    async def test_unresolvable_host(self) -> None:
        """Resolution errors are reported as closed, not raised."""
        assert await is_port_open(Endpoint("host.invalid", 6005), timeout=1.0) is False


class TestWaitUntilReady:
    """Tests for the readiness poller."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ready_on", [1, 3, 7])
    async def test_exact_attempt_count(self, ready_on: int) -> None:
        """Ready on attempt k means exactly k probes."""
        probe = CountingProbe(ready_on)
        ok = await wait_until_ready(
            Endpoint("127.0.0.1", 6005), max_attempts=10, interval=0, probe=probe
        )
        assert ok is True
        assert len(probe.calls) == ready_on

    @pytest.mark.asyncio
    async def test_exhausted(self) -> None:
        """Gives up after max_attempts probes."""
        probe = CountingProbe(None)
        ok = await wait_until_ready(
            Endpoint("127.0.0.1", 6005), max_attempts=5, interval=0, probe=probe
        )
        assert ok is False
        assert len(probe.calls) == 5

    @pytest.mark.asyncio
    async def test_probe_timeout_forwarded(self) -> None:
        probe = CountingProbe(1)
        await wait_until_ready(
            Endpoint("127.0.0.1", 6005), interval=0, probe_timeout=0.25, probe=probe
        )
        assert probe.calls == [(Endpoint("127.0.0.1", 6005), 0.25)]

    @pytest.mark.asyncio
    async def test_progress_every_n_attempts(self) -> None:
        """Progress is reported after every progress_every failures."""
        reports: list[int] = []
        await wait_until_ready(
            Endpoint("127.0.0.1", 6005),
            max_attempts=25,
            interval=0,
            progress_every=10,
            probe=CountingProbe(None),
            on_progress=lambda attempt, elapsed: reports.append(attempt),
        )
        assert reports == [10, 20]

    @pytest.mark.asyncio
    async def test_sleeps_before_each_probe(self) -> None:
        """The interval elapses before the first probe."""
        started = time.monotonic()
        await wait_until_ready(
            Endpoint("127.0.0.1", 6005), max_attempts=2, interval=0.05, probe=CountingProbe(2)
        )
        assert time.monotonic() - started >= 0.09

    @pytest.mark.asyncio
    async def test_real_server_comes_up(self, closed_port: int) -> None:
        """Polling a real port picks up a server started mid-poll."""
        endpoint = Endpoint("127.0.0.1", closed_port)
        servers: list[asyncio.Server] = []

        async def start_later() -> None:
            await asyncio.sleep(0.1)
            servers.append(
                await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", closed_port)
            )

        starter = asyncio.create_task(start_later())
        try:
            ok = await wait_until_ready(endpoint, max_attempts=40, interval=0.05)
            assert ok is True
        finally:
            await starter
            for server in servers:
                server.close()
                await server.wait_closed()
