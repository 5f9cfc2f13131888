"""TCP readiness probing for the Godot language server."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from godot_lsp_bridge.logging import get_logger

log = get_logger("probe")

# Godot Tools (VS Code) defaults to 6005; the Godot editor itself to 6008.
ALTERNATE_PORTS = {6005: 6008, 6008: 6005}


@dataclass(frozen=True)
class Endpoint:
    """TCP address of the language server."""

    host: str
    port: int

    def with_port(self, port: int) -> Endpoint:
        return replace(self, port=port)

    def alternate(self) -> Endpoint | None:
        """The other well-known Godot port, if this is one of them."""
        port = ALTERNATE_PORTS.get(self.port)
        return None if port is None else self.with_port(port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


Prober = Callable[[Endpoint, float], Awaitable[bool]]
ProgressCallback = Callable[[int, float], None]


async def is_port_open(endpoint: Endpoint, timeout: float = 1.0) -> bool:
    """Check whether something accepts TCP connections on endpoint.

    Never raises: refused connections, unreachable hosts and timeouts all
    report False. The probe connection is closed before returning.
    """
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(endpoint.host, endpoint.port), timeout=timeout
        )
    except (OSError, asyncio.TimeoutError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


def _log_progress(attempt: int, elapsed: float) -> None:
    log.info("Still waiting... (%.0fs)", elapsed)


async def wait_until_ready(
    endpoint: Endpoint,
    *,
    max_attempts: int = 40,
    interval: float = 0.5,
    probe_timeout: float = 1.0,
    progress_every: int = 10,
    probe: Prober = is_port_open,
    on_progress: ProgressCallback | None = None,
) -> bool:
    """Probe endpoint on a fixed schedule until it accepts connections.

    Each attempt sleeps ``interval`` seconds and then probes once, so a
    server that comes up on attempt k is reported after exactly k probes.

    Args:
        endpoint: Address to probe.
        max_attempts: Upper bound on probes before giving up.
        interval: Seconds slept before each probe.
        probe_timeout: Connect timeout for each probe.
        progress_every: Report progress after this many failed attempts.
        probe: Probe coroutine (is_port_open unless testing).
        on_progress: Called with (attempt, elapsed seconds); logs by default.

    Returns:
        True once reachable, False if every attempt failed.
    """
    report = on_progress or _log_progress
    started = time.monotonic()

    for attempt in range(1, max_attempts + 1):
        await asyncio.sleep(interval)
        if await probe(endpoint, probe_timeout):
            log.debug("%s reachable after %d attempt(s)", endpoint, attempt)
            return True
        if progress_every > 0 and attempt % progress_every == 0:
            report(attempt, time.monotonic() - started)

    return False
