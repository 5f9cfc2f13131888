"""Bridge orchestrator - one stdio↔TCP session with the Godot language server.

Session flow:
    PROBING → (found) CONNECTING
    PROBING → (absent) LAUNCHING → POLLING → (ready) CONNECTING | (timeout) FATAL
    CONNECTING → (connected) PROXYING | (error) FATAL
    PROXYING → (server closed | signal) SHUTTING_DOWN → TERMINATED

Every path ends in shutdown(), which runs once: it closes the socket and
stops Godot if, and only if, this session launched it.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path

from godot_lsp_bridge.config.schema import BridgeConfig
from godot_lsp_bridge.discovery import LaunchTarget, resolve_launch_target
from godot_lsp_bridge.errors import BridgeConnectionError, BridgeError, ReadinessTimeout
from godot_lsp_bridge.logging import get_logger
from godot_lsp_bridge.supervisor import ProcessSupervisor
from godot_lsp_bridge.transport.framing import LANGUAGE_ID_REWRITE, FrameInterceptor
from godot_lsp_bridge.transport.probe import Endpoint, Prober, is_port_open, wait_until_ready
from godot_lsp_bridge.transport.proxy import StreamProxy
from godot_lsp_bridge.transport.stdio import open_stdio

log = get_logger("bridge")

Streams = tuple[asyncio.StreamReader, asyncio.StreamWriter]

READINESS_HINTS = [
    "Troubleshooting tips:",
    "  1. Ensure Godot 4.4.1+ is installed for best headless support",
    "  2. Check if project.godot exists in the project path",
    "  3. On Linux without X: install xvfb (sudo apt install xvfb)",
    "  4. Try running Godot Editor manually to verify it works",
]


class BridgeState(Enum):
    PROBING = "probing"
    LAUNCHING = "launching"
    POLLING = "polling"
    CONNECTING = "connecting"
    PROXYING = "proxying"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"
    FATAL = "fatal"


class Bridge:
    """One bridge session.

    Collaborators are injectable so the state machine can be driven
    without a real Godot, socket or terminal.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        supervisor: ProcessSupervisor | None = None,
        probe: Prober = is_port_open,
        resolve_target: Callable[[BridgeConfig], LaunchTarget] = resolve_launch_target,
        open_client: Callable[[], Awaitable[Streams]] = open_stdio,
        connect: Callable[[str, int], Awaitable[Streams]] = asyncio.open_connection,
        handle_signals: bool = True,
    ) -> None:
        self.config = config
        self.endpoint: Endpoint = config.endpoint
        self.state = BridgeState.PROBING
        self.supervisor = supervisor or ProcessSupervisor(
            shutdown=config.shutdown,
            server_log=Path(config.server_log).expanduser() if config.server_log else None,
        )
        self._probe = probe
        self._resolve_target = resolve_target
        self._open_client = open_client
        self._connect = connect
        self._handle_signals = handle_signals

        self._server_writer: asyncio.StreamWriter | None = None
        self._stop_requested = asyncio.Event()
        self._shutdown_started = False
        self._signals_installed: list[signal.Signals] = []
        self._previous_handlers: dict[signal.Signals, object] = {}

    # ── Public API ────────────────────────────────────────────────────────

    def request_shutdown(self) -> None:
        """Ask the session to stop. Repeated calls have no further effect."""
        if not self._stop_requested.is_set():
            log.info("Shutdown requested")
            self._stop_requested.set()

    async def run(self) -> int:
        """Run the session to completion and return the process exit code."""
        self._install_signal_handlers()
        session = asyncio.create_task(self._run_session(), name="bridge-session")
        stop = asyncio.create_task(self._stop_requested.wait(), name="bridge-stop")
        try:
            done, _ = await asyncio.wait({session, stop}, return_when=asyncio.FIRST_COMPLETED)
            if session in done:
                session.result()
                log.info("Server closed the connection")
                return 0

            session.cancel()
            await asyncio.gather(session, return_exceptions=True)
            return 0
        except BridgeError as e:
            self.state = BridgeState.FATAL
            log.error("%s", e)
            for hint in e.hints:
                log.error("%s", hint)
            return e.exit_code
        finally:
            stop.cancel()
            await asyncio.gather(stop, return_exceptions=True)
            await self.shutdown()
            self._remove_signal_handlers()

    async def shutdown(self) -> None:
        """Close the socket and stop a Godot this session launched.

        Runs once; later calls return immediately.
        """
        if self._shutdown_started:
            return
        self._shutdown_started = True
        fatal = self.state is BridgeState.FATAL
        self.state = BridgeState.SHUTTING_DOWN

        writer = self._server_writer
        self._server_writer = None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

        if self.supervisor.launched:
            await self.supervisor.cleanup()

        self.state = BridgeState.FATAL if fatal else BridgeState.TERMINATED

    # ── Session stages ────────────────────────────────────────────────────

    async def _run_session(self) -> None:
        self.state = BridgeState.PROBING
        if not await self._probe_existing():
            await self._launch()
            await self._poll()

        self.state = BridgeState.CONNECTING
        server_reader, server_writer = await self._open_server()

        self.state = BridgeState.PROXYING
        client_reader, client_writer = await self._open_client()
        proxy = StreamProxy(
            client_reader=client_reader,
            client_writer=client_writer,
            server_reader=server_reader,
            server_writer=server_writer,
            interceptor=FrameInterceptor((LANGUAGE_ID_REWRITE,))
            if self.config.rewrite_language_id
            else None,
        )
        try:
            await proxy.run()
        except (ConnectionError, OSError) as e:
            raise BridgeConnectionError(f"Error: {e}") from e
        finally:
            interceptor = proxy.interceptor
            log.debug(
                "Forwarded %d bytes to server, %d bytes to client",
                proxy.bytes_to_server,
                proxy.bytes_to_client,
            )
            if interceptor is not None:
                log.debug(
                    "Forwarded %d frames to server, %d rewritten",
                    interceptor.frames_forwarded,
                    interceptor.frames_rewritten,
                )

    async def _probe_existing(self) -> bool:
        """Look for a server on the configured port, then its alternate."""
        timeout = self.config.readiness.probe_timeout
        if await self._probe(self.endpoint, timeout):
            log.info("Found running Godot LSP on %s", self.endpoint)
            return True

        alternate = self.endpoint.alternate()
        if alternate is not None and await self._probe(alternate, timeout):
            log.info("Found running Godot LSP on alternate port %d", alternate.port)
            self.endpoint = alternate
            return True

        return False

    async def _launch(self) -> None:
        self.state = BridgeState.LAUNCHING
        target = self._resolve_target(self.config)
        log.info("Godot: %s", target.executable)
        log.info("Project: %s", target.project)
        log.info("Port: %d", self.endpoint.port)
        await self.supervisor.launch(
            target.executable,
            target.project,
            self.endpoint.port,
            self.config.extra_args,
        )

    async def _poll(self) -> None:
        self.state = BridgeState.POLLING
        readiness = self.config.readiness
        log.info("Waiting for LSP server to start...")
        ready = await wait_until_ready(
            self.endpoint,
            max_attempts=readiness.max_attempts,
            interval=readiness.interval,
            probe_timeout=readiness.probe_timeout,
            progress_every=readiness.progress_every,
            probe=self._probe,
        )
        if not ready:
            raise ReadinessTimeout(
                "Timeout waiting for Godot LSP to start.", hints=READINESS_HINTS
            )
        log.info("Godot LSP ready on port %d", self.endpoint.port)

    async def _open_server(self) -> Streams:
        try:
            reader, writer = await self._connect(self.endpoint.host, self.endpoint.port)
        except OSError as e:
            raise BridgeConnectionError(
                f"Error: could not connect to {self.endpoint}: {e}"
            ) from e
        self._server_writer = writer
        log.info("Connected to Godot LSP on %s", self.endpoint)
        return reader, writer

    # ── Signals ───────────────────────────────────────────────────────────

    def _install_signal_handlers(self) -> None:
        if not self._handle_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no add_signal_handler
                self._previous_handlers[sig] = signal.signal(
                    sig, lambda *_: loop.call_soon_threadsafe(self.request_shutdown)
                )
            else:
                self._signals_installed.append(sig)

    def _remove_signal_handlers(self) -> None:
        if self._signals_installed:
            loop = asyncio.get_running_loop()
            for sig in self._signals_installed:
                loop.remove_signal_handler(sig)
            self._signals_installed.clear()

        for sig, previous in self._previous_handlers.items():
            # None means the old handler was not installed from Python
            signal.signal(sig, signal.SIG_DFL if previous is None else previous)
        self._previous_handlers.clear()
