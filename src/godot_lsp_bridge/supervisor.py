"""Launch and terminate the headless Godot editor.

The supervisor owns at most one Godot process per session. The process is
detached from the bridge (own session on POSIX, own process group on
Windows) and never shares the bridge's stdio, since stdout carries the
proxied LSP stream.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import subprocess
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Protocol

from godot_lsp_bridge.config.schema import ShutdownConfig
from godot_lsp_bridge.errors import LaunchError
from godot_lsp_bridge.logging import get_logger

log = get_logger("supervisor")

DISPLAY_WRAPPER = "xvfb-run"

# Windows-specific subprocess creation flags
_CREATE_NEW_PROCESS_GROUP = 0x00000200
_CREATE_NO_WINDOW = 0x08000000


def godot_arguments(port: int, project: Path, extra_args: Sequence[str] = ()) -> list[str]:
    """Flags for an editor-embedded, headless LSP server on a fixed port.

    --editor is required: the language server only exists in editor mode.
    --headless implies --display-driver headless --audio-driver Dummy.
    """
    return [
        "--editor",
        "--headless",
        "--lsp-port",
        str(port),
        "--path",
        str(project),
        *extra_args,
    ]


@dataclass
class SupervisedProcess:
    """A Godot process launched by this session."""

    process: asyncio.subprocess.Process
    platform: str
    command: list[str]
    detached: bool = True
    log_file: IO[bytes] | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.returncode is None


class ProcessTerminator(Protocol):
    """Platform-specific way of ending a supervised process tree."""

    async def terminate(self, supervised: SupervisedProcess) -> None: ...


class ProcessGroupTerminator:
    """POSIX: signal the whole process group, SIGTERM then SIGKILL.

    The launch puts Godot (and xvfb-run with its Xvfb child) in a new
    session whose group id equals the leader's pid.
    """

    def __init__(self, shutdown: ShutdownConfig | None = None) -> None:
        self._shutdown = shutdown or ShutdownConfig()

    async def terminate(self, supervised: SupervisedProcess) -> None:
        process = supervised.process
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self._shutdown.terminate_timeout)
            return
        except asyncio.TimeoutError:
            log.warning("Godot (pid=%d) ignored SIGTERM, killing", process.pid)

        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        await asyncio.wait_for(process.wait(), timeout=self._shutdown.kill_timeout)


class TaskkillTerminator:
    """Windows: force-kill the process tree by pid with taskkill."""

    def __init__(self, shutdown: ShutdownConfig | None = None) -> None:
        self._shutdown = shutdown or ShutdownConfig()

    async def terminate(self, supervised: SupervisedProcess) -> None:
        process = supervised.process
        killer = await asyncio.create_subprocess_exec(
            "taskkill",
            "/PID",
            str(process.pid),
            "/T",
            "/F",
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        code = await killer.wait()
        if code != 0:
            log.debug("taskkill exited with %d, falling back to TerminateProcess", code)
            process.terminate()
        await asyncio.wait_for(process.wait(), timeout=self._shutdown.terminate_timeout)


def select_terminator(
    platform: str = sys.platform, shutdown: ShutdownConfig | None = None
) -> ProcessTerminator:
    """Pick the terminator for platform."""
    if platform == "win32":
        return TaskkillTerminator(shutdown)
    return ProcessGroupTerminator(shutdown)


class ProcessSupervisor:
    """Owns the lifecycle of one Godot process.

    Args:
        terminator: How to end the process; chosen from platform if omitted.
        shutdown: Timeouts handed to the default terminator.
        platform: sys.platform value the launch decisions are based on.
        environ: Environment inspected for an active display session.
        which: Executable lookup, shutil.which unless testing.
        server_log: File that receives Godot's stdout/stderr (discarded if None).
    """

    def __init__(
        self,
        terminator: ProcessTerminator | None = None,
        *,
        shutdown: ShutdownConfig | None = None,
        platform: str = sys.platform,
        environ: Mapping[str, str] | None = None,
        which: Callable[[str], str | None] = shutil.which,
        server_log: Path | None = None,
    ) -> None:
        self._platform = platform
        self._environ = os.environ if environ is None else environ
        self._which = which
        self._server_log = server_log
        self._terminator = terminator or select_terminator(platform, shutdown)
        self._supervised: SupervisedProcess | None = None
        self._cleaned_up = False

    @property
    def supervised(self) -> SupervisedProcess | None:
        return self._supervised

    @property
    def launched(self) -> bool:
        return self._supervised is not None

    def needs_display_wrapper(self) -> bool:
        """True on Linux when no X display is available."""
        return self._platform.startswith("linux") and not self._environ.get("DISPLAY")

    def build_command(
        self,
        executable: Path | str,
        project: Path,
        port: int,
        extra_args: Sequence[str] = (),
    ) -> list[str]:
        """Full launch command, wrapped in xvfb-run when needed and possible."""
        command = [str(executable), *godot_arguments(port, project, extra_args)]

        if self.needs_display_wrapper():
            wrapper = self._which(DISPLAY_WRAPPER)
            if wrapper:
                log.info("No DISPLAY detected, using %s", DISPLAY_WRAPPER)
                return [wrapper, "-a", *command]
            log.info("No DISPLAY and %s not found, trying headless anyway", DISPLAY_WRAPPER)

        return command

    def _spawn_options(self) -> dict[str, object]:
        if self._platform == "win32":
            return {"creationflags": _CREATE_NEW_PROCESS_GROUP | _CREATE_NO_WINDOW}
        return {"start_new_session": True}

    async def launch(
        self,
        executable: Path | str,
        project: Path,
        port: int,
        extra_args: Sequence[str] = (),
    ) -> SupervisedProcess:
        """Start Godot serving LSP on port for project.

        Raises:
            LaunchError: the process could not be spawned, or this
                supervisor already launched one.
        """
        if self._supervised is not None:
            raise LaunchError("Godot was already launched for this session")

        command = self.build_command(executable, project, port, extra_args)
        log.info("Launching Godot LSP in headless mode...")
        log.info("Command: %s", " ".join(command))

        output: int | IO[bytes] = subprocess.DEVNULL
        log_file: IO[bytes] | None = None
        if self._server_log is not None:
            try:
                log_file = open(self._server_log, "ab")
            except OSError as e:
                log.warning("Cannot open server log %s: %s", self._server_log, e)
            else:
                output = log_file

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=output,
                cwd=str(project),
                **self._spawn_options(),  # type: ignore[arg-type]
            )
        except OSError as e:
            if log_file is not None:
                log_file.close()
            raise LaunchError(f"Failed to start Godot: {e}") from e

        self._supervised = SupervisedProcess(
            process=process,
            platform=self._platform,
            command=command,
            log_file=log_file,
        )
        log.info("Godot started (pid=%d)", process.pid)
        return self._supervised

    async def cleanup(self) -> None:
        """Terminate the launched process, if any.

        Safe to call repeatedly and when nothing was launched. Failures
        are logged and never raised.
        """
        if self._cleaned_up:
            return
        self._cleaned_up = True

        supervised = self._supervised
        if supervised is None:
            return

        try:
            if supervised.running:
                log.info("Stopping Godot (pid=%d)", supervised.pid)
                await self._terminator.terminate(supervised)
        except Exception as e:
            log.warning("Failed to stop Godot (pid=%d): %s", supervised.pid, e)
        finally:
            if supervised.log_file is not None:
                supervised.log_file.close()
