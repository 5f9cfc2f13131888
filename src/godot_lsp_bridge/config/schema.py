"""Configuration schema dataclasses for godot-lsp-bridge.

All fields carry defaults so partial config files merge cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from godot_lsp_bridge.transport.probe import Endpoint

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6005  # Godot Tools VS Code extension default


@dataclass
class ReadinessConfig:
    """Polling schedule used after launching Godot.

    Example config.yaml:
        readiness:
          interval: 0.5
          max_attempts: 60
    """

    interval: float = 0.5  # Seconds between probe attempts
    max_attempts: int = 40  # 40 * 0.5s = 20s total
    probe_timeout: float = 1.0  # Per-probe connect timeout
    progress_every: int = 10  # Attempts between "still waiting" messages

    @property
    def total_wait(self) -> float:
        return self.interval * self.max_attempts


@dataclass
class ShutdownConfig:
    """Timeouts for terminating a Godot process this session launched."""

    terminate_timeout: float = 3.0
    """Seconds to wait after SIGTERM (or taskkill) before escalating."""

    kill_timeout: float = 2.0
    """Seconds to wait after SIGKILL before giving up."""


@dataclass
class LoggingConfig:
    """Logging configuration."""

    verbose: int = 2  # 0=error .. 4=trace
    quiet: bool = False
    file: str | None = None  # Log file path; stderr when unset


@dataclass
class BridgeConfig:
    """Resolved bridge configuration."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    godot: str | None = None  # Godot executable (path or name on PATH)
    project: str | None = None  # Directory at or below project.godot
    extra_args: list[str] = field(default_factory=list)
    rewrite_language_id: bool = True
    server_log: str | None = None  # Where Godot's own output goes
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(self.host, self.port)
