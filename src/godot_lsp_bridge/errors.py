"""Session-ending errors raised by the bridge.

Every error here is fatal: the orchestrator logs the message and any
hints to the diagnostic channel and exits with ``exit_code``. Framing
anomalies are not in this hierarchy because the frame interceptor
recovers from them locally (see ``transport.framing.LSPFramingError``).
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for fatal bridge errors."""

    exit_code: int = 1

    def __init__(self, message: str, *, hints: list[str] | None = None) -> None:
        super().__init__(message)
        self.hints = list(hints or [])


class ResolutionError(BridgeError):
    """Godot executable or project directory could not be found."""


class LaunchError(BridgeError):
    """The Godot process could not be spawned."""


class ReadinessTimeout(BridgeError):
    """The language server never became reachable after launch."""


class BridgeConnectionError(BridgeError):
    """Socket-level failure talking to the language server."""
