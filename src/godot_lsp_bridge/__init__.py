"""godot-lsp-bridge - stdio to TCP bridge for the Godot GDScript language server."""

from godot_lsp_bridge.bridge import Bridge, BridgeState
from godot_lsp_bridge.config import BridgeConfig, load_config
from godot_lsp_bridge.errors import (
    BridgeConnectionError,
    BridgeError,
    LaunchError,
    ReadinessTimeout,
    ResolutionError,
)
from godot_lsp_bridge.supervisor import ProcessSupervisor
from godot_lsp_bridge.transport import Endpoint, FrameInterceptor

__all__ = [
    "Bridge",
    "BridgeConfig",
    "BridgeConnectionError",
    "BridgeError",
    "BridgeState",
    "Endpoint",
    "FrameInterceptor",
    "LaunchError",
    "ProcessSupervisor",
    "ReadinessTimeout",
    "ResolutionError",
    "load_config",
]

__version__ = "0.1.0"
