"""Configuration management for godot-lsp-bridge.

Layered YAML configuration, lowest priority first:
- User-level config (~/.config/godot-lsp-bridge/config.yaml or %APPDATA%)
- Project-level config (<cwd>/.godot-lsp-bridge.yaml) or --config FILE
- Environment variables (GODOT_PATH, GODOT_PROJECT, GODOT_LSP_*)
- Command-line overrides

Example usage:
    from godot_lsp_bridge.config import load_config

    config = load_config(overrides={"port": 6008})
    print(config.endpoint)
"""

from godot_lsp_bridge.config.loader import load_config
from godot_lsp_bridge.config.schema import (
    BridgeConfig,
    LoggingConfig,
    ReadinessConfig,
    ShutdownConfig,
)

__all__ = [
    "BridgeConfig",
    "LoggingConfig",
    "ReadinessConfig",
    "ShutdownConfig",
    "load_config",
]
