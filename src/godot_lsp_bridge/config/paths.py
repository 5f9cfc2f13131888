"""Platform-aware configuration path resolution.

Handles config file locations for:
- Windows: %APPDATA%\\godot-lsp-bridge\\config.yaml
- Unix: $XDG_CONFIG_HOME or ~/.config/godot-lsp-bridge/config.yaml
- Project: <cwd>/.godot-lsp-bridge.yaml
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "godot-lsp-bridge"
PROJECT_CONFIG_NAMES = (".godot-lsp-bridge.yaml", ".godot-lsp-bridge.yml")


def get_user_config_path() -> Path | None:
    """Get user-level config path.

    Returns:
        Path to user config file, or None if not determinable.
        The file may not exist.
    """
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME
    return Path.home() / ".config" / APP_NAME / CONFIG_FILENAME


def get_project_config_path(cwd: Path) -> Path | None:
    """Get the first existing project-level config file under cwd."""
    for name in PROJECT_CONFIG_NAMES:
        candidate = cwd / name
        if candidate.exists():
            return candidate
    return None


def get_config_paths(cwd: Path, explicit: Path | None = None) -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    An explicit --config file replaces the project-level lookup.
    """
    paths: list[Path] = []

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if explicit is not None:
        paths.append(explicit)
    else:
        project_path = get_project_config_path(cwd)
        if project_path:
            paths.append(project_path)

    return paths
