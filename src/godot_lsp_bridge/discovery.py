"""Locate the Godot executable and the project directory."""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from godot_lsp_bridge.errors import ResolutionError
from godot_lsp_bridge.logging import get_logger

if TYPE_CHECKING:
    from godot_lsp_bridge.config.schema import BridgeConfig

log = get_logger("discovery")

PROJECT_FILE = "project.godot"
MAX_PROJECT_DEPTH = 10
EXECUTABLE_NAMES = ("godot", "godot4")


def _known_locations(platform: str) -> list[Path]:
    if platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        paths = [
            Path(r"C:\Program Files\Godot\godot.exe"),
            Path(r"C:\Program Files (x86)\Godot\godot.exe"),
        ]
        if local:
            paths.insert(0, Path(local) / "Microsoft" / "WinGet" / "Links" / "godot.exe")
        return paths
    if platform == "darwin":
        return [
            Path("/Applications/Godot.app/Contents/MacOS/Godot"),
            Path.home() / "Applications" / "Godot.app" / "Contents" / "MacOS" / "Godot",
        ]
    return [
        Path("/usr/local/bin/godot"),
        Path("/usr/bin/godot"),
        Path("/usr/bin/godot4"),
        Path.home() / ".local" / "bin" / "godot",
    ]


def find_godot(
    preferred: str | None = None,
    *,
    platform: str = sys.platform,
    which: Callable[[str], str | None] = shutil.which,
) -> Path:
    """Find the Godot executable.

    Tries, in order: the preferred value as a path, the preferred value as
    a name on PATH, well-known install locations, then godot/godot4 on PATH.

    Raises:
        ResolutionError: nothing usable was found.
    """
    if preferred:
        candidate = Path(preferred).expanduser()
        if candidate.is_file():
            return candidate
        found = which(preferred)
        if found:
            return Path(found)
        log.debug("Configured Godot %r not found, searching defaults", preferred)

    for candidate in _known_locations(platform):
        if candidate.is_file():
            return candidate

    for name in EXECUTABLE_NAMES:
        found = which(name)
        if found:
            return Path(found)

    raise ResolutionError(
        "Could not find Godot executable.",
        hints=["Set GODOT_PATH environment variable or use --godot flag."],
    )


def find_project_root(start: Path, max_depth: int = MAX_PROJECT_DEPTH) -> Path:
    """Walk up from start to the directory holding project.godot.

    Raises:
        ResolutionError: no project.godot within max_depth levels.
    """
    current = start.expanduser().resolve()
    for _ in range(max_depth):
        if (current / PROJECT_FILE).is_file():
            return current
        if current.parent == current:
            break
        current = current.parent

    raise ResolutionError(
        f"Could not find {PROJECT_FILE} file.",
        hints=["Run this from a Godot project directory or use --project flag."],
    )


@dataclass(frozen=True)
class LaunchTarget:
    """What to launch: the Godot binary and the project it opens."""

    executable: Path
    project: Path


def resolve_launch_target(config: BridgeConfig) -> LaunchTarget:
    """Resolve executable and project from config (cwd when no project)."""
    executable = find_godot(config.godot)
    project = find_project_root(Path(config.project) if config.project else Path.cwd())
    return LaunchTarget(executable=executable, project=project)
