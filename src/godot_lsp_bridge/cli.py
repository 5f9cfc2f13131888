"""Command-line interface for godot-lsp-bridge."""

from __future__ import annotations

import argparse
import asyncio
import math
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape

from godot_lsp_bridge import __version__

console = Console(stderr=True)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="godot-lsp-bridge",
        description=(
            "Bridge an stdio LSP client to the Godot editor's TCP language server, "
            "launching Godot headless when it is not already running"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--port", type=int, help="LSP port (default: 6005)")
    parser.add_argument("--host", help="LSP host (default: 127.0.0.1)")
    parser.add_argument(
        "--godot",
        help="Path to the Godot executable (default: $GODOT_PATH, then a search)",
    )
    parser.add_argument(
        "--project",
        help="Godot project directory (default: $GODOT_PROJECT, then the current directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path (default: ./.godot-lsp-bridge.yaml)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for a launched Godot to accept connections",
    )
    parser.add_argument(
        "--no-rewrite",
        action="store_true",
        help='Forward "languageId":"plaintext" unchanged instead of rewriting to gdscript',
    )
    parser.add_argument(
        "--server-log",
        help="Append the launched Godot's output to this file",
    )
    parser.add_argument(
        "--log-file",
        help="Write diagnostics to this file instead of stderr",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only report errors",
    )
    return parser


def overrides_from_args(parsed: argparse.Namespace) -> dict[str, Any]:
    """Translate parsed flags into a config override dict (None = unset)."""
    return {
        "host": parsed.host,
        "port": parsed.port,
        "godot": parsed.godot,
        "project": parsed.project,
        "server_log": parsed.server_log,
        "rewrite_language_id": False if parsed.no_rewrite else None,
        "logging": {
            "file": parsed.log_file,
            "verbose": 2 + parsed.verbose if parsed.verbose else None,
            "quiet": True if parsed.quiet else None,
        },
    }


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    from godot_lsp_bridge.config import load_config
    from godot_lsp_bridge.logging import setup_logging

    config = load_config(config_path=parsed.config, overrides=overrides_from_args(parsed))
    if parsed.timeout is not None:
        interval = config.readiness.interval
        config.readiness.max_attempts = max(1, math.ceil(parsed.timeout / interval))

    setup_logging(config.logging)

    from godot_lsp_bridge.bridge import Bridge

    try:
        return asyncio.run(Bridge(config).run())
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        console.print(f"[red][godot-lsp-bridge] Fatal error: {escape(str(e))}[/red]")
        return 1
