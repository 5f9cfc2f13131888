"""CLI entry point for godot-lsp-bridge."""

import sys


def main() -> int:
    """Main entry point for godot-lsp-bridge CLI."""
    from godot_lsp_bridge.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
