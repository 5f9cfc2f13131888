"""Configuration file loading.

Handles:
- YAML file parsing
- Environment variable overrides
- Command-line overrides
- Conversion from dict to typed BridgeConfig dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from godot_lsp_bridge.config.merge import merge_configs
from godot_lsp_bridge.config.paths import get_config_paths
from godot_lsp_bridge.config.schema import (
    BridgeConfig,
    LoggingConfig,
    ReadinessConfig,
    ShutdownConfig,
)

# Module logger (not configured yet when config is loaded)
_log = logging.getLogger("godot_lsp_bridge.config")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Build config dict from environment variables.

    GODOT_PATH and GODOT_PROJECT are the variables editors already set
    for Godot tooling; the GODOT_LSP_* ones are specific to the bridge.
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    if env.get("GODOT_PATH"):
        overrides["godot"] = env["GODOT_PATH"]
    if env.get("GODOT_PROJECT"):
        overrides["project"] = env["GODOT_PROJECT"]
    if env.get("GODOT_LSP_HOST"):
        overrides["host"] = env["GODOT_LSP_HOST"]

    port = env.get("GODOT_LSP_PORT")
    if port:
        try:
            overrides["port"] = int(port)
        except ValueError:
            _log.warning("Ignoring non-integer GODOT_LSP_PORT: %r", port)

    log_path = env.get("GODOT_LSP_BRIDGE_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> BridgeConfig:
    """Convert merged dict to typed BridgeConfig dataclass.

    Args:
        data: Merged configuration dictionary.

    Returns:
        Typed BridgeConfig object.
    """
    defaults = BridgeConfig()

    readiness_data = _section(data, "readiness")
    readiness = ReadinessConfig(
        interval=float(readiness_data.get("interval", defaults.readiness.interval)),
        max_attempts=int(readiness_data.get("max_attempts", defaults.readiness.max_attempts)),
        probe_timeout=float(readiness_data.get("probe_timeout", defaults.readiness.probe_timeout)),
        progress_every=int(
            readiness_data.get("progress_every", defaults.readiness.progress_every)
        ),
    )

    shutdown_data = _section(data, "shutdown")
    shutdown = ShutdownConfig(
        terminate_timeout=float(
            shutdown_data.get("terminate_timeout", defaults.shutdown.terminate_timeout)
        ),
        kill_timeout=float(shutdown_data.get("kill_timeout", defaults.shutdown.kill_timeout)),
    )

    logging_data = _section(data, "logging")
    logging_config = LoggingConfig(
        verbose=int(logging_data.get("verbose", defaults.logging.verbose)),
        quiet=bool(logging_data.get("quiet", defaults.logging.quiet)),
        file=logging_data.get("file"),
    )

    extra_args = data.get("extra_args", [])
    if isinstance(extra_args, str):
        extra_args = extra_args.split()

    return BridgeConfig(
        host=str(data.get("host", defaults.host)),
        port=int(data.get("port", defaults.port)),
        godot=data.get("godot"),
        project=data.get("project"),
        extra_args=[str(arg) for arg in extra_args],
        rewrite_language_id=bool(data.get("rewrite_language_id", defaults.rewrite_language_id)),
        server_log=data.get("server_log"),
        readiness=readiness,
        shutdown=shutdown,
        logging=logging_config,
    )


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
    cwd: Path | None = None,
    environ: dict[str, str] | None = None,
) -> BridgeConfig:
    """Load configuration from files, environment and CLI overrides.

    Args:
        config_path: Explicit config file (replaces the project-level lookup).
        overrides: Highest-priority values, typically from the command line.
            None values are ignored.
        cwd: Directory searched for the project-level config file.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Typed BridgeConfig.
    """
    base_dir = cwd or Path.cwd()

    if config_path is not None and not config_path.exists():
        _log.warning("Config file not found: %s", config_path)

    layers = [load_yaml_file(path) for path in get_config_paths(base_dir, config_path)]
    layers.append(env_overrides(environ))
    layers.append(overrides or {})

    return dict_to_config(merge_configs(*layers))
