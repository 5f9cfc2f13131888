"""Root pytest configuration for all tests."""

from __future__ import annotations

import socket

import pytest

from godot_lsp_bridge.logging import reset_logging

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _isolate_logging():
    """Drop handlers installed by setup_logging between tests."""
    yield
    reset_logging()


@pytest.fixture
def closed_port() -> int:
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
