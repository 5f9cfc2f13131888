"""Transport layer: probing, framing and proxying LSP bytes."""

from godot_lsp_bridge.transport.framing import (
    LANGUAGE_ID_REWRITE,
    FieldRewrite,
    FrameInterceptor,
    LSPFramingError,
    parse_header,
)
from godot_lsp_bridge.transport.probe import Endpoint, is_port_open, wait_until_ready
from godot_lsp_bridge.transport.proxy import StreamProxy
from godot_lsp_bridge.transport.stdio import open_stdio

__all__ = [
    "Endpoint",
    "FieldRewrite",
    "FrameInterceptor",
    "LANGUAGE_ID_REWRITE",
    "LSPFramingError",
    "StreamProxy",
    "is_port_open",
    "open_stdio",
    "parse_header",
    "wait_until_ready",
]
