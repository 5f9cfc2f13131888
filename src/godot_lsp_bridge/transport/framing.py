"""LSP message framing with Content-Length headers.

This module implements the parts of the LSP base protocol the bridge needs:
- Header parsing (Content-Length required, Content-Type optional)
- Frame encoding with Content-Length framing
- A streaming interceptor that reassembles frames from arbitrary chunks
  and rewrites one JSON field without disturbing any other frame

LSP Header Format:
    Content-Length: <length>\r\n
    [Content-Type: <type>]\r\n
    \r\n
    <json-rpc-message>

The Content-Length header is required and specifies the byte count
of the JSON-RPC message body. Headers are separated from the body
by a blank line (double CRLF).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from godot_lsp_bridge.logging import get_logger

log = get_logger("framing")

# Header constants
CONTENT_LENGTH = "Content-Length"
HEADER_ENCODING = "ascii"
CRLF = b"\r\n"
HEADER_SEPARATOR = b"\r\n\r\n"

_CONTENT_LENGTH_LINE = re.compile(rb"(?im)^(content-length[ \t]*:[ \t]*)\d+")
# The one Content-Length spelling replace_content_length can rewrite in place
_CONTENT_LENGTH_FIELD = re.compile(r"(?i)content-length[ \t]*:[ \t]*(-?[0-9]+)[ \t]*")


class LSPFramingError(Exception):
    """Error in LSP message framing.

    Raised when:
    - Content-Length header is missing
    - Content-Length value is not a valid integer
    - Content-Length value is negative
    - Header format is malformed
    """

    pass


def parse_header(header_bytes: bytes) -> dict[str, str]:
    """Parse LSP headers from raw bytes.

    Args:
        header_bytes: Raw header bytes (without trailing CRLF CRLF separator).
            Should contain lines like "Content-Length: 123\r\nContent-Type: ..."

    Returns:
        Dictionary mapping header names to values. Content-Length is
        stored under its canonical spelling whatever case the peer used.

    Raises:
        LSPFramingError: If headers are malformed or Content-Length is missing/invalid.

    Example:
        >>> header = b"Content-Length: 42\\r\\nContent-Type: application/json"
        >>> parse_header(header)
        {'Content-Length': '42', 'Content-Type': 'application/json'}
    """
    headers: dict[str, str] = {}

    if not header_bytes:
        raise LSPFramingError("Empty header block")

    try:
        header_text = header_bytes.decode(HEADER_ENCODING)
    except UnicodeDecodeError as e:
        raise LSPFramingError(f"Header contains non-ASCII characters: {e}") from e

    for line in header_text.split("\r\n"):
        if not line:
            continue

        colon_pos = line.find(":")
        if colon_pos == -1:
            raise LSPFramingError(f"Malformed header line (no colon): {line!r}")

        name = line[:colon_pos].strip()
        value = line[colon_pos + 1 :].strip()

        if not name:
            raise LSPFramingError(f"Empty header name in line: {line!r}")

        if name.lower() == CONTENT_LENGTH.lower():
            if CONTENT_LENGTH in headers:
                raise LSPFramingError("Duplicate Content-Length header")
            field = _CONTENT_LENGTH_FIELD.fullmatch(line)
            if field is None:
                raise LSPFramingError(f"Invalid Content-Length value: {value!r}")
            name = CONTENT_LENGTH
            value = field.group(1)
        headers[name] = value

    if CONTENT_LENGTH not in headers:
        raise LSPFramingError("Missing required Content-Length header")

    length = int(headers[CONTENT_LENGTH])

    if length < 0:
        raise LSPFramingError(f"Negative Content-Length: {length}")

    return headers


def replace_content_length(header_bytes: bytes, length: int) -> bytes:
    """Rewrite the Content-Length value, keeping every other header line."""
    return _CONTENT_LENGTH_LINE.sub(
        lambda m: m.group(1) + str(length).encode(HEADER_ENCODING), header_bytes, count=1
    )


@dataclass(frozen=True)
class FieldRewrite:
    """Replace one exact ``"field":"value"`` pair inside a JSON body.

    Matching is a byte-exact substring search, so ``"field": "value"``
    (with whitespace) is left alone and so is any unrelated occurrence
    of the value.
    """

    field: str
    match: str
    replacement: str

    @property
    def needle(self) -> bytes:
        return f'"{self.field}":"{self.match}"'.encode()

    @property
    def substitute(self) -> bytes:
        return f'"{self.field}":"{self.replacement}"'.encode()

    def apply(self, body: bytes) -> bytes:
        return body.replace(self.needle, self.substitute)


# Editors without GDScript support open .gd files as plain text; Godot's
# server ignores documents that are not declared as gdscript.
LANGUAGE_ID_REWRITE = FieldRewrite("languageId", "plaintext", "gdscript")


class FrameInterceptor:
    """Streaming transform over Content-Length framed bytes.

    ``feed`` accepts chunks split at any boundary and returns the bytes of
    every frame completed so far, in arrival order. Incomplete frames stay
    buffered. Frames that contain no rewrite target are emitted
    byte-for-byte; rewritten frames get a recomputed Content-Length.

    A header block that cannot be parsed is never skipped: the interceptor
    holds it and everything after it until more input arrives.
    """

    def __init__(self, rewrites: tuple[FieldRewrite, ...] = (LANGUAGE_ID_REWRITE,)) -> None:
        self._rewrites = rewrites
        self._buffer = bytearray()
        self._stalled_on: bytes | None = None
        self.frames_forwarded = 0
        self.frames_rewritten = 0

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet emitted."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> bytes:
        """Consume a chunk and return zero or more complete frames."""
        self._buffer.extend(chunk)
        out = bytearray()

        while True:
            frame = self._next_frame()
            if frame is None:
                break
            out.extend(frame)

        return bytes(out)

    def _next_frame(self) -> bytes | None:
        separator = self._buffer.find(HEADER_SEPARATOR)
        if separator == -1:
            return None

        header = bytes(self._buffer[:separator])
        try:
            length = int(parse_header(header)[CONTENT_LENGTH])
        except LSPFramingError as e:
            if self._stalled_on != header:
                self._stalled_on = header
                log.debug("Waiting on unparseable header block: %s", e)
            return None
        self._stalled_on = None

        body_start = separator + len(HEADER_SEPARATOR)
        frame_end = body_start + length
        if len(self._buffer) < frame_end:
            return None

        body = bytes(self._buffer[body_start:frame_end])
        original = bytes(self._buffer[:frame_end])
        del self._buffer[:frame_end]
        self.frames_forwarded += 1

        rewritten = body
        for rewrite in self._rewrites:
            rewritten = rewrite.apply(rewritten)

        if rewritten == body:
            return original

        self.frames_rewritten += 1
        new_header = replace_content_length(header, len(rewritten))
        log.debug("Rewrote frame body: %d -> %d bytes", length, len(rewritten))
        return new_header + HEADER_SEPARATOR + rewritten
