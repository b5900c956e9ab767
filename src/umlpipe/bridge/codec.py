"""Hex encoding of diagram source for /svg/~h<HEX> URLs.

Source text is UTF-8 encoded and written as lowercase hex after a "~h"
path segment prefix, the form PlantUML servers accept for GET requests.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from umlpipe.errors import DecodeError

HEX_PREFIX = "~h"


def encode_hex(source: str) -> str:
    """Encode source text as a lowercase hex string of its UTF-8 bytes."""
    return source.encode("utf-8").hex()


def decode_hex(payload: str) -> str:
    """Decode a hex string back to source text.

    Raises:
        DecodeError: If payload is not valid hex or not valid UTF-8
    """
    try:
        return bytes.fromhex(payload).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(f"Invalid hex payload: {e}") from e


def decode_request_path(path: str) -> str:
    """Extract and decode the ~h segment of a request path.

    The first path segment starting with ~h carries the payload; any query
    string is ignored.

    Raises:
        DecodeError: If no ~h segment is present or it does not decode
    """
    segments = urlsplit(path).path.split("/")
    payload = next((s for s in segments if s.startswith(HEX_PREFIX)), None)
    if payload is None:
        raise DecodeError("Invalid path")
    return decode_hex(payload[len(HEX_PREFIX) :])


def build_render_url(source: str, base_url: str) -> str:
    """Build the GET URL that renders source as SVG on base_url."""
    return f"{base_url.rstrip('/')}/svg/{HEX_PREFIX}{encode_hex(source)}"
