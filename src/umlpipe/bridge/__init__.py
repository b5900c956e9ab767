"""Loopback HTTP bridge exposing the rendering engine to local clients."""

from umlpipe.bridge.codec import (
    build_render_url,
    decode_hex,
    decode_request_path,
    encode_hex,
)
from umlpipe.bridge.ports import LOOPBACK_HOST, bind, bind_auto, bind_socket
from umlpipe.bridge.server import (
    BridgeHTTPServer,
    BridgeRequestHandler,
    LocalBridge,
    ServerStatus,
)

__all__ = [
    "LOOPBACK_HOST",
    "BridgeHTTPServer",
    "BridgeRequestHandler",
    "LocalBridge",
    "ServerStatus",
    "bind",
    "bind_auto",
    "bind_socket",
    "build_render_url",
    "decode_hex",
    "decode_request_path",
    "encode_hex",
]
