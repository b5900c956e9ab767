"""Loopback HTTP bridge in front of the rendering engine supervisor.

Routes:
    GET /svg/~h<HEX>  render the hex-encoded source, answer with SVG
    OPTIONS *         204 with permissive CORS headers

Every render request goes through EngineSupervisor.render(), which is
the single serialization point for engine input. A failing request is
answered with an error status; it never takes the listener down.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING, Any

from loguru import logger

from umlpipe.bridge.codec import decode_request_path
from umlpipe.bridge.ports import LOOPBACK_HOST, bind, bind_auto
from umlpipe.config.loader import BridgeConfig
from umlpipe.errors import (
    AllPortsUnavailable,
    DecodeError,
    EngineBinaryMissing,
    PortUnavailable,
    RenderError,
)
from umlpipe.logging import LogSpan

if TYPE_CHECKING:
    from umlpipe.engine.supervisor import EngineSupervisor

SVG_CONTENT_TYPE = "image/svg+xml; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

RENDER_ERROR_SVG = b'<svg><text y="20" fill="red">Server Error</text></svg>'

# Lowest port accepted in manual mode
MIN_MANUAL_PORT = 1024
MAX_PORT = 65535


@dataclass(frozen=True)
class ServerStatus:
    """Outcome of a start or stop command on the bridge."""

    success: bool
    port: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


StatusListener = Callable[[ServerStatus], None]


class BridgeHTTPServer(ThreadingHTTPServer):
    """Threading HTTP server carrying a reference to the supervisor."""

    daemon_threads = True
    block_on_close = False

    def __init__(self, address: tuple[str, int], supervisor: EngineSupervisor) -> None:
        self.supervisor = supervisor
        super().__init__(address, BridgeRequestHandler)

    @property
    def port(self) -> int:
        return int(self.server_address[1])


class BridgeRequestHandler(BaseHTTPRequestHandler):
    """Decodes /svg/~h<HEX> requests and forwards them to the supervisor."""

    server: BridgeHTTPServer
    server_version = "umlpipe"

    def do_OPTIONS(self) -> None:  # noqa: N802
        self._send(HTTPStatus.NO_CONTENT, b"")

    def _method_not_allowed(self) -> None:
        self._send(
            HTTPStatus.METHOD_NOT_ALLOWED,
            b"Method Not Allowed",
            TEXT_CONTENT_TYPE,
            allow="GET, OPTIONS",
        )

    do_HEAD = do_POST = do_PUT = do_DELETE = do_PATCH = _method_not_allowed  # noqa: N815

    def do_GET(self) -> None:  # noqa: N802
        try:
            self._handle_render()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug(f"Client went away during {self.path[:80]}: {e}")
        except Exception:
            logger.exception("Bridge handler error")
            try:
                self._send(
                    HTTPStatus.INTERNAL_SERVER_ERROR,
                    b"Internal Server Error",
                    TEXT_CONTENT_TYPE,
                )
            except OSError as e:
                logger.debug(f"Could not send error response: {e}")

    def _handle_render(self) -> None:
        try:
            source = decode_request_path(self.path)
        except DecodeError as e:
            logger.debug(f"Rejecting {self.path[:80]}: {e}")
            self._send(HTTPStatus.BAD_REQUEST, b"Invalid path", TEXT_CONTENT_TYPE)
            return

        try:
            svg = self.server.supervisor.render(source)
        except (RenderError, EngineBinaryMissing) as e:
            logger.error(f"Generation error: {e}")
            self._send(
                HTTPStatus.INTERNAL_SERVER_ERROR, RENDER_ERROR_SVG, SVG_CONTENT_TYPE
            )
            return

        self._send(HTTPStatus.OK, svg.encode("utf-8"), SVG_CONTENT_TYPE)

    def _send(
        self,
        status: HTTPStatus,
        body: bytes,
        content_type: str | None = None,
        allow: str | None = None,
    ) -> None:
        self.send_response(status)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, OPTIONS")
        if allow:
            self.send_header("Allow", allow)
        if content_type:
            self.send_header("Content-Type", content_type)
        if status != HTTPStatus.NO_CONTENT:
            self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body and self.command != "HEAD":
            self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug(f"{self.address_string()} {format % args}")


class LocalBridge:
    """Owns at most one loopback HTTP listener bound to the supervisor.

    Starting replaces any running listener; the old one is closed before
    the new one binds. Status listeners receive the outcome of every
    start and stop command.
    """

    def __init__(
        self,
        supervisor: EngineSupervisor,
        config: BridgeConfig | None = None,
    ) -> None:
        self.supervisor = supervisor
        self.config = config or BridgeConfig()
        self._server: BridgeHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._listeners: list[StatusListener] = []

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    @property
    def port(self) -> int | None:
        server = self._server
        return server.port if server is not None else None

    @property
    def url(self) -> str | None:
        port = self.port
        return f"http://{LOOPBACK_HOST}:{port}" if port is not None else None

    def is_running(self) -> bool:
        return self._server is not None

    def start_local_server(self, port: int | None = None) -> ServerStatus:
        """Start the engine and bind a listener.

        Args:
            port: Manual port; when None, the configured port or the
                automatic range scan is used

        Returns:
            ServerStatus with the bound port, or the failure reason
        """
        with self._lock:
            self._close_server()
            requested = port if port is not None else self.config.port
            with LogSpan(span="bridge.start", requestedPort=requested) as span:
                status = self._start(requested)
                span.add(success=status.success, port=status.port)
                if status.error:
                    span.add(error=status.error)
        self._emit(status)
        return status

    def _start(self, port: int | None) -> ServerStatus:
        if port is not None and not MIN_MANUAL_PORT <= port <= MAX_PORT:
            return ServerStatus(
                success=False,
                error=f"Invalid port {port}: use a port between "
                f"{MIN_MANUAL_PORT} and {MAX_PORT}.",
            )

        try:
            self.supervisor.start()
        except EngineBinaryMissing as e:
            return ServerStatus(success=False, error=str(e))

        def factory(address: tuple[str, int]) -> BridgeHTTPServer:
            return BridgeHTTPServer(address, self.supervisor)

        try:
            if port is not None:
                server = bind(port, factory)
            else:
                server = bind_auto(
                    self.config.port_range_start, self.config.port_range_end, factory
                )
        except (PortUnavailable, AllPortsUnavailable) as e:
            self.supervisor.stop()
            return ServerStatus(success=False, error=str(e))

        self._server = server
        self._thread = threading.Thread(
            target=server.serve_forever,
            daemon=True,
            name=f"bridge-{server.port}",
        )
        self._thread.start()
        mode = "manual" if port is not None else "auto-detected"
        logger.info(f"Local PlantUML server started on {mode} port {server.port}")
        return ServerStatus(success=True, port=server.port)

    def stop_local_server(self) -> ServerStatus:
        """Close the listener, if any, and stop the engine."""
        with self._lock:
            self._close_server()
            self.supervisor.stop()
        status = ServerStatus(success=True)
        self._emit(status)
        return status

    def _close_server(self) -> None:
        server, self._server = self._server, None
        thread, self._thread = self._thread, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join(timeout=5.0)
        logger.info(f"Local server on port {server.port} stopped")

    def _emit(self, status: ServerStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed")
