"""Error taxonomy for the rendering engine supervisor and local bridge.

Process-level failures (ProcessClosedUnexpectedly, RenderTimeout) drain the
whole request queue. Startup failures (EngineBinaryMissing, PortUnavailable,
AllPortsUnavailable) are reported once to the caller that started them.
DecodeError is local to a single HTTP request.
"""

from __future__ import annotations


class UmlPipeError(Exception):
    """Base class for all umlpipe errors."""


class EngineBinaryMissing(UmlPipeError):
    """The engine executable or archive could not be found."""


class RenderError(UmlPipeError):
    """A render request failed without the engine producing a frame."""


class ProcessStopped(RenderError):
    """The request was drained because the engine was stopped or restarted."""


class ProcessClosedUnexpectedly(RenderError):
    """The engine process exited while the request was pending."""


class RenderTimeout(RenderError):
    """The engine produced no frame for the request within the deadline."""


class PortUnavailable(UmlPipeError):
    """A single requested port could not be bound."""

    def __init__(self, port: int) -> None:
        self.port = port
        super().__init__(f"Port {port} is in use, try another port.")


class AllPortsUnavailable(UmlPipeError):
    """Every port in the automatic scan range was occupied."""

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(
            f"Ports {start}-{end} are all in use. Specify a port manually."
        )


class DecodeError(UmlPipeError):
    """The request path did not carry a decodable ~h payload."""
