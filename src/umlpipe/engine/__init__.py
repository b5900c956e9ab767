"""Rendering engine supervision.

The engine is a long-lived PlantUML process in pipe mode. EngineSupervisor
feeds it, correlates its output frames with requests in FIFO order and
restarts it when it stops answering.
"""

from umlpipe.engine.diagnostics import SyntaxErrorInfo, find_syntax_error
from umlpipe.engine.framing import (
    FRAME_TERMINATOR,
    PLACEHOLDER_SVG,
    extract_frame,
    is_complete,
    split_frames,
)
from umlpipe.engine.queue import PendingRequest, RequestQueue
from umlpipe.engine.supervisor import EngineProcess, EngineState, EngineSupervisor

__all__ = [
    "FRAME_TERMINATOR",
    "PLACEHOLDER_SVG",
    "EngineProcess",
    "EngineState",
    "EngineSupervisor",
    "PendingRequest",
    "RequestQueue",
    "SyntaxErrorInfo",
    "extract_frame",
    "find_syntax_error",
    "is_complete",
    "split_frames",
]
