"""Input completeness checks and output frame extraction for pipe mode.

In -pipe mode the engine reads successive source blocks from stdin and
writes successive SVG documents to stdout with nothing between them. A
block is only processed once its end marker (@enduml, @endmindmap, ...)
arrives, so an unterminated block stalls every request behind it.

is_complete() is a heuristic: it looks for any recognized end marker and
does not validate the diagram grammar.
"""

from __future__ import annotations

import re

# Closing tag of every rendered SVG document
FRAME_TERMINATOR = b"</svg>"

# End markers of the block syntaxes the engine accepts
END_MARKERS = (
    "uml",
    "mindmap",
    "wbs",
    "gantt",
    "salt",
    "json",
    "yaml",
    "math",
    "latex",
    "ditaa",
    "dot",
    "ebnf",
    "regex",
    "nwdiag",
    "chronology",
    "chen",
    "creole",
    "board",
    "files",
    "git",
)

_END_MARKER_RE = re.compile(
    r"@end(?:" + "|".join(END_MARKERS) + r")", re.IGNORECASE
)

# Returned for unterminated input instead of writing to the engine
PLACEHOLDER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="200" height="60">'
    '<text x="10" y="40" font-family="sans-serif" font-size="14" fill="#888">...</text>'
    "</svg>"
)


def is_complete(source: str) -> bool:
    """Check whether source text contains a recognized end marker."""
    return _END_MARKER_RE.search(source) is not None


def extract_frame(buffer: bytes) -> tuple[bytes, bytes] | None:
    """Split the first complete frame off the front of buffer.

    Args:
        buffer: Accumulated, not yet consumed engine output

    Returns:
        (frame, remainder) where frame ends with the terminator, or None
        when buffer holds no complete frame yet.
    """
    index = buffer.find(FRAME_TERMINATOR)
    if index == -1:
        return None
    end = index + len(FRAME_TERMINATOR)
    return buffer[:end], buffer[end:]


def split_frames(buffer: bytes) -> tuple[list[bytes], bytes]:
    """Extract every complete frame from buffer.

    Returns:
        (frames in output order, trailing incomplete fragment)
    """
    frames: list[bytes] = []
    while (result := extract_frame(buffer)) is not None:
        frame, buffer = result
        frames.append(frame)
    return frames, buffer
