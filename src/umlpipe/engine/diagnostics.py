"""Recognize error frames in rendered output.

The engine reports syntax errors as a normal SVG that draws the error
text, so a failed render still arrives as a valid frame. These helpers
find that text and the line it points at.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

ERROR_MARKERS = (
    "Syntax Error?",
    "Syntax error",
    "java.lang.IllegalStateException",
)

_LINE_RE = re.compile(r"line\s*:?\s*(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class SyntaxErrorInfo:
    """Location and summary of an error reported inside a rendered frame."""

    line: int
    message: str


def find_syntax_error(svg: str) -> SyntaxErrorInfo | None:
    """Return error details if svg is an error frame, else None.

    The line defaults to 1 when the frame names no line number.
    """
    marker = next((m for m in ERROR_MARKERS if m in svg), None)
    if marker is None:
        return None

    match = _LINE_RE.search(svg)
    line = int(match.group(1)) if match else 1
    return SyntaxErrorInfo(line=line, message=marker.rstrip("?"))
