"""Tests for frame extraction and the input completeness heuristic."""

from __future__ import annotations

import pytest

from umlpipe.engine.framing import (
    FRAME_TERMINATOR,
    PLACEHOLDER_SVG,
    extract_frame,
    is_complete,
    split_frames,
)

FRAME_A = b'<?xml version="1.0"?><svg><text>A</text></svg>'
FRAME_B = b"<svg><text>B</text></svg>"


# =============================================================================
# extract_frame / split_frames
# =============================================================================


@pytest.mark.unit
@pytest.mark.engine
class TestExtractFrame:
    """Frame decoder over buffers with 0, 1, 2 and 1.5 frames."""

    def test_empty_buffer(self) -> None:
        assert extract_frame(b"") is None

    def test_partial_frame_only(self) -> None:
        assert extract_frame(b"<svg><text>A</te") is None

    def test_single_frame(self) -> None:
        assert extract_frame(FRAME_A) == (FRAME_A, b"")

    def test_two_frames_back_to_back(self) -> None:
        frame, rest = extract_frame(FRAME_A + FRAME_B)  # type: ignore[misc]
        assert frame == FRAME_A
        assert rest == FRAME_B

        frame, rest = extract_frame(rest)  # type: ignore[misc]
        assert frame == FRAME_B
        assert rest == b""

    def test_frame_and_a_half(self) -> None:
        frame, rest = extract_frame(FRAME_A + b"<svg><te")  # type: ignore[misc]
        assert frame == FRAME_A
        assert rest == b"<svg><te"
        assert extract_frame(rest) is None

    def test_frame_includes_terminator(self) -> None:
        frame, _ = extract_frame(b"  <svg/>junk</svg>tail")  # type: ignore[misc]
        assert frame.endswith(FRAME_TERMINATOR)


@pytest.mark.unit
@pytest.mark.engine
class TestSplitFrames:
    """split_frames drains every complete frame in order."""

    @pytest.mark.parametrize(
        ("buffer", "expected_frames", "expected_rest"),
        [
            (b"", [], b""),
            (FRAME_A, [FRAME_A], b""),
            (FRAME_A + FRAME_B, [FRAME_A, FRAME_B], b""),
            (FRAME_A + b"<svg", [FRAME_A], b"<svg"),
            (b"\n" + FRAME_A + b"\n" + FRAME_B, [b"\n" + FRAME_A, b"\n" + FRAME_B], b""),
        ],
        ids=["zero", "one", "two", "one-and-a-half", "newline-separated"],
    )
    def test_split(
        self, buffer: bytes, expected_frames: list[bytes], expected_rest: bytes
    ) -> None:
        frames, rest = split_frames(buffer)
        assert frames == expected_frames
        assert rest == expected_rest

    def test_multibyte_split_across_chunks(self) -> None:
        frame = "<svg><text>你好</text></svg>".encode()
        first, second = frame[:13], frame[13:]

        frames, rest = split_frames(first)
        assert frames == []

        frames, rest = split_frames(rest + second)
        assert [f.decode("utf-8") for f in frames] == ["<svg><text>你好</text></svg>"]
        assert rest == b""


# =============================================================================
# is_complete
# =============================================================================


@pytest.mark.unit
@pytest.mark.engine
class TestIsComplete:
    """Completeness checker recognizes end markers case-insensitively."""

    @pytest.mark.parametrize(
        "source",
        [
            "@startuml\nA -> B\n@enduml",
            "@startuml\nA -> B\n@ENDUML\n",
            "@startmindmap\n* root\n@endmindmap",
            "@startwbs\n* a\n@endwbs",
            "@startgantt\n[T] lasts 1 day\n@endgantt",
            "@startsalt\n{ x }\n@endsalt",
            "@startjson\n{}\n@endjson",
            "@startyaml\na: 1\n@endyaml",
            "@startmath\nx\n@endmath",
            "@startlatex\nx\n@endlatex",
            "@startuml\nA -> B\n@enduml_",
            "@startuml\nA -> B\n@endumlx",
        ],
    )
    def test_terminated(self, source: str) -> None:
        assert is_complete(source)

    @pytest.mark.parametrize(
        "source",
        [
            "",
            "@startuml",
            "@startuml\nA -> B",
            "@startuml\nA -> B\n@end",
            "A -> B : enduml",
        ],
    )
    def test_unterminated(self, source: str) -> None:
        assert not is_complete(source)

    def test_marker_anywhere_counts(self) -> None:
        # Heuristic: a marker mid-text is enough, grammar is not checked
        assert is_complete("@enduml\ngarbage after")

    def test_placeholder_is_a_complete_frame(self) -> None:
        frames, rest = split_frames(PLACEHOLDER_SVG.encode())
        assert len(frames) == 1
        assert rest == b""
