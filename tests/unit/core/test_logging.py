"""Unit tests for loguru configuration and LogSpan."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from loguru import logger


@pytest.fixture
def captured() -> Generator[list[str], None, None]:
    """Collect formatted loguru messages."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(str(m)), format="{level} {message}")
    yield messages
    logger.remove(handler_id)


@pytest.mark.unit
@pytest.mark.core
def test_log_span_emits_attributes(captured: list[str]) -> None:
    from umlpipe.logging import LogSpan

    with LogSpan(span="engine.start", command="java") as span:
        span.add("pid", 42).add(generation=1)

    assert len(captured) == 1
    line = captured[0]
    assert line.startswith("INFO engine.start")
    assert "command=java" in line
    assert "pid=42" in line
    assert "generation=1" in line
    assert "elapsed_ms=" in line


@pytest.mark.unit
@pytest.mark.core
def test_log_span_records_error_and_reraises(captured: list[str]) -> None:
    from umlpipe.logging import LogSpan

    with pytest.raises(RuntimeError), LogSpan(span="bridge.start"):
        raise RuntimeError("bind failed")

    assert captured[0].startswith("WARNING bridge.start")
    assert "RuntimeError: bind failed" in captured[0]


@pytest.mark.unit
@pytest.mark.core
def test_configure_logging_writes_file(tmp_path: Path) -> None:
    from umlpipe.logging import configure_logging

    try:
        configure_logging(log_name="test", level="DEBUG", log_dir=tmp_path / "logs")
        logger.debug("hello from test")
        logger.complete()
    finally:
        configure_logging(level="WARNING")

    assert "hello from test" in (tmp_path / "logs" / "test.log").read_text()
