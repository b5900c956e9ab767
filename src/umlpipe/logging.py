"""Loguru configuration and structured log spans.

Import this module before anything that logs so loguru's default console
handler is replaced by the configured sinks.

Usage:
    from umlpipe.logging import LogSpan, configure_logging

    configure_logging(log_name="serve", level="DEBUG", log_dir=Path("logs"))

    with LogSpan(span="engine.start", jar=str(jar)) as span:
        process = spawn()
        span.add("pid", process.pid)
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <7}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {name}:{line} - {message}"


def configure_logging(
    log_name: str = "umlpipe",
    level: str = "INFO",
    log_dir: Path | None = None,
) -> None:
    """Replace loguru's default handler with stderr and optional file sinks.

    Args:
        log_name: Base name of the log file (<log_dir>/<log_name>.log)
        level: Minimum level for both sinks
        log_dir: Directory for the rotating log file, or None for stderr only
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT, backtrace=False)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / f"{log_name}.log",
            level=level,
            format=_FILE_FORMAT,
            rotation="5 MB",
            retention=5,
            enqueue=True,
        )


class LogSpan:
    """A timed logging span that emits one structured line on exit."""

    def __init__(self, span: str, **attrs: Any) -> None:
        """Initialize a log span.

        Args:
            span: Span name (e.g., "engine.start")
            **attrs: Initial attributes to log
        """
        self.span = span
        self.attrs: dict[str, Any] = dict(attrs)
        self.start_time = time.monotonic()
        self.error: str | None = None

    def add(self, key: str | None = None, value: Any = None, **attrs: Any) -> LogSpan:
        """Add attributes to the span.

        Supports both positional and keyword argument styles.

        Args:
            key: Attribute name (optional if using kwargs)
            value: Attribute value (required if key is provided)
            **attrs: Bulk attribute additions

        Returns:
            Self for method chaining
        """
        if key is not None:
            self.attrs[key] = value
        self.attrs.update(attrs)
        return self

    @property
    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.start_time) * 1000, 2)

    def __enter__(self) -> LogSpan:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        _tb: TracebackType | None,
    ) -> None:
        if exc is not None and self.error is None:
            self.error = f"{type(exc).__name__}: {exc}"
        self._emit()

    def _emit(self) -> None:
        fields = " ".join(f"{k}={v}" for k, v in self.attrs.items())
        message = f"{self.span} elapsed_ms={self.elapsed_ms}"
        if fields:
            message = f"{message} {fields}"
        bound = logger.opt(depth=2).bind(span=self.span, **self.attrs)
        if self.error:
            bound.warning(f"{message} error={self.error!r}")
        else:
            bound.info(message)
