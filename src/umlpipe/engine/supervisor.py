"""Supervisor for the persistent rendering engine process.

One engine process runs in pipe mode: source blocks go in on stdin, SVG
documents come out on stdout, one per block, in order. The supervisor
owns the process, its pipes, the output buffer and the request queue:

- submit() enqueues a request and writes its block under a write lock,
  so queue order always equals stdin order.
- A reader thread appends stdout bytes to the buffer and hands each
  complete frame to the head of the queue.
- A per-request timer restarts the engine when a frame is overdue; the
  restart drains the queue because no remaining entry can be trusted to
  line up with the engine's output any more.
- An unexpected exit drains the queue with ProcessClosedUnexpectedly.

Every process gets a generation number; callbacks from a process that
has already been replaced are ignored.
"""

from __future__ import annotations

import contextlib
import shutil
import subprocess
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from umlpipe.engine.framing import PLACEHOLDER_SVG, is_complete, split_frames
from umlpipe.engine.queue import PendingRequest, RequestQueue
from umlpipe.errors import (
    EngineBinaryMissing,
    ProcessClosedUnexpectedly,
    ProcessStopped,
    RenderTimeout,
)
from umlpipe.logging import LogSpan

if TYPE_CHECKING:
    from types import TracebackType

    from umlpipe.config.loader import UmlPipeConfig

_READ_CHUNK = 65536


class EngineState(str, Enum):
    """Lifecycle states of the supervised engine."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"


@dataclass
class EngineProcess:
    """A spawned engine process and its generation number."""

    process: subprocess.Popen[bytes]
    generation: int
    started_at: float = field(default_factory=time.time)

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        """Check if the engine process is still running."""
        return self.process.poll() is None


class EngineSupervisor:
    """Owns a single engine process and correlates its output with requests.

    The engine is started lazily by the first submit() or explicitly by
    start(). Instances are independent; nothing is shared between them.
    """

    def __init__(
        self,
        command: list[str],
        *,
        jar_path: Path | None = None,
        render_timeout: float = 10.0,
        stop_timeout: float = 5.0,
    ) -> None:
        """Initialize the supervisor without starting the engine.

        Args:
            command: Full argv that launches the engine in pipe mode
            jar_path: Engine archive that must exist before launching, if any
            render_timeout: Seconds a request may wait for its frame
            stop_timeout: Seconds to wait after terminate before killing
        """
        if not command:
            raise ValueError("Engine command must not be empty")
        self.command = list(command)
        self.jar_path = jar_path
        self.render_timeout = render_timeout
        self.stop_timeout = stop_timeout

        self._lock = threading.RLock()
        # Serializes enqueue+write pairs so stdin order matches queue order
        self._write_lock = threading.Lock()
        self._engine: EngineProcess | None = None
        self._state = EngineState.STOPPED
        self._queue = RequestQueue()
        self._buffer = b""
        self._generation = 0
        self._render_count = 0
        self._restart_count = 0

    @classmethod
    def from_config(cls, config: UmlPipeConfig) -> EngineSupervisor:
        """Build a supervisor from loaded configuration."""
        engine = config.engine
        return cls(
            config.get_engine_command(),
            jar_path=None if engine.command else config.get_engine_jar_path(),
            render_timeout=engine.render_timeout,
            stop_timeout=engine.stop_timeout,
        )

    # ==================== Lifecycle ====================

    @property
    def state(self) -> EngineState:
        return self._state

    def is_running(self) -> bool:
        with self._lock:
            return self._engine is not None and self._engine.is_alive()

    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def _check_binary(self) -> None:
        """Raise EngineBinaryMissing if the engine cannot be launched."""
        if self.jar_path is not None and not self.jar_path.is_file():
            raise EngineBinaryMissing(f"Cannot find plantuml.jar. Path: {self.jar_path}")
        executable = self.command[0]
        if shutil.which(executable) is None:
            raise EngineBinaryMissing(f"Engine executable not found: {executable}")

    def start(self) -> None:
        """Launch the engine, stopping any running instance first.

        Raises:
            EngineBinaryMissing: If the executable or jar is missing
        """
        with self._lock:
            if self._engine is not None:
                self._shutdown_engine(ProcessStopped("Engine restarted"))

            self._state = EngineState.STARTING
            with LogSpan(span="engine.start", command=self.command[0]) as span:
                try:
                    self._check_binary()
                    process = subprocess.Popen(
                        self.command,
                        stdin=subprocess.PIPE,
                        stdout=subprocess.PIPE,
                        stderr=subprocess.PIPE,
                    )
                except EngineBinaryMissing:
                    self._state = EngineState.STOPPED
                    raise
                except OSError as e:
                    self._state = EngineState.STOPPED
                    raise EngineBinaryMissing(
                        f"Failed to launch engine {self.command[0]}: {e}"
                    ) from e

                self._generation += 1
                engine = EngineProcess(process=process, generation=self._generation)
                self._engine = engine
                self._buffer = b""
                self._state = EngineState.RUNNING
                span.add(pid=engine.pid, generation=engine.generation)

            threading.Thread(
                target=self._reader_loop,
                args=(engine,),
                daemon=True,
                name=f"engine-stdout-{engine.generation}",
            ).start()
            threading.Thread(
                target=self._stderr_loop,
                args=(engine,),
                daemon=True,
                name=f"engine-stderr-{engine.generation}",
            ).start()

    def stop(self) -> None:
        """Terminate the engine and reject every pending request.

        Safe to call when already stopped.
        """
        with self._lock:
            self._shutdown_engine(ProcessStopped("Engine stopped"))
            self._state = EngineState.STOPPED

    def restart(self) -> None:
        """Stop the engine, draining the queue, then start a fresh one."""
        with self._lock:
            self._state = EngineState.RESTARTING
            self._restart_count += 1
            self._shutdown_engine(ProcessStopped("Engine restarted, request discarded"))
            self.start()

    def _shutdown_engine(self, error: Exception) -> None:
        """Detach and terminate the current engine, rejecting queued requests.

        Must be called with the lock held.
        """
        engine, self._engine = self._engine, None
        self._buffer = b""

        pending = self._queue.drain()
        for entry in pending:
            entry.reject(error)

        if engine is None:
            return

        logger.info(
            f"Stopping engine pid={engine.pid} "
            f"(generation {engine.generation}, {len(pending)} pending rejected)"
        )
        # Terminate before closing stdin: a writer blocked on a full pipe
        # holds the stdin buffer lock until the process goes away
        if engine.is_alive():
            engine.process.terminate()
            try:
                engine.process.wait(timeout=self.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"Engine pid={engine.pid} ignored terminate, killing")
                engine.process.kill()
                engine.process.wait()
        if engine.process.stdin is not None:
            with contextlib.suppress(OSError, ValueError):
                engine.process.stdin.close()

    def __enter__(self) -> EngineSupervisor:
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: TracebackType | None,
    ) -> None:
        self.stop()

    # ==================== Requests ====================

    def submit(self, source: str) -> Future[str]:
        """Queue source text for rendering.

        Starts the engine if it is not running. Source without a recognized
        end marker is never written to the engine; it resolves immediately
        with a placeholder SVG.

        Args:
            source: Diagram source text

        Returns:
            Future resolving to the rendered SVG, or failing with
            RenderTimeout, ProcessStopped or ProcessClosedUnexpectedly

        Raises:
            EngineBinaryMissing: If the engine had to be started and could not be
        """
        with self._lock:
            self._ensure_engine()
            if not is_complete(source):
                logger.debug("Source has no end marker, returning placeholder")
                placeholder: Future[str] = Future()
                placeholder.set_result(PLACEHOLDER_SVG)
                return placeholder

        with self._write_lock:
            with self._lock:
                engine = self._ensure_engine()
                entry = PendingRequest(source=source)
                entry.timer = threading.Timer(
                    self.render_timeout, self._on_timeout, args=(entry,)
                )
                entry.timer.daemon = True
                self._queue.push(entry)
                entry.timer.start()

            try:
                stdin = engine.process.stdin
                if stdin is None:
                    raise OSError("Engine stdin is not available")
                stdin.write(source.encode("utf-8") + b"\n")
                stdin.flush()
            except (OSError, ValueError) as e:
                # ValueError: stdin was closed by a concurrent stop
                with self._lock:
                    if self._queue.remove(entry):
                        entry.reject(
                            ProcessClosedUnexpectedly(f"Engine input closed: {e}")
                        )

        return entry.future

    def render(self, source: str, timeout: float | None = None) -> str:
        """Render source text and block until the SVG is available.

        Raises:
            EngineBinaryMissing, RenderTimeout, ProcessStopped,
            ProcessClosedUnexpectedly
        """
        return self.submit(source).result(timeout=timeout)

    # ==================== Engine callbacks ====================

    def _is_current(self, engine: EngineProcess) -> bool:
        return self._engine is not None and self._engine.generation == engine.generation

    def _reader_loop(self, engine: EngineProcess) -> None:
        """Read engine stdout until EOF, then report the exit."""
        stdout = engine.process.stdout
        assert stdout is not None
        try:
            while chunk := stdout.read1(_READ_CHUNK):
                self._on_output(engine, chunk)
        except OSError as e:
            logger.debug(f"Engine stdout read failed: {e}")
        return_code = engine.process.wait()
        self._on_exit(engine, return_code)

    def _stderr_loop(self, engine: EngineProcess) -> None:
        """Drain engine stderr so the engine never blocks on it."""
        stderr = engine.process.stderr
        assert stderr is not None
        with contextlib.suppress(OSError, ValueError):
            for raw in stderr:
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    logger.info(f"engine[{engine.pid}] {line}")

    def _on_output(self, engine: EngineProcess, chunk: bytes) -> None:
        """Buffer output and resolve the queue head for each complete frame."""
        with self._lock:
            if not self._is_current(engine):
                return
            frames, self._buffer = split_frames(self._buffer + chunk)
            for frame in frames:
                entry = self._queue.pop_head()
                if entry is None:
                    logger.warning("Engine emitted a frame with no pending request")
                    continue
                self._render_count += 1
                entry.resolve(frame.decode("utf-8", errors="replace").lstrip())

    def _ensure_engine(self) -> EngineProcess:
        """Return a live engine, starting one if needed.

        An engine that has exited but whose reader thread has not reported
        it yet is reaped here, so no request is written to a dead process.
        Must be called with the lock held.
        """
        engine = self._engine
        if engine is not None and not engine.is_alive():
            self._reap(engine, engine.process.returncode)
            engine = None
        if engine is None:
            self.start()
            engine = self._engine
        assert engine is not None
        return engine

    def _on_exit(self, engine: EngineProcess, return_code: int) -> None:
        """Reject everything pending when the current engine dies on its own."""
        with self._lock:
            if self._is_current(engine):
                self._reap(engine, return_code)

    def _reap(self, engine: EngineProcess, return_code: int | None) -> None:
        """Detach an exited engine and reject its queue. Lock must be held."""
        self._engine = None
        self._buffer = b""
        self._state = EngineState.STOPPED
        pending = self._queue.drain()

        logger.warning(
            f"Engine pid={engine.pid} exited with code {return_code}, "
            f"rejecting {len(pending)} pending request(s)"
        )
        error = ProcessClosedUnexpectedly(
            f"Engine process closed unexpectedly (exit code {return_code})"
        )
        for entry in pending:
            entry.reject(error)

    def _on_timeout(self, entry: PendingRequest) -> None:
        """Restart a desynchronized engine and fail the overdue request."""
        with self._lock:
            if not self._queue.remove(entry):
                return
            logger.warning(
                f"Render timed out after {self.render_timeout:.1f}s, restarting engine"
            )
            try:
                self.restart()
            except EngineBinaryMissing as e:
                logger.error(f"Engine restart failed: {e}")
            entry.reject(
                RenderTimeout(f"Rendering timed out after {self.render_timeout:.1f}s")
            )

    # ==================== Introspection ====================

    def get_stats(self) -> dict[str, Any]:
        """Get supervisor statistics.

        Returns:
            Dict with state, pid, pending count, renders and restarts
        """
        with self._lock:
            engine = self._engine
            return {
                "state": self._state.value,
                "pid": engine.pid if engine else None,
                "generation": self._generation,
                "pending": len(self._queue),
                "renders": self._render_count,
                "restarts": self._restart_count,
                "uptime_seconds": time.time() - engine.started_at if engine else 0.0,
            }
