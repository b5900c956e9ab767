"""FIFO queue of render requests awaiting an engine frame.

The engine emits exactly one frame per terminated input block, in input
order, so the oldest pending request always owns the next frame. The
queue is never reordered; entries leave it only from the head (frame
arrived), by identity (timed out), or all at once (drain).

Not thread-safe on its own; the supervisor guards it with its lock.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Iterator
from concurrent.futures import Future
from dataclasses import dataclass, field


@dataclass(eq=False)
class PendingRequest:
    """A submitted source block waiting for its rendered frame."""

    source: str
    future: Future[str] = field(default_factory=Future)
    enqueued_at: float = field(default_factory=time.monotonic)
    timer: threading.Timer | None = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def resolve(self, frame: str) -> None:
        """Cancel the deadline and complete the future with a frame."""
        self.cancel_timer()
        if not self.future.done():
            self.future.set_result(frame)

    def reject(self, error: BaseException) -> None:
        """Cancel the deadline and fail the future."""
        self.cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)

    @property
    def age(self) -> float:
        return time.monotonic() - self.enqueued_at


class RequestQueue:
    """Ordered collection of in-flight requests; insertion order is submission order."""

    def __init__(self) -> None:
        self._entries: deque[PendingRequest] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingRequest]:
        return iter(self._entries)

    def __contains__(self, entry: object) -> bool:
        return any(e is entry for e in self._entries)

    def push(self, entry: PendingRequest) -> None:
        self._entries.append(entry)

    def pop_head(self) -> PendingRequest | None:
        """Remove and return the oldest entry, or None if empty."""
        if not self._entries:
            return None
        return self._entries.popleft()

    def remove(self, entry: PendingRequest) -> bool:
        """Remove a specific entry by identity.

        Returns:
            True if the entry was queued and has been removed
        """
        for i, queued in enumerate(self._entries):
            if queued is entry:
                del self._entries[i]
                return True
        return False

    def drain(self) -> list[PendingRequest]:
        """Remove and return every entry, oldest first."""
        entries = list(self._entries)
        self._entries.clear()
        return entries
