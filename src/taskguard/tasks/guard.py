"""Re-entrancy guard — reject, don't wait.

WHY
───
A periodic job that is still running when its next tick arrives must not
start a second time. Skipping the tick is safe; queueing duplicate work is
not. ``ReentrancyGuard`` is a non-blocking try-lock that also remembers when
the current holder started, so the rejected caller can report how long the
run has been going.

ARCHITECTURE
────────────
::

    ReentrancyGuard(clock=time.monotonic)
      ├── .try_acquire()   ─ True and record started, or False immediately
      ├── .release()       ─ clear started, unlock
      ├── .hold()          ─ context manager: release on every exit path
      ├── .locked          ─ currently held?
      ├── .started         ─ monotonic timestamp of the current holder
      └── .elapsed()       ─ seconds since started (None when free)

The check-and-set is ``threading.Lock.acquire(blocking=False)``: it never
suspends the event loop and stays atomic if tasks are initiated from
several threads.

Example::

    guard = ReentrancyGuard()
    if guard.try_acquire():
        try:
            await do_work()
        finally:
            guard.release()
    else:
        print(f"busy for {guard.elapsed():.2f}s")
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

Clock = Callable[[], float]


class ReentrancyGuard:
    """Non-blocking exclusive guard with a start timestamp."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._started: float | None = None

    def try_acquire(self) -> bool:
        """Acquire the guard if free.

        Returns:
            True if acquired (``started`` is now set), False if already held.
        """
        if not self._lock.acquire(blocking=False):
            return False
        self._started = self._clock()
        return True

    def release(self) -> None:
        """Release the guard. Releasing a free guard is a no-op."""
        if not self._lock.locked():
            return
        self._started = None
        self._lock.release()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """Try to acquire; yield whether it worked; release if it did."""
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def started(self) -> float | None:
        return self._started

    def elapsed(self) -> float | None:
        """Seconds since the current holder acquired the guard."""
        started = self._started
        if started is None:
            return None
        return self._clock() - started
