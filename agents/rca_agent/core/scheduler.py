"""
File: core/scheduler.py
Purpose: Injectable clocks for the action sequencer.
Dependencies: Standard library only (asyncio, heapq).
Performance: O(log n) per scheduled callback.

Two interchangeable schedulers:

* ``ManualScheduler`` — virtual clock driven explicitly with ``advance``
  or ``run_until_idle``. Deterministic; used by tests and instant replays.
* ``AsyncioScheduler`` — real delays on a running asyncio event loop.

Callbacks that fall due together fire in insertion order.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from typing import Callable, List, Optional, Protocol, Set, Tuple

Callback = Callable[[], None]


class Scheduler(Protocol):
    """Minimal timer interface the sequencer depends on."""

    def now(self) -> float:
        """Current time in seconds on this scheduler's clock."""
        ...

    def call_later(self, delay: float, callback: Callback) -> None:
        """Run *callback* once, *delay* seconds from now."""
        ...


class ManualScheduler:
    """Virtual-time scheduler.

    Example::

        clock = ManualScheduler()
        clock.call_later(1.0, fn)
        clock.advance(1.0)   # fn runs here
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, Callback]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callback) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        heapq.heappush(self._queue, (self._now + delay, next(self._seq), callback))

    @property
    def pending(self) -> int:
        """Number of callbacks not yet fired."""
        return len(self._queue)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing everything that falls due.

        Callbacks scheduled while advancing fire too if they fall inside
        the window.

        Returns:
            Number of callbacks fired.
        """
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = heapq.heappop(self._queue)
            self._now = due
            callback()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, max_callbacks: int = 10_000) -> int:
        """Fire callbacks in order until nothing is pending.

        Raises:
            RuntimeError: If *max_callbacks* fire without draining the
                queue (a callback keeps rescheduling itself).
        """
        fired = 0
        while self._queue:
            if fired >= max_callbacks:
                raise RuntimeError(
                    f"scheduler still busy after {max_callbacks} callbacks"
                )
            due, _, callback = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            callback()
            fired += 1
        return fired


class AsyncioScheduler:
    """Scheduler backed by ``loop.call_later``.

    Args:
        loop: Loop to schedule on; defaults to the loop running at the
            time of each ``call_later`` call.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._handles: Set[asyncio.TimerHandle] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        try:
            return self._get_loop().time()
        except RuntimeError:
            # No running loop; loop.time() is time.monotonic() by default.
            return time.monotonic()

    def call_later(self, delay: float, callback: Callback) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        loop = self._get_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def _run() -> None:
            self._handles.discard(handle)  # type: ignore[arg-type]
            callback()

        handle = loop.call_later(delay, _run)
        self._handles.add(handle)

    @property
    def pending(self) -> int:
        return len(self._handles)

    def cancel_all(self) -> None:
        """Cancel every outstanding timer (used on shutdown)."""
        for handle in list(self._handles):
            handle.cancel()
        self._handles.clear()
