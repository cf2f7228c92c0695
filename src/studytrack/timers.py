"""
Deferred-callback hosts.

All deferred work in StudyTrack (notification deliveries, the focus timer's
completion) is armed on a host that runs callbacks one at a time on a single
thread:

- TimerLoop: a heap of pending callbacks driven by the caller's thread.
  ``run_pending()`` fires whatever is due; ``run()`` sleeps between callbacks.
- TkTimerHost: delegates to a Tk root's ``after``/``after_cancel`` so callbacks
  run on the Tk main loop.

Both hand back a handle exposing ``cancel()``. Cancelling a callback that is
already running has no effect.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from typing import Any, Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerHost(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class _LoopHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback: Optional[Callable[[], None]] = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        self.callback = None


class TimerLoop:
    """Single-threaded deferred callback queue with an injectable clock."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._heap: List[Tuple[float, int, _LoopHandle]] = []
        self._seq = itertools.count()
        self._stopped = False

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _LoopHandle:
        handle = _LoopHandle(self._clock() + max(0.0, delay_s), callback)
        heapq.heappush(self._heap, (handle.when, next(self._seq), handle))
        return handle

    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled)

    def next_due(self) -> Optional[float]:
        self._drop_cancelled()
        return self._heap[0][0] if self._heap else None

    def run_pending(self) -> int:
        """Run every callback whose time has come; return how many ran."""
        ran = 0
        while True:
            self._drop_cancelled()
            if not self._heap or self._heap[0][0] > self._clock():
                return ran
            _, _, handle = heapq.heappop(self._heap)
            callback = handle.callback
            handle.callback = None
            if callback is None:
                continue
            try:
                callback()
            except Exception:
                logger.exception("Deferred callback failed")
            ran += 1

    def run(self, until: Optional[float] = None) -> None:
        """Serve callbacks until ``stop()`` is called, the queue drains, or ``until`` passes."""
        self._stopped = False
        while not self._stopped:
            self.run_pending()
            due = self.next_due()
            now = self._clock()
            if due is None and until is None:
                return
            if until is not None and now >= until:
                return
            target = due if due is not None else until
            if until is not None and target is not None:
                target = min(target, until)
            assert target is not None
            self._sleep(max(0.0, min(target - now, 1.0)))

    def stop(self) -> None:
        self._stopped = True

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)


class _TkHandle:
    def __init__(self, root: Any, job: str) -> None:
        self._root = root
        self._job: Optional[str] = job

    def cancel(self) -> None:
        if self._job is None:
            return
        self._root.after_cancel(self._job)
        self._job = None


class TkTimerHost:
    """Arms callbacks on a Tk root so they run on the Tk main loop."""

    def __init__(self, root: Any) -> None:
        self.root = root

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _TkHandle:
        job = self.root.after(int(max(0.0, delay_s) * 1000), callback)
        return _TkHandle(self.root, job)


__all__ = ["TimerHandle", "TimerHost", "TimerLoop", "TkTimerHost"]
