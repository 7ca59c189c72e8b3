# src/missionflow/editor/scheduler.py
"""Dirty-flag scheduler that coalesces bursts of edits into one callback.

The first mark_dirty() in a quiet period arms a timer; marks that arrive
while it is pending only keep the flag set. When the timer fires (or
flush() is called) the callback runs once and the flag clears.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)


class CoalescingScheduler:
    """Run a callback at most once per burst of mark_dirty() calls.

    A delay of 0 runs the callback synchronously from mark_dirty().

    Thread-safe: marks may come from any thread. The callback never runs
    concurrently with itself. Marks made while the callback is running,
    including marks made by the callback itself, only set the flag; the
    running flush picks them up and runs the callback again.
    """

    def __init__(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        self._delay = delay_seconds
        self._callback = callback
        self._lock = threading.Lock()
        self._run_lock = threading.RLock()
        self._dirty = False
        self._running = False
        self._timer: threading.Timer | None = None

    @property
    def dirty(self) -> bool:
        """Whether a run is owed."""
        with self._lock:
            return self._dirty

    @property
    def pending(self) -> bool:
        """Whether a timer is armed."""
        with self._lock:
            return self._timer is not None

    def mark_dirty(self) -> None:
        """Record that state changed; schedule a run if none is pending."""
        with self._lock:
            self._dirty = True
            if self._running:
                return
            if self._delay > 0:
                if self._timer is None:
                    self._timer = threading.Timer(self._delay, self._fire)
                    self._timer.daemon = True
                    self._timer.start()
                return
        self.flush()

    def flush(self) -> bool:
        """Run the callback now if a run is owed.

        Called from inside the callback, returns False at once; the outer
        run repeats the callback for anything marked meanwhile.

        Returns:
            True if the callback ran
        """
        with self._run_lock:
            with self._lock:
                if self._running:
                    return False
                self._running = True
            ran = False
            try:
                while self._take_owed_run():
                    self._callback()
                    ran = True
            except Exception:
                with self._lock:
                    self._running = False
                raise
            return ran

    def cancel(self) -> None:
        """Drop any owed run without calling the callback."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._dirty = False

    def _take_owed_run(self) -> bool:
        """Claim the owed run, or leave the running state if none is owed."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if not self._dirty:
                self._running = False
                return False
            self._dirty = False
            return True

    def _fire(self) -> None:
        try:
            self.flush()
        except Exception:
            # Timer threads have no caller to propagate to
            logger.exception("Coalesced callback failed")
            raise
