"""Cancellable timers for the arpeggiator clock.

Everything here is built on a one-shot ``call_later(delay, callback)`` that
returns a handle with ``cancel()``. Two providers are included: one backed by
threading.Timer for headless use, and one wrapping Textual's ``set_timer``
so ticks run on the UI event loop.
"""
import threading
from typing import Any, Callable, Optional


class PeriodicTask:
    """Repeats a callback, re-reading the interval before each re-arm."""

    def __init__(self, call_later: Callable[[float, Callable[[], None]], Any]):
        self._call_later = call_later
        self._handle = None
        self._interval: Optional[Callable[[], float]] = None
        self._callback: Optional[Callable[[], None]] = None
        self._active = False
        # Bumped on every start/cancel so a timer that fired late is ignored.
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._active

    def start(self, interval: Callable[[], float], callback: Callable[[], None], immediate: bool = True):
        """Arm the task. With ``immediate`` the first call happens right now."""
        self.cancel()
        self._interval = interval
        self._callback = callback
        self._active = True
        if immediate:
            self._fire(self._generation)
        else:
            self._schedule()

    def cancel(self):
        self._active = False
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self):
        generation = self._generation
        self._handle = self._call_later(self._interval(), lambda: self._fire(generation))

    def _fire(self, generation: int):
        if generation != self._generation or not self._active:
            return
        self._handle = None
        self._callback()
        # The callback may have cancelled or restarted us.
        if generation == self._generation and self._active:
            self._schedule()


class ThreadingScheduler:
    """call_later on threading.Timer; callbacks run under ``lock``."""

    def __init__(self, lock=None):
        self.lock = lock or threading.RLock()

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        def run():
            with self.lock:
                callback()
        timer = threading.Timer(delay, run)
        timer.daemon = True
        timer.start()
        return timer


class _TextualHandle:
    def __init__(self, timer):
        self._timer = timer

    def cancel(self):
        self._timer.stop()


class TextualScheduler:
    """call_later on a Textual widget's ``set_timer``.

    Ticks run on the UI event loop; ``lock`` still guards them against the
    audio thread rendering the graph.
    """

    def __init__(self, widget, lock=None):
        self.widget = widget
        self.lock = lock or threading.RLock()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _TextualHandle:
        def run():
            with self.lock:
                callback()
        return _TextualHandle(self.widget.set_timer(delay, run))
