"""
Rolling-window call counting for hosts.

The decision engine never counts calls; it is told how many calls were already
admitted in the current window. A host serving concurrent requests must make
"read count, decide, record admission" atomic per tool, otherwise two calls
that each see room for one more can both be admitted and overshoot the limit.

CallCounter provides that: one lock and one timestamp deque per (pack, tool).

Usage:
    counter = CallCounter()
    with counter.admission(tool.key, rule.rate_limit.window_sec) as slot:
        verdict = engine.decide(tool, rule, CallContext(
            payload=payload,
            calls_already_made_in_window=slot.count,
        ))
        if verdict.allowed:
            slot.record()
"""

import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


Key = tuple[str, str]


@dataclass
class _Window:
    lock: threading.Lock = field(default_factory=threading.Lock)
    timestamps: deque[float] = field(default_factory=deque)


class AdmissionSlot:
    """
    Handle for one locked admission attempt.

    Attributes:
        count: Calls admitted within the window when the slot was opened
        recorded: Whether this attempt was recorded as admitted
    """

    def __init__(self, window: _Window, now: float, count: int) -> None:
        self._window = window
        self._now = now
        self.count = count
        self.recorded = False

    def record(self) -> None:
        """Record this call as admitted. Idempotent."""
        if not self.recorded:
            self._window.timestamps.append(self._now)
            self.recorded = True


class CallCounter:
    """
    Thread-safe rolling-window counter keyed by (pack, tool).

    Attributes:
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._windows: dict[Key, _Window] = {}
        self._registry_lock = threading.Lock()

    def _window(self, key: Key) -> _Window:
        with self._registry_lock:
            window = self._windows.get(key)
            if window is None:
                window = _Window()
                self._windows[key] = window
            return window

    @staticmethod
    def _prune(window: _Window, now: float, window_sec: int) -> None:
        cutoff = now - window_sec
        while window.timestamps and window.timestamps[0] <= cutoff:
            window.timestamps.popleft()

    @contextmanager
    def admission(self, key: Key, window_sec: int) -> Iterator[AdmissionSlot]:
        """
        Hold the key's lock while the caller decides and optionally records.

        Args:
            key: (pack, tool) identity
            window_sec: Window length used to prune old admissions

        Yields:
            AdmissionSlot with the current count; call record() to admit
        """
        window = self._window(key)
        with window.lock:
            now = self.clock()
            self._prune(window, now, max(1, window_sec))
            yield AdmissionSlot(window, now, len(window.timestamps))

    def reset(self, key: Key | None = None) -> None:
        """Forget admissions for one key, or for all keys."""
        with self._registry_lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)
