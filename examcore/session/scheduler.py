from __future__ import annotations

"""Background ticker that drives a session clock from the host side."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TickScheduler:
    """Call ``callback`` roughly every ``interval`` seconds on a daemon thread.

    The callback runs while holding ``lock`` so a multi-threaded host can guard
    the whole session with the same mutex it uses for user actions. Cadence is
    best effort; the clock derives time from its source, not from tick count.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        *,
        interval: float = 1.0,
        lock: Optional[threading.RLock] = None,
        name: str = "session-ticker",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._callback = callback
        self._interval = float(interval)
        self.lock = lock or threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._name = name

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            with self.lock:
                try:
                    self._callback()
                except Exception:
                    logger.exception("tick callback failed; stopping ticker")
                    self._stop.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop.is_set()
