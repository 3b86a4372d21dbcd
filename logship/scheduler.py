"""
Timers and background execution for the shipper.

FlushScheduler is the recurring interval timer. schedule_retry arms a
one-shot timer for a single re-attempt. SendDispatcher runs sends off the
caller's thread.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

logger = logging.getLogger(__name__)


class FlushScheduler:
    """
    Background thread that calls on_tick every interval seconds.

    The tick runs whatever the outcome of the previous one; an exception from
    on_tick is logged and the loop keeps going.
    """

    def __init__(self, interval: float, on_tick: Callable[[], None], name: str = "logship-flush"):
        self.interval = interval
        self._on_tick = on_tick
        self._name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the timer thread. Calling start() again is a no-op."""
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                self._on_tick()
            except Exception as e:
                logger.error(f"Flush tick failed: {e}")

    def stop(self, timeout: float | None = None):
        """Stop the timer thread and wait for it to exit."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


def schedule_retry(delay: float, action: Callable[[], None]) -> threading.Timer:
    """Run action once after delay seconds on a daemon timer thread."""
    timer = threading.Timer(delay, action)
    timer.daemon = True
    timer.start()
    return timer


class SendDispatcher:
    """Runs send attempts on a small worker pool."""

    def __init__(self, max_workers: int = 2):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="logship-send")

    def submit(self, fn: Callable[..., None], *args) -> Future:
        return self._executor.submit(fn, *args)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
