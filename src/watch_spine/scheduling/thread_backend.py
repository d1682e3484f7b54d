"""Threading-based tick backend (the internal runner).

    start()
       │
       ▼
    daemon thread:
       while not stop_event.wait(interval):
           tick_count += 1
           asyncio.run(tick_callback())
       │
    stop()
       stop_event.set(); thread.join(timeout)

With ``run_immediately`` the first tick fires on start instead of after one
full interval, so a freshly started service does not sit idle for five
minutes.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime
from typing import Any

from watch_spine.core.logging import get_logger
from watch_spine.scheduling.protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class ThreadSchedulerBackend:
    """Daemon-thread tick loop.

    Example:
        >>> backend = ThreadSchedulerBackend()
        >>> backend.start(service.tick, interval_seconds=300)
        >>> # ... later ...
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self, *, run_immediately: bool = True, join_timeout: float = 5.0) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float = 300.0
        self._started = False
        self._lock = threading.Lock()
        self._run_immediately = run_immediately
        self._join_timeout = join_timeout

    def _fire(self, tick_callback: TickCallback) -> None:
        with self._lock:
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)
        try:
            asyncio.run(tick_callback())
        except Exception:
            logger.exception("tick_crashed", backend=self.name)

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 300.0,
    ) -> None:
        if self._started:
            logger.warning("backend_already_started", backend=self.name)
            return

        self._interval = interval_seconds
        self._stop_event.clear()

        def _loop() -> None:
            logger.info("backend_started", backend=self.name, interval_s=interval_seconds)
            if self._run_immediately and not self._stop_event.is_set():
                self._fire(tick_callback)
            while not self._stop_event.wait(interval_seconds):
                self._fire(tick_callback)
            logger.info("backend_stopped", backend=self.name)

        self._thread = threading.Thread(target=_loop, daemon=True, name="watch-scheduler")
        self._thread.start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self._join_timeout)
            if self._thread.is_alive():
                logger.warning("backend_stop_unclean", backend=self.name)

        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick

    def get_health(self) -> BackendHealth:
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            extra={"interval_seconds": self._interval},
        )

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()
