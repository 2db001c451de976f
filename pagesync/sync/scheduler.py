"""Periodic full reconciliation on a background thread."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from pagesync.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class PeriodicSync:
    """Runs ``engine.full_sync()`` at startup and then every ``interval`` seconds."""

    def __init__(self, engine: SyncEngine, interval: float | None = None):
        self.engine = engine
        self.interval = interval if interval is not None else engine.config.interval
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the background thread. Safe to call more than once.

        Refuses to start while a thread from an earlier ``stop()`` that timed
        out is still finishing its pass.
        """
        if self._running:
            logger.debug("Periodic sync already running")
            return
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Periodic sync still finishing a pass, not restarting")
            return

        self._running = True
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._loop,
            args=(self._stop_event,),
            name="pagesync-periodic",
            daemon=True,
        )
        self._thread.start()
        logger.info("Periodic sync started (every %ss)", self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to exit and wait for it.

        A pass already in progress is not interrupted.
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Periodic sync pass still running after %ss", timeout)
            else:
                self._thread = None
        logger.info("Periodic sync stopped")

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.engine.full_sync()
            except Exception as e:
                # Enumeration failures abort only this pass; the next tick retries
                logger.error("Error: %s: %s", type(e).__name__, e)
            stop_event.wait(timeout=self.interval)
