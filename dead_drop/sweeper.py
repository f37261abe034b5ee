"""
Dead Drop — Retention sweeper.

Periodically expires and deletes drops whose TTL has elapsed. Burned
drops are skipped; their deletion is already scheduled by the store.

Author: Ava Shakil
Date: 2026-10-17
"""

import logging
import threading

from .dead_drop import DropStatus


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 300.0


class RetentionSweeper:

    def __init__(self, store, interval: float = DEFAULT_INTERVAL):
        if interval <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self.store = store
        self.interval = interval
        self._stop = threading.Event()
        self._thread = None

    def sweep(self) -> int:
        """
        Run one pass. Returns how many drops were expired.

        A failure on one drop is logged and the pass moves on.
        """
        now = self.store.now()
        expired = 0
        for drop in self.store.all_drops():
            if drop.status == DropStatus.BURNED or drop.expires_at >= now:
                continue
            try:
                if self.store.expire(drop.drop_id):
                    expired += 1
            except Exception:
                logger.exception("Failed to expire dead drop %s", drop.codename)

        if expired:
            logger.info("Cleaned up %d expired dead drops", expired)
        return expired

    def _run(self) -> None:
        logger.info("Retention sweeper started (interval %.0fs)", self.interval)
        while not self._stop.wait(self.interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Retention sweep failed")
        logger.info("Retention sweeper stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='dead-drop-sweeper', daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
