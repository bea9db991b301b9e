"""
Periodic reconciliation sweep.

WHAT: Background loop that runs the procurement sweep on a fixed interval
WHY: Completions and expiries must be noticed even when no reply arrives
HOW: asyncio task started/stopped by the FastAPI lifespan; the sweep itself
     holds no session lock, each delivery takes one
"""

import asyncio
from datetime import datetime

from ..core.config import settings
from ..utils.logger import get_logger
from .notifier import SessionNotifier, session_notifier
from .procurement_tracker import ProcurementTracker, procurement_tracker

logger = get_logger(__name__)


class SweepScheduler:
    """Owns the sweep task."""

    def __init__(
        self,
        tracker: ProcurementTracker | None = None,
        notifier: SessionNotifier | None = None,
        interval_minutes: float | None = None
    ):
        self.tracker = tracker or procurement_tracker
        self.notifier = notifier or session_notifier
        self.interval_seconds = 60 * (interval_minutes or settings.SWEEP_INTERVAL_MINUTES)
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: datetime | None = None) -> int:
        """
        One sweep followed by delivery of its notifications.

        Returns:
            Number of notifications delivered
        """
        notifications = self.tracker.run_sweep(now)
        delivered = self.notifier.deliver_all(notifications)
        if notifications:
            logger.info(f"Sweep delivered {delivered}/{len(notifications)} notifications")
        return delivered

    async def _loop(self) -> None:
        logger.info(f"Procurement sweep scheduled every {self.interval_seconds / 60:g} minutes")
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Procurement sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Procurement sweep stopped")


# Global scheduler instance
sweep_scheduler = SweepScheduler()
