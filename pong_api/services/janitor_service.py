"""
Janitor for abandoned tournament lobbies.

At startup the leftovers of a previous run are cleaned once; afterwards a
background task deletes lobbies that never filled up within the grace
window. Started tournaments are never touched.
"""

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from pong_api.core.config import settings
from pong_api.core.database import SessionLocal
from pong_api.services import tournament_service

logger = logging.getLogger(__name__)


def run_startup_sweep(
    session_factory: Callable[[], Session] = SessionLocal,
    minutes_old: Optional[int] = None,
) -> None:
    """Drop games interrupted by a crash, then lobbies past the grace window."""
    minutes_old = settings.ABANDONED_TOURNAMENT_MINUTES if minutes_old is None else minutes_old
    db = session_factory()
    try:
        tournament_service.cleanup_incomplete_games(db)
        tournament_service.sweep_abandoned_tournaments(db, minutes_old)
    finally:
        db.close()


class TournamentJanitor:
    """Background service that periodically sweeps abandoned tournaments."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[float] = None,
        minutes_old: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = settings.JANITOR_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.minutes_old = settings.ABANDONED_TOURNAMENT_MINUTES if minutes_old is None else minutes_old
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Start the background sweep worker."""
        if not self.running:
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Tournament janitor started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Stop the worker and wait for it to finish."""
        self._stop_event.set()
        task = self._worker_task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._worker_task = None
        logger.info("Tournament janitor stopped")

    def sweep_once(self) -> int:
        db = self.session_factory()
        try:
            return tournament_service.sweep_abandoned_tournaments(db, self.minutes_old)
        finally:
            db.close()

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception as e:
                logger.error("Error in tournament janitor: %s", e, exc_info=True)
