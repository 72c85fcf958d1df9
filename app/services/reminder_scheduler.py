"""Runs the adherence sweep on a fixed period."""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

from app.core.logging import logger
from app.schemas.care_plan import SweepReport
from app.services.adherence_engine import AdherenceEngine
from app.shared.exceptions import StoreError
from app.shared.models import utc_now


class ReminderScheduler:
    """
    Owns the periodic sweep.

    ``start()`` runs one sweep eagerly and then one every ``interval_seconds``.
    A tick that fires while a sweep is still running is skipped. The clock
    and sleep function are injectable so tests can drive ticks directly.
    """

    def __init__(
        self,
        engine: AdherenceEngine,
        interval_seconds: float = 3600,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.sleep = sleep
        self.last_report: Optional[SweepReport] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Optional[SweepReport]:
        """
        Run one sweep now.

        Returns:
            The sweep report, or None if the tick was skipped or failed.
            Failures are logged, never raised, so the loop survives them.
        """
        if self.engine.is_running:
            logger.warning("Adherence sweep still running, skipping this tick")
            return None

        try:
            report = await self.engine.sweep(self.clock())
        except StoreError as e:
            logger.error(f"Adherence sweep failed: {e.message}")
            return None
        except Exception as e:
            # CancelledError is a BaseException and still propagates
            logger.exception(f"Adherence sweep crashed: {type(e).__name__}: {e}")
            return None

        self.last_report = report
        return report

    async def _loop(self) -> None:
        while True:
            await self.sleep(self.interval_seconds)
            await self.run_once()

    async def start(self) -> None:
        if self.is_started:
            return
        logger.info(f"Starting reminder scheduler (every {self.interval_seconds}s)")
        await self.run_once()
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
        logger.info("Reminder scheduler stopped")
