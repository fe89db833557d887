"""
Background task deleting expired seat holds.

Expired holds are already ignored by every availability check; the sweeper
only keeps the table small.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from cinebook.config import settings
from cinebook.core.database import async_session
from cinebook.services.hold_service import HoldManager, hold_manager

logger = logging.getLogger(__name__)


class HoldSweeper:
    """Periodically purges expired holds"""

    def __init__(
        self,
        interval: Optional[float] = None,
        holds: Optional[HoldManager] = None,
        session_factory: Optional[async_sessionmaker] = None
    ):
        self.interval = interval if interval is not None else settings.HOLD_SWEEP_INTERVAL_SECONDS
        self.holds = holds or hold_manager
        self.session_factory = session_factory or async_session
        self.running = False
        self.task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    async def start(self):
        """Start the background sweeper"""
        if not self.enabled:
            logger.info("Hold sweeper disabled")
            return
        if self.running:
            logger.warning("Hold sweeper already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info(f"Hold sweeper started (interval: {self.interval}s)")

    async def stop(self):
        """Stop the background sweeper"""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Hold sweeper stopped")

    async def sweep_once(self) -> int:
        async with self.session_factory() as db:
            return await self.holds.purge_expired(db)

    async def _run(self):
        while self.running:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in hold sweeper: {e}")
            await asyncio.sleep(self.interval)


hold_sweeper = HoldSweeper()
