"""Periodic settlement worker.

Started as an asyncio task from the app lifespan. Every interval it takes a
short Redis lease so that only one app instance sweeps at a time, then runs
one settlement pass. When Redis is down the pass runs anyway; the listing-level
settled_at gate keeps concurrent passes from settling anything twice.
"""

import asyncio
import logging
import os
import socket

from config.settings import settings
from src.sc_common.redis_client import acquire_lease
from src.sc_settlement.domain.sweeper import SettlementReport, SettlementSweeper

logger = logging.getLogger(__name__)

LEASE_KEY = "sc:settlement:lease"


def _default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class SettlementWorker:
    def __init__(
        self,
        sweeper: SettlementSweeper | None = None,
        interval_seconds: float | None = None,
        lease_seconds: int | None = None,
        owner: str | None = None,
    ) -> None:
        self._sweeper = sweeper or SettlementSweeper()
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else settings.SETTLEMENT_INTERVAL_SECONDS
        )
        self._lease_seconds = lease_seconds or settings.SETTLEMENT_LEASE_SECONDS
        self._owner = owner or _default_owner()

    async def _try_lease(self) -> bool:
        try:
            return await acquire_lease(LEASE_KEY, self._owner, self._lease_seconds)
        except Exception as exc:
            logger.warning("Settlement lease unavailable (%s); sweeping without it", exc)
            return True

    async def run_once(self) -> SettlementReport | None:
        """One tick: returns the pass report, or None if another instance holds the lease."""
        if not await self._try_lease():
            logger.debug("Settlement lease held elsewhere; skipping this tick")
            return None
        return await self._sweeper.run_settlement_pass()

    async def run_forever(self) -> None:
        logger.info("Settlement worker started (every %.0fs)", self._interval)
        try:
            while True:
                try:
                    await self.run_once()
                except Exception:
                    logger.exception("Settlement tick failed")
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            logger.info("Settlement worker stopped")
            raise


async def run_settlement_loop() -> None:
    await SettlementWorker().run_forever()
