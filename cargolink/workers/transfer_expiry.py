"""
Background Transfer Expiry Worker
=================================

Runs every ``TRANSFER_SWEEP_INTERVAL_SECONDS`` (default 300 s) and rejects
transfers still ``pending`` after ``TRANSFER_EXPIRY_HOURS`` with reason
``expired``.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one API process sweeps at a time.
* **SELECT … FOR UPDATE** on each transfer row keeps a sweep from racing a
  company's accept / reject.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cargolink.config import settings
from cargolink.infrastructure.database import async_session_factory
from cargolink.infrastructure.locks import DistributedLock
from cargolink.infrastructure.redis_client import get_redis
from cargolink.services.transfers import TransferService

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_expiry_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Transfer expiry worker started (interval=%ds, expiry=%dh)",
        settings.transfer_sweep_interval_seconds,
        settings.transfer_expiry_hours,
    )


async def stop_expiry_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Transfer expiry worker stopped")


async def run_expiry_cycle(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    redis: Optional[aioredis.Redis] = None,
) -> list[int]:
    """Execute one sweep.  Returns the ids of the expired transfers."""
    redis = redis or await get_redis()
    lock = DistributedLock(redis, "transfer_expiry", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping sweep")
        return []

    try:
        async with session_factory() as session:
            try:
                expired = await TransferService(session).expire_stale(
                    timedelta(hours=settings.transfer_expiry_hours)
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return expired
    finally:
        await lock.release()


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a sweep then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_expiry_cycle()
        except Exception:
            logger.exception("Unhandled error in transfer expiry sweep")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.transfer_sweep_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next sweep
