"""Background expiry sweep.

Reclaims storage for expired files nobody requests again. Retrieval already
evicts lazily, so the sweep changes nothing a client can observe. Runs as an
asyncio task within the FastAPI process when EXPIRY_SWEEP_INTERVAL_SECONDS > 0.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable

from fileshare.errors import StorageUnavailable
from fileshare.models.base import utcnow
from fileshare.services.identity_store import IdentityStore

logger = logging.getLogger(__name__)


async def sweep_once(store: IdentityStore, clock: Callable[[], datetime] = utcnow) -> int:
    """Delete every expired record. Returns how many were removed."""
    removed = await store.delete_expired(clock())
    if removed:
        logger.info(f"Expiry sweep removed {removed} file(s)")
    return removed


async def sweep_loop(
    store: IdentityStore,
    interval: float,
    clock: Callable[[], datetime] = utcnow,
):
    """Sweep every ``interval`` seconds until cancelled."""
    logger.info("Expiry sweeper started (interval=%ss)", interval)
    while True:
        try:
            await sweep_once(store, clock)
        except StorageUnavailable as e:
            logger.warning(f"Expiry sweep failed, retrying next interval: {e}")
        await asyncio.sleep(interval)
