"""Background sweep of expired files.

Runs as an asyncio task within the FastAPI process. Reclaims disk space for
files nobody accesses again after they expire; serving correctness does not
depend on it, since every access re-checks expiry.
"""
import asyncio
import logging

from dropshell.services.lifecycle import FileLifecycleManager

logger = logging.getLogger(__name__)


async def sweep_loop(manager: FileLifecycleManager, interval_seconds: float):
    """Sweep every `interval_seconds` until cancelled."""
    logger.info(f"Expiry sweeper started (every {interval_seconds}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await manager.sweep()
        except Exception as e:
            logger.error(f"Sweep failed: {e}")
