"""
Cleanup scheduler for expired verification state.

Runs hourly to delete:
1. Pending signups whose verification code has expired
2. Password reset tokens past their expiry
"""

import asyncio
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore

from core.constants import CLEANUP_INTERVAL_MINUTES
from core.database import get_db_context
from services.cleanup_service import CleanupService

logger = logging.getLogger(__name__)

# Global singleton instance
_cleanup_scheduler: Optional['CleanupScheduler'] = None


class CleanupScheduler:
    """
    Scheduler for running cleanup tasks.

    Note: Database sessions are created fresh for each scheduler run
    to avoid stale session issues.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler for cleanup tasks.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Cleanup scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_cleanup,
            IntervalTrigger(minutes=CLEANUP_INTERVAL_MINUTES),
            id="expired_verification_cleanup",
            name="Expired pending signup and reset token cleanup",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Cleanup scheduler started (runs every {CLEANUP_INTERVAL_MINUTES} minutes)")

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Cleanup scheduler stopped")

    async def _run_cleanup(self) -> None:
        """
        Run cleanup tasks.

        Offloads the blocking database work to a thread so the event loop
        serving requests is not stalled.
        """
        logger.info("Starting scheduled cleanup tasks...")
        await asyncio.to_thread(self._execute_cleanup_logic)

    def _execute_cleanup_logic(self) -> None:
        """Execute the cleanup (synchronous). Failures are logged, never raised."""
        try:
            with get_db_context() as db:
                cleanup_service = CleanupService(db)
                signups = cleanup_service.purge_expired_pending_signups()
                resets = cleanup_service.purge_expired_password_resets()
            logger.info(f"Cleanup removed {signups} expired pending signups and {resets} expired reset tokens")
        except Exception as e:
            logger.exception(f"Error during scheduled cleanup: {e}")
            # Don't re-raise - allow scheduler to continue


def get_cleanup_scheduler() -> CleanupScheduler:
    """
    Get the global cleanup scheduler instance.

    Returns:
        CleanupScheduler: The global scheduler instance
    """
    global _cleanup_scheduler
    if _cleanup_scheduler is None:
        _cleanup_scheduler = CleanupScheduler()
    return _cleanup_scheduler


async def start_cleanup_scheduler() -> None:
    """Start the global cleanup scheduler."""
    scheduler = get_cleanup_scheduler()
    await scheduler.start_scheduler()


async def stop_cleanup_scheduler() -> None:
    """Stop the global cleanup scheduler."""
    global _cleanup_scheduler
    if _cleanup_scheduler:
        await _cleanup_scheduler.stop_scheduler()
