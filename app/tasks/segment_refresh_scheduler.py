"""Segment Refresh Scheduler - periodic re-materialization of auto-update segments.

Contact edits do not trigger a refresh on their own. When enabled
(SEGMENT_SCHEDULER_ENABLED), this job re-evaluates every active auto-update
segment on a fixed interval so memberships catch up with contact changes.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from app.config import settings
from app.database import async_session_maker
from app.models.contact_segment import ContactSegment
from app.services.segments.materializer import SegmentMaterializer

logger = logging.getLogger(__name__)

JOB_ID = "segment_membership_refresh"

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler()
    return scheduler


async def refresh_auto_update_segments(session_factory=None) -> dict:
    """
    Main job: refresh every active segment with is_auto_update set.

    A failing segment is logged and counted; the remaining segments are
    still refreshed.
    """
    session_factory = session_factory or async_session_maker
    logger.info("Starting scheduled segment refresh...")
    refreshed = 0
    errors = 0

    try:
        async with session_factory() as db:
            result = await db.execute(
                select(ContactSegment.id).where(
                    ContactSegment.is_active == True,  # noqa: E712
                    ContactSegment.is_auto_update == True,  # noqa: E712
                    ContactSegment.conditions.isnot(None),
                ).order_by(ContactSegment.id)
            )
            segment_ids = [row[0] for row in result.all()]

            logger.info(f"Found {len(segment_ids)} auto-update segments to refresh")

            materializer = SegmentMaterializer(db)
            for segment_id in segment_ids:
                try:
                    refresh = await materializer.refresh_segment_membership(segment_id)
                    if not refresh.skipped:
                        refreshed += 1
                except Exception as e:
                    errors += 1
                    logger.error(f"Error refreshing segment {segment_id}: {e}", exc_info=True)

    except Exception as e:
        logger.error(f"Fatal error in segment refresh: {e}", exc_info=True)
        errors += 1

    logger.info(f"Segment refresh complete. Refreshed: {refreshed}, Errors: {errors}")
    return {"refreshed": refreshed, "errors": errors}


def start_segment_refresh_scheduler():
    """Start the scheduler with the periodic refresh job."""
    global scheduler

    scheduler = get_scheduler()

    scheduler.add_job(
        refresh_auto_update_segments,
        IntervalTrigger(minutes=settings.SEGMENT_REFRESH_INTERVAL_MINUTES),
        id=JOB_ID,
        name="Refresh auto-update segment membership",
        replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()
        logger.info("Segment refresh scheduler started")
        logger.info("Jobs scheduled:")
        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: {job.trigger}")


def stop_segment_refresh_scheduler():
    """Stop the scheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Segment refresh scheduler stopped")
    scheduler = None


async def run_segment_refresh_now(session_factory=None):
    """Manually trigger the refresh job (for testing/admin use)."""
    logger.info("Manual segment refresh triggered")
    summary = await refresh_auto_update_segments(session_factory)
    return {"status": "completed", "message": "Segment refresh completed", **summary}
