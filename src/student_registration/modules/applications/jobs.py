"""
Student Applications Background Jobs

Scheduled housekeeping for the submission workflow:
1. Purge expired upload sessions

Expired sessions are already refused by validation; the purge only keeps
the table small. The job is idempotent, opens its own database session and
can be triggered manually through the debug endpoints in development.
"""

import logging
from datetime import UTC, datetime
from functools import partial
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from student_registration.core.config import Settings
from student_registration.core.database import async_session_maker
from student_registration.core.scheduler import register_job
from student_registration.modules.applications.dependencies import build_session_manager

logger = logging.getLogger(__name__)

# Job IDs for registration and manual triggering
JOB_ID_PURGE_UPLOAD_SESSIONS = "applications_purge_upload_sessions"


async def purge_expired_upload_sessions(settings: Settings) -> dict[str, Any]:
    """
    Delete every upload session whose expiry has passed.

    Args:
        settings: Settings used to build the session manager

    Returns:
        Dict with the number of deleted sessions and the cutoff used
    """
    now = datetime.now(UTC)
    sessions = build_session_manager(settings)

    async with async_session_maker() as db:
        try:
            deleted = await sessions.purge_expired(db, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(f"Purged {deleted} expired upload session(s) older than {now.isoformat()}")

    return {"deleted": deleted, "cutoff": now.isoformat()}


def register_application_jobs(settings: Settings) -> None:
    """
    Register the application background jobs with the scheduler.

    Call during startup, before the scheduler is started.
    """
    interval = settings.session_purge_interval_minutes

    register_job(
        job_id=JOB_ID_PURGE_UPLOAD_SESSIONS,
        func=partial(purge_expired_upload_sessions, settings),
        trigger=IntervalTrigger(minutes=interval),
    )
    logger.info(f"Registered job: {JOB_ID_PURGE_UPLOAD_SESSIONS} (interval: {interval} minutes)")
