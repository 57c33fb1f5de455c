"""
APScheduler Configuration

Background job scheduler for housekeeping jobs. Jobs run in-process on the
application's event loop and open their own database sessions.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from promohub.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE or 'UTC'
)


def start_scheduler():
    """Register jobs and start the scheduler (no-op if already running)."""
    if not scheduler.running:
        from promohub.jobs.invite_jobs import expire_stale_invites_job

        scheduler.add_job(
            expire_stale_invites_job,
            'interval',
            minutes=settings.INVITE_EXPIRY_INTERVAL_MINUTES,
            id='expire_stale_invites',
            name='Expire Stale Affiliate Invites',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: next run at {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]
