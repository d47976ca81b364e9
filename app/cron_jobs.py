import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from datetime import datetime, timezone

from config import settings
from db import db, ensure_summary_index
from utils.app_utils import email_configured, send_email_async
from utils.reminder_utils import send_timer_reminders
from utils.summary_utils import generate_monthly_summaries

logger = logging.getLogger(__name__)

# Create a shared scheduler instance
scheduler = AsyncIOScheduler(timezone="UTC")

MONTHLY_SUMMARY_JOB_ID = "monthly-cost-summaries"
TIMER_REMINDER_JOB_ID = "timer-reminders"


async def run_monthly_summaries(database=None):
    """
    Scheduled wrapper around generate_monthly_summaries.
    The unique summary index is (re)created first; if that fails the run is
    skipped and retried on the next tick. Failures are logged and left for the
    next tick; a partial run is completed by the next one because inserts are
    keyed by summary tuple.
    """
    database = database if database is not None else db
    try:
        await ensure_summary_index(database)
        inserted = await generate_monthly_summaries(database, datetime.now(timezone.utc))
        logger.info("Monthly cost summaries generated successfully (%s new)", inserted)
        return inserted
    except Exception as e:
        logger.exception("Error during monthly cost summary generation: %s", e)
        return None


async def run_timer_reminders(database=None, send=send_email_async):
    database = database if database is not None else db
    if send is send_email_async and not email_configured():
        logger.debug("SMTP is not configured, skipping timer reminders")
        return None

    try:
        return await send_timer_reminders(database, datetime.now(timezone.utc), send=send)
    except Exception as e:
        logger.exception("Error sending timer reminder emails: %s", e)
        return None


def schedule_jobs(job_scheduler=None):
    job_scheduler = job_scheduler if job_scheduler is not None else scheduler

    # Runs once immediately, then on the interval. max_instances keeps a slow
    # run from overlapping the next tick.
    job_scheduler.add_job(
        run_monthly_summaries,
        "interval",
        hours=settings.SUMMARY_INTERVAL_HOURS,
        id=MONTHLY_SUMMARY_JOB_ID,
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    job_scheduler.add_job(
        run_timer_reminders,
        "interval",
        minutes=settings.TIMER_REMINDER_INTERVAL_MINUTES,
        id=TIMER_REMINDER_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
