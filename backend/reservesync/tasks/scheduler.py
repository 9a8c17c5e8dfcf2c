"""Background task scheduler for reservation syncs and monthly ticket grants."""

import logging
import time
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from reservesync.config import get_settings
from reservesync.database import async_session_maker
from reservesync.exceptions import MergeWriteError, TransientFetchError
from reservesync.schemas.sync import SyncOutcome
from reservesync.services.ledger import LedgerCoordinator
from reservesync.services.ledger_store import SqlLedgerStore
from reservesync.services.sync_orchestrator import SyncWindowKind, build_sync_orchestrator, window_for
from reservesync.services.sync_runs import SyncRunLog

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


def schedule_resume(date_from: date, date_to: date) -> None:
    """Run a suspended window again after the resume delay."""
    if scheduler is None:
        logger.warning(f"Scheduler not running; {date_from}..{date_to} resumes on its next cron run")
        return

    run_at = datetime.now(ZoneInfo(settings.timezone)) + timedelta(
        minutes=settings.sync_resume_delay_minutes
    )
    scheduler.add_job(
        sync_window_job,
        trigger=DateTrigger(run_date=run_at),
        args=[date_from, date_to],
        id=f"resume_sync_{date_from.isoformat()}_{date_to.isoformat()}",
        name=f"Resume reservation sync {date_from}..{date_to}",
        replace_existing=True,
    )
    logger.info(f"Resume of {date_from}..{date_to} scheduled at {run_at.isoformat()}")


async def record_sync_run(
    sync_type: str,
    date_from: date,
    date_to: date,
    started_at: datetime,
    execution_ms: int,
    outcome: SyncOutcome | None,
    error: Exception | None,
) -> None:
    """Store the metrics of a sync job in a session of its own."""
    try:
        async with async_session_maker() as db:
            await SyncRunLog(db).record(
                sync_type, date_from, date_to, started_at, execution_ms, outcome=outcome, error=error
            )
    except Exception as e:
        logger.error(f"Failed to record {sync_type} sync run: {e}", exc_info=True)


async def sync_window_job(
    date_from: date, date_to: date, sync_type: str = "resume"
) -> SyncOutcome | None:
    """
    Background job to sync one reservation window.

    Suspended runs and runs that failed with a transient fetch or merge error
    are queued to resume the same window; fatal errors are not retried.
    """
    logger.info(f"Starting {sync_type} reservation sync {date_from}..{date_to}")
    started_at = datetime.now(UTC)
    started = time.monotonic()
    outcome: SyncOutcome | None = None
    error: Exception | None = None

    try:
        async with async_session_maker() as db:
            orchestrator = build_sync_orchestrator(db, settings)
            outcome = await orchestrator.sync_window(date_from, date_to)
    except (TransientFetchError, MergeWriteError) as e:
        error = e
        logger.error(f"Reservation sync {date_from}..{date_to} failed, will resume: {e}", exc_info=True)
        schedule_resume(date_from, date_to)
    except Exception as e:
        error = e
        logger.error(f"Reservation sync {date_from}..{date_to} failed: {e}", exc_info=True)

    execution_ms = int((time.monotonic() - started) * 1000)
    await record_sync_run(sync_type, date_from, date_to, started_at, execution_ms, outcome, error)

    if outcome is None:
        return None

    if outcome.complete:
        logger.info(f"Reservation sync complete: {outcome.synced_count} records in {execution_ms}ms")
    else:
        logger.info(f"Reservation sync suspended at offset {outcome.offset}")
        schedule_resume(date_from, date_to)
    return outcome


async def scheduled_sync_job(kind: SyncWindowKind) -> SyncOutcome | None:
    """Sync the window of a daily, weekly or monthly run."""
    today = datetime.now(ZoneInfo(settings.timezone)).date()
    date_from, date_to = window_for(kind, today)
    return await sync_window_job(date_from, date_to, sync_type=kind.value)


async def monthly_grant_job() -> None:
    """Background job to grant every company its plan tickets for the new month."""
    logger.info("Starting monthly ticket grant")
    try:
        async with async_session_maker() as db:
            coordinator = LedgerCoordinator(SqlLedgerStore(db), settings)
            count = await coordinator.grant_monthly()
            logger.info(f"Monthly ticket grant complete: {count} companies")
    except Exception as e:
        logger.error(f"Monthly ticket grant failed: {e}", exc_info=True)


def setup_scheduler() -> AsyncIOScheduler:
    """Set up and start the background task scheduler."""
    global scheduler

    tz = ZoneInfo(settings.timezone)
    scheduler = AsyncIOScheduler(timezone=tz)

    # Daily: last week through next week
    scheduler.add_job(
        scheduled_sync_job,
        trigger=CronTrigger(hour=settings.daily_sync_hour, minute=0, timezone=tz),
        args=[SyncWindowKind.DAILY],
        id="sync_reservations_daily",
        name="Sync reservations (daily window)",
        replace_existing=True,
    )

    # Weekly on Sunday: last month through next month
    scheduler.add_job(
        scheduled_sync_job,
        trigger=CronTrigger(day_of_week="sun", hour=settings.weekly_sync_hour, minute=0, timezone=tz),
        args=[SyncWindowKind.WEEKLY],
        id="sync_reservations_weekly",
        name="Sync reservations (weekly window)",
        replace_existing=True,
    )

    # Monthly on the 1st: the next three months
    scheduler.add_job(
        scheduled_sync_job,
        trigger=CronTrigger(day=1, hour=settings.monthly_sync_hour, minute=0, timezone=tz),
        args=[SyncWindowKind.MONTHLY],
        id="sync_reservations_monthly",
        name="Sync reservations (monthly window)",
        replace_existing=True,
    )

    scheduler.add_job(
        monthly_grant_job,
        trigger=CronTrigger(day=1, hour=settings.monthly_grant_hour, minute=0, timezone=tz),
        id="grant_monthly_tickets",
        name="Grant monthly plan tickets",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")

    return scheduler


def shutdown_scheduler() -> None:
    """Shut down the scheduler gracefully."""
    global scheduler

    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
        scheduler = None
