"""
Scheduler service for the periodic upstream sync using APScheduler.
"""
import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from usage_monitor.core.errors import UsageMonitorError
from usage_monitor.services.cache import ResponseCache
from usage_monitor.services.ingestion import CLIProxyClient, sync_from_upstream

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "usage_sync"

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(timezone="UTC")
    return _scheduler


def run_scheduled_sync(
    session_factory: Callable[[], Session],
    client_factory: Callable[[], CLIProxyClient],
    cache: Optional[ResponseCache] = None,
) -> None:
    """Job body: one sync attempt. Failures are logged and left for the next tick."""
    db = session_factory()
    try:
        sync_from_upstream(db, client_factory(), cache=cache)
    except UsageMonitorError as e:
        logger.error(f"Scheduled sync failed: {e}")
    except Exception as e:
        logger.error(f"Unexpected error in scheduled sync: {e}", exc_info=True)
    finally:
        db.close()


def build_trigger(cron_expression: str) -> Optional[CronTrigger]:
    """Parse a 5-field cron expression (UTC); None when it is invalid."""
    try:
        return CronTrigger.from_crontab(cron_expression, timezone="UTC")
    except ValueError as e:
        logger.error(f"Invalid sync cron expression '{cron_expression}': {e}")
        return None


def start_scheduler(
    session_factory: Callable[[], Session],
    client_factory: Callable[[], CLIProxyClient],
    cron_expression: str,
    cache: Optional[ResponseCache] = None,
) -> bool:
    """Start the scheduler with the sync job. Returns False when the job could not be scheduled."""
    trigger = build_trigger(cron_expression)
    if trigger is None:
        return False

    scheduler = get_scheduler()
    scheduler.add_job(
        run_scheduled_sync,
        trigger=trigger,
        args=[session_factory, client_factory, cache],
        id=SYNC_JOB_ID,
        name="Upstream usage sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
        logger.info(f"✅ Scheduler started (usage sync at '{cron_expression}' UTC)")
    else:
        logger.debug("Scheduler already running")
    return True


def stop_scheduler():
    """Stop the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None
