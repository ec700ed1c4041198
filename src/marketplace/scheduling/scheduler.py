"""APScheduler wiring for the background jobs.

The jobs publish on the live channel, which only reaches connected clients in
the process that owns the WebSocket hub. The API therefore runs them on a
BackgroundScheduler started in its lifespan.
"""

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from marketplace.config import get_settings
from marketplace.scheduling.jobs import (
    prune_delivery_log,
    remind_stale_pending_orders,
    run_weekly_settlement,
)

logger = structlog.get_logger(__name__)

# (job id, function, cron fields)
SCHEDULE = [
    ("weekly-settlement", run_weekly_settlement, {"day_of_week": "mon", "hour": 0, "minute": 5}),
    ("pending-reminders", remind_stale_pending_orders, {"minute": "*/5"}),
    ("prune-delivery-log", prune_delivery_log, {"hour": 2, "minute": 0}),
]


def build_scheduler(scheduler: BaseScheduler | None = None) -> BaseScheduler:
    timezone = get_settings().SCHEDULER_TIMEZONE
    scheduler = scheduler or BackgroundScheduler(timezone=timezone)
    for job_id, func, fields in SCHEDULE:
        scheduler.add_job(
            func,
            CronTrigger(timezone=timezone, **fields),
            id=job_id,
            name=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
    return scheduler


def start_scheduler() -> BaseScheduler | None:
    """Start the job scheduler in this process unless SCHEDULER_ENABLED is off."""
    if not get_settings().SCHEDULER_ENABLED:
        logger.info("Scheduler disabled for this process")
        return None

    scheduler = build_scheduler()
    scheduler.start()
    for job in scheduler.get_jobs():
        logger.info("Job scheduled", job_id=job.id, trigger=str(job.trigger))
    return scheduler
