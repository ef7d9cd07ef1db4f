import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from freightdash.config import Settings
from freightdash.errors import FreightDashError
from freightdash.precompute import DashboardService


logger = logging.getLogger(__name__)


def _run_scheduled_recompute(service: DashboardService) -> None:
    try:
        snapshot = service.recompute_all(trigger_source="scheduled")
    except FreightDashError as exc:
        logger.error(
            "scheduled recompute failed",
            extra={"error_type": type(exc).__name__, "error": str(exc)},
        )
        return
    logger.info(
        "scheduled recompute completed",
        extra={"record_count": snapshot.record_count, "computed_at": snapshot.computed_at.isoformat()},
    )


def start_scheduler(settings: Settings, service: DashboardService, *, run_now: bool = False) -> None:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        _run_scheduled_recompute,
        "cron",
        args=[service],
        hour=settings.schedule_hour_utc,
        minute=settings.schedule_minute_utc,
        id="daily_recompute",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(
        "scheduler started",
        extra={
            "schedule_hour_utc": settings.schedule_hour_utc,
            "schedule_minute_utc": settings.schedule_minute_utc,
        },
    )

    if run_now:
        _run_scheduled_recompute(service)

    scheduler.start()
