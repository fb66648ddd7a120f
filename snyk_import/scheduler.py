import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from sqlalchemy.orm import Session, sessionmaker

from snyk_import.config import Settings
from snyk_import.pipeline import ImportPipeline


logger = logging.getLogger(__name__)


def _run_daily_import(settings: Settings, session_factory: sessionmaker[Session]) -> None:
    try:
        summary = ImportPipeline(settings, session_factory).run()
    except Exception:
        logger.exception("scheduled import run failed")
        return

    logger.info(
        "scheduled import run completed",
        extra={
            "repositories": summary.repositories,
            "outcomes": summary.outcomes,
            "imports_failed": summary.imports_failed,
            "write_errors": summary.write_errors,
        },
    )


def start_scheduler(settings: Settings, session_factory: sessionmaker[Session], *, run_now: bool = False) -> None:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        _run_daily_import,
        "cron",
        args=[settings, session_factory],
        hour=settings.schedule_hour_utc,
        minute=settings.schedule_minute_utc,
        id="daily_snyk_import",
        replace_existing=True,
        max_instances=1,
    )

    logger.info(
        "scheduler started",
        extra={
            "schedule_hour_utc": settings.schedule_hour_utc,
            "schedule_minute_utc": settings.schedule_minute_utc,
        },
    )

    if run_now:
        _run_daily_import(settings, session_factory)

    scheduler.start()
