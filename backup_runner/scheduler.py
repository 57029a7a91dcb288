from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .backup_manager import BackupRunner
from .config import Settings
from .logger import get_logger

logger = get_logger(__name__)

BACKUP_JOB_ID = "backup_cycle"


def create_scheduler(settings: Settings, runner: BackupRunner) -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone=settings.timezone)
    scheduler.add_job(
        runner.run_cycle,
        trigger=CronTrigger.from_crontab(settings.cron, timezone=settings.timezone),
        id=BACKUP_JOB_ID,
        name="Backup all databases",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info(f"Backups configured on Cron job schedule: {settings.cron}")
    return scheduler


def run(settings: Settings, runner: BackupRunner, scheduler_factory=create_scheduler) -> None:
    """
    Runs the startup cycle if requested, then blocks on the cron schedule.
    Without a schedule the function returns once the startup cycle is done.
    """
    scheduler = scheduler_factory(settings, runner) if settings.cron else None

    if settings.run_on_startup:
        logger.info("run_on_startup enabled, backing up now...")
        runner.run_cycle()

    if scheduler is None:
        if settings.run_on_startup:
            logger.info("No CRON schedule configured, exiting after the startup backup.")
        else:
            logger.warning("Neither CRON nor RUN_ON_STARTUP is set, nothing to do.")
        return

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down scheduler.")
        if scheduler.running:
            scheduler.shutdown(wait=False)
