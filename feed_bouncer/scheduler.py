"""
Scheduler for periodic feed refreshes.
Runs the refresh cycle on an interval with APScheduler's BackgroundScheduler.
"""
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feed_bouncer.config_manager import ConfigManager

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "refresh_feeds"


class RefreshScheduler:
    """
    Manages scheduled execution of the refresh cycle.
    """

    def __init__(self, refresh_job_func: Callable[[], Optional[Dict[str, Any]]],
                 interval_minutes: float = 60, run_on_start: bool = True):
        """
        Initialize the scheduler.

        Args:
            refresh_job_func: Callable running one refresh cycle.
                              Should return a dictionary of stats or None.
            interval_minutes: Minutes between two refreshes
            run_on_start: Run the first refresh as soon as the scheduler starts
        """
        self.refresh_job_func = refresh_job_func
        self.interval_minutes = interval_minutes
        self.run_on_start = run_on_start
        self.scheduler = BackgroundScheduler()

        logger.debug(f"RefreshScheduler initialized with interval: {interval_minutes} minutes")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def _run_job_safely(self):
        """
        Run the job function with error handling.

        A failing cycle is logged and the next tick runs as usual.
        """
        try:
            logger.info("Executing scheduled refresh job...")
            start_time = time.time()

            result = self.refresh_job_func()

            duration = time.time() - start_time
            logger.info(f"Scheduled job completed in {duration:.2f} seconds")

            if isinstance(result, dict):
                logger.info(
                    f"Job summary: {result.get('new_items', 0)} new items from "
                    f"{result.get('feeds_fetched', 0)}/{result.get('feeds_planned', 0)} feeds"
                )

        except Exception as e:
            logger.error(f"Error executing scheduled job: {e}", exc_info=True)

    def start(self):
        """
        Start the scheduler in its background thread.
        """
        if self.running:
            logger.warning("Scheduler is already running")
            return

        next_run_time = datetime.now() if self.run_on_start else None
        job_kwargs = {'next_run_time': next_run_time} if next_run_time else {}
        self.scheduler.add_job(
            self._run_job_safely,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=REFRESH_JOB_ID,
            name="Refresh feeds",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_kwargs,
        )
        self.scheduler.start()

        logger.info(f"Scheduler started, refreshing every {self.interval_minutes} minutes")

    def stop(self, wait: bool = True):
        """
        Stop the scheduler, letting a running refresh finish when `wait` is set.
        """
        if not self.running:
            logger.warning("Scheduler is not running")
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler stopped")

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(REFRESH_JOB_ID)
        if job is None:
            return None
        return job.next_run_time

    def get_status(self) -> dict:
        """
        Get scheduler status information.

        Returns:
            Dictionary with scheduler status
        """
        next_run = self.get_next_run_time()
        return {
            "running": self.running,
            "interval_minutes": self.interval_minutes,
            "next_run": next_run.isoformat() if next_run else None,
            "jobs_count": len(self.scheduler.get_jobs()),
        }

    def run_now(self):
        """
        Execute the refresh job immediately (outside of schedule).
        """
        logger.info("Running refresh job immediately...")
        self._run_job_safely()


def initialize_scheduler(config_manager: ConfigManager,
                         refresh_job_func: Callable[[], Optional[Dict[str, Any]]]) -> Optional[RefreshScheduler]:
    """
    Initializes the scheduler based on the application settings.

    Args:
        config_manager: The ConfigManager instance with loaded settings.
        refresh_job_func: The function to call for each scheduled refresh.

    Returns:
        A configured RefreshScheduler, or None if scheduling is disabled.
    """
    if not config_manager.get_config_value("schedule.enabled", True):
        logger.warning("Scheduling is disabled in settings.")
        return None

    interval = config_manager.get_config_value("schedule.interval_minutes", 60)
    run_on_start = config_manager.get_config_value("schedule.run_on_start", True)

    scheduler = RefreshScheduler(refresh_job_func, interval_minutes=interval, run_on_start=run_on_start)
    logger.info(f"Scheduler initialized with a {interval} minute interval.")
    return scheduler
