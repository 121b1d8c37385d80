"""
Crawl Scheduler - One-Shot and Cron Execution

Manages crawl runs using APScheduler.

Features:
- Run-once mode (default): crawl until the identifier space is exhausted, then exit
- Cron-based re-crawls (configurable via CRAWL_SCHEDULE_CRON), restarting after the
  last id that returned a user so newly created users are picked up
- Graceful shutdown on SIGINT/SIGTERM in scheduled mode

Usage:
    # Run once and exit
    python -m apps.crawler

    # Re-crawl on a schedule
    CRAWL_SCHEDULE_CRON="0 * * * *" python -m apps.crawler
"""

import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.crawler.archive import Archive
from apps.crawler.batch import BatchExecutor
from apps.crawler.checkpoint import CheckpointStore
from apps.crawler.controller import CrawlController
from apps.crawler.fetcher import RecordFetcher, build_client
from utils.config import settings
from utils.files import ensure_dir
from utils.logging import setup_logging
from utils.schemas import CrawlSummary

logger = logging.getLogger(__name__)


async def run_crawl(rescan_from_last_found: bool = False) -> CrawlSummary:
    """
    Wire up the pipeline and crawl to natural termination.

    Args:
        rescan_from_last_found: Resume after the last id that returned a user
            rather than after the checkpoint (periodic re-crawls)

    Returns:
        Summary of the run

    Raises:
        ValueError: If the checkpoint is corrupted
        OSError: If the data directory cannot be created
    """
    ensure_dir(settings.DATA_DIR)

    async with build_client() as client:
        controller = CrawlController(
            executor=BatchExecutor(RecordFetcher(client)),
            archive=Archive(),
            checkpoint=CheckpointStore(),
        )
        return await controller.run(rescan_from_last_found=rescan_from_last_found)


class CrawlScheduler:
    """
    Runs the crawl once, or repeatedly on a cron schedule.

    Scheduled runs start with an immediate crawl and then re-crawl on every
    trigger, each time from the last id that returned a user, so users created
    after the previous run stopped are not skipped. Runs never overlap.
    A fatal error (corrupted checkpoint, unusable storage) ends scheduled mode
    and is re-raised from start().
    """

    JOB_ID = "crawl_job"

    def __init__(self, run_once: bool = True, cron: Optional[str] = None) -> None:
        """
        Initialize scheduler.

        Args:
            run_once: If True, crawl once and exit
            cron: Crontab expression for scheduled mode, defaults to settings.CRAWL_SCHEDULE_CRON
        """
        self.run_once = run_once
        self.cron = cron if cron is not None else settings.CRAWL_SCHEDULE_CRON
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()
        self.last_summary: CrawlSummary | None = None
        self.fatal_error: BaseException | None = None
        self.runs = 0

        if not run_once and not self.cron:
            raise ValueError("Scheduled mode requires a cron expression (CRAWL_SCHEDULE_CRON)")

        logger.info(
            "CrawlScheduler initialized",
            extra={"run_once": run_once, "cron_schedule": self.cron},
        )

    async def execute_crawl(self) -> None:
        """Execute one crawl run to termination."""
        self.runs += 1
        rescan = not self.run_once
        logger.info("Starting crawl run %d (rescan_from_last_found=%s)", self.runs, rescan)

        try:
            self.last_summary = await run_crawl(rescan_from_last_found=rescan)
        except (ValueError, OSError) as e:
            logger.error("Crawl run %d failed fatally: %s", self.runs, e, exc_info=True)
            self.fatal_error = e
            self.shutdown_event.set()
            if self.run_once:
                raise
            return

        logger.info(
            "Crawl run %d completed",
            self.runs,
            extra={
                "start_id": self.last_summary.start_id,
                "last_processed_id": self.last_summary.last_processed_id,
                "last_found_id": self.last_summary.last_found_id,
                "appended": self.last_summary.appended,
            },
        )

        if self.run_once:
            self.shutdown_event.set()

    def request_shutdown(self, signum: int) -> None:
        """Stop waiting for further triggers; an in-flight run finishes first."""
        logger.info("Received %s, stopping after the current run", signal.Signals(signum).name)
        self.shutdown_event.set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to request_shutdown on the running loop."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self.request_shutdown, signum)

    async def start(self) -> None:
        """
        Crawl once, or crawl now and then on every cron trigger until shutdown.

        Raises:
            ValueError: If a run hits a corrupted checkpoint
            OSError: If a run cannot access its storage
        """
        if self.run_once:
            # Default signal handling: an in-flight batch is not cancelled cooperatively
            logger.info("Running in run-once mode")
            await self.execute_crawl()
            return

        logger.info("Running in scheduled mode: %s", self.cron)
        self.install_signal_handlers()

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.execute_crawl,
            trigger=CronTrigger.from_crontab(self.cron),
            id=self.JOB_ID,
            name="Periodic User Crawl",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

        await self.shutdown_event.wait()

        logger.info("Shutting down scheduler after %d runs", self.runs)
        self.scheduler.shutdown(wait=True)

        if self.fatal_error is not None:
            raise self.fatal_error


async def main() -> None:
    """Main entry point for the crawler."""
    setup_logging(level=settings.LOG_LEVEL, format_type=settings.LOG_FORMAT)

    run_once = (
        not settings.CRAWL_SCHEDULE_CRON
        or os.getenv("RUN_ONCE", "false").lower() in ("true", "1", "yes")
    )

    scheduler = CrawlScheduler(run_once=run_once)

    try:
        await scheduler.start()
    except Exception as e:
        logger.error("Crawler failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


def cli() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
