"""
Crawl Controller - Checkpointed Batch Loop

Drives the crawl one batch at a time:

1. Compute the next range [checkpoint + 1, checkpoint + batch_size]
2. Fetch it through the BatchExecutor
3. Append discoveries to the Archive
4. Advance and persist the checkpoint (also after a faulted batch)
5. Stop after N consecutive batches with no found records

The checkpoint also remembers the last id that returned a user, so periodic
re-crawls can start there and pick up users created after exhaustion.

Batches never overlap. The archive is written before the checkpoint, so a
crash between the two only causes a short range to be re-fetched on resume.
"""

import logging
import time
from enum import Enum
from typing import Optional

from apps.crawler.archive import Archive
from apps.crawler.batch import BatchExecutor
from apps.crawler.checkpoint import CheckpointStore
from utils.config import settings
from utils.schemas import BatchResult, CrawlState, CrawlSummary, UserRecord

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class CrawlController:
    """Orchestrates batches, persistence and termination for one crawl run."""

    def __init__(
        self,
        executor: BatchExecutor,
        archive: Archive,
        checkpoint: CheckpointStore,
        batch_size: Optional[int] = None,
        empty_batch_threshold: Optional[int] = None,
    ) -> None:
        """
        Initialize controller.

        Args:
            executor: Batch executor used for every range
            archive: Destination for discovered records
            checkpoint: Resume state store
            batch_size: Identifiers per batch, defaults to settings.CRAWL_BATCH_SIZE
            empty_batch_threshold: Consecutive empty batches before stopping,
                defaults to settings.CRAWL_EMPTY_BATCH_THRESHOLD
        """
        self.executor = executor
        self.archive = archive
        self.checkpoint = checkpoint
        self.batch_size = batch_size or settings.CRAWL_BATCH_SIZE
        self.empty_batch_threshold = empty_batch_threshold or settings.CRAWL_EMPTY_BATCH_THRESHOLD

        self.state = ControllerState.STOPPED
        self.consecutive_empty_batches = 0

    def next_batch(self, last_processed_id: int) -> list[int]:
        """Identifiers of the batch following the given checkpoint."""
        start = last_processed_id + 1
        return list(range(start, start + self.batch_size))

    @staticmethod
    def throughput(processed: int, elapsed_seconds: float) -> float:
        """Identifiers processed per minute."""
        if elapsed_seconds <= 0:
            return 0.0
        return processed / (elapsed_seconds / 60)

    async def run(self, rescan_from_last_found: bool = False) -> CrawlSummary:
        """
        Crawl until the identifier space looks exhausted.

        Args:
            rescan_from_last_found: Start right after the last id that returned
                a user instead of after the checkpoint. Used by periodic re-crawls,
                since new users are created inside the trailing empty batches.
                The persisted lastProcessedId never moves backwards.

        Returns:
            Summary of the run

        Raises:
            ValueError: If the checkpoint is corrupted
            OSError: If the checkpoint cannot be read or written
        """
        state = self.checkpoint.load()
        cursor = state.lastProcessedId
        last_found = state.lastFoundId

        if rescan_from_last_found and last_found is not None and last_found < cursor:
            logger.info("Rescanning from last found id %d (checkpoint at %d)", last_found, cursor)
            cursor = last_found

        initial_id = cursor
        summary = CrawlSummary(start_id=initial_id + 1, last_processed_id=state.lastProcessedId)
        started = time.monotonic()

        self.state = ControllerState.RUNNING
        self.consecutive_empty_batches = 0

        while self.state is ControllerState.RUNNING:
            batch_ids = self.next_batch(cursor)
            logger.info("Processing batch %d-%d", batch_ids[0], batch_ids[-1])

            try:
                result = await self.executor.execute(batch_ids)
                records = self._record_batch(result, summary)
                if records:
                    summary.appended += self.archive.append(records)
                    last_found = max([r.id for r in records] + [last_found or 0])
            except Exception as e:
                # Checkpoint still advances past a faulted batch
                summary.faulted_batches += 1
                logger.error(
                    "Batch error",
                    extra={"start_id": batch_ids[0], "end_id": batch_ids[-1], "error": str(e)},
                    exc_info=True,
                )

            cursor = batch_ids[-1]
            state = CrawlState(
                lastProcessedId=max(cursor, state.lastProcessedId),
                lastFoundId=last_found,
            )
            self.checkpoint.save(state)
            summary.batches += 1
            summary.last_processed_id = state.lastProcessedId

            if self.consecutive_empty_batches >= self.empty_batch_threshold:
                logger.info(
                    "No users found in last %d batches. Stopping.",
                    self.consecutive_empty_batches,
                )
                self.state = ControllerState.STOPPED

            elapsed = time.monotonic() - started
            summary.elapsed_seconds = elapsed
            summary.ids_per_minute = self.throughput(cursor - initial_id, elapsed)
            logger.info(
                "Checkpoint at %d (%.1f IDs/min)",
                state.lastProcessedId, summary.ids_per_minute,
            )

        summary.last_found_id = last_found
        logger.info(
            "Crawl stopped: ids=%d-%d, batches=%d, found=%d, appended=%d, absent=%d, "
            "failed=%d, faulted_batches=%d, elapsed=%.1fs",
            summary.start_id, summary.last_processed_id, summary.batches, summary.found,
            summary.appended, summary.absent, summary.failed, summary.faulted_batches,
            summary.elapsed_seconds,
        )
        return summary

    def _record_batch(self, result: BatchResult, summary: CrawlSummary) -> list[UserRecord]:
        records = result.records
        found = len(records)
        failed_ids = result.failed_ids

        summary.found += found
        summary.absent += len(result.absent_ids)
        summary.failed += len(failed_ids)

        if found:
            self.consecutive_empty_batches = 0
        else:
            self.consecutive_empty_batches += 1

        logger.info(
            "Found %d users in current batch (absent=%d, failed=%d, empty_streak=%d)",
            found, len(result.absent_ids), len(failed_ids), self.consecutive_empty_batches,
        )
        if failed_ids:
            logger.warning("IDs dropped after exhausting retries: %s", failed_ids)

        return records
