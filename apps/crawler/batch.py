"""
Batch Executor - Concurrent In-Batch Fetching

Fans a contiguous range of identifiers out to the RecordFetcher and waits for
every outcome. A failing fetch never cancels its siblings.
"""

import asyncio
import logging
from typing import Sequence

from apps.crawler.fetcher import RecordFetcher
from utils.schemas import BatchResult, FetchOutcome, UserRecord

logger = logging.getLogger(__name__)


class BatchExecutor:
    """Runs all fetches of a batch concurrently with settle-all semantics."""

    def __init__(self, fetcher: RecordFetcher) -> None:
        self.fetcher = fetcher

    async def execute(self, ids: Sequence[int]) -> BatchResult:
        """
        Fetch every identifier concurrently and collect all outcomes.

        Args:
            ids: Identifiers in the batch

        Returns:
            BatchResult with one outcome per identifier
        """
        results = await asyncio.gather(
            *(self.fetcher.fetch(user_id) for user_id in ids),
            return_exceptions=True,
        )

        outcomes: list[FetchOutcome] = []
        for user_id, result in zip(ids, results):
            if isinstance(result, FetchOutcome):
                outcomes.append(result)
                continue

            if isinstance(result, asyncio.CancelledError):
                raise result

            # Unexpected errors escaping the fetcher still settle as failures
            logger.error(
                "Unexpected error fetching ID %d",
                user_id,
                exc_info=(type(result), result, result.__traceback__),
            )
            outcomes.append(FetchOutcome.failed(user_id, error=repr(result), attempts=1))

        return BatchResult(ids=list(ids), outcomes=outcomes)

    async def run(self, ids: Sequence[int]) -> list[UserRecord]:
        """
        Fetch a batch and return only the found records.

        Absent and failed identifiers are dropped here; use execute() to
        tell them apart.
        """
        result = await self.execute(ids)
        return result.records
