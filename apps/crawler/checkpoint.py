"""
Checkpoint Store - Crawl Resume State

Persists the "last processed identifier" that anchors resumability, plus the
last identifier that returned a user once one has been found. The checkpoint
file is pretty-printed JSON and is fully rewritten on each save:

    {
      "lastProcessedId": 410,
      "lastFoundId": 150
    }
"""

import logging
from pathlib import Path
from typing import Optional

import orjson
from pydantic import ValidationError

from utils.config import settings
from utils.files import atomic_write_bytes, ensure_dir
from utils.schemas import CrawlState

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Loads and saves the crawl checkpoint."""

    def __init__(self, path: Optional[str] = None, initial_id: Optional[int] = None) -> None:
        """
        Initialize checkpoint store.

        Args:
            path: Checkpoint file path, defaults to settings.STATE_FILE
            initial_id: Seed value for a first run, defaults to settings.CRAWL_INITIAL_ID
        """
        self.path = Path(path or settings.STATE_FILE)
        self.initial_id = settings.CRAWL_INITIAL_ID if initial_id is None else initial_id
        self._last_saved: Optional[int] = None

    def load(self) -> CrawlState:
        """
        Load the checkpoint, creating and persisting the default on first run.

        Returns:
            Current crawl state

        Raises:
            ValueError: If the checkpoint exists but is unreadable or invalid
            OSError: If the file or its directory cannot be accessed
        """
        ensure_dir(self.path.parent)

        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            state = CrawlState(lastProcessedId=self.initial_id)
            logger.info("Creating new state file: path=%s, lastProcessedId=%d", self.path, state.lastProcessedId)
            self.save(state)
            return state

        try:
            state = CrawlState.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            error_msg = f"Corrupted checkpoint file: {self.path} - {str(e)}"
            logger.error(error_msg)
            raise ValueError(error_msg) from e

        self._last_saved = state.lastProcessedId
        logger.info("Resuming from checkpoint: path=%s, lastProcessedId=%d", self.path, state.lastProcessedId)
        return state

    def save(self, state: CrawlState) -> None:
        """
        Overwrite the checkpoint durably.

        Args:
            state: New crawl state

        Raises:
            ValueError: If the new value would move the checkpoint backwards
            OSError: If the file cannot be written
        """
        if self._last_saved is not None and state.lastProcessedId < self._last_saved:
            raise ValueError(
                f"Checkpoint cannot move backwards: {state.lastProcessedId} < {self._last_saved}"
            )

        atomic_write_bytes(
            self.path,
            orjson.dumps(state.model_dump(exclude_none=True), option=orjson.OPT_INDENT_2),
        )
        self._last_saved = state.lastProcessedId
        logger.debug("Checkpoint saved: lastProcessedId=%d", state.lastProcessedId)
