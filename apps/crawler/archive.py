"""
Archive - Deduplicated User Record Store

Keeps every discovered user in a single pretty-printed JSON array, in append
order. Records are unique by lowercased address and are never modified once
written. Each update rewrites the whole file through a temporary sibling and
an atomic rename, so readers never observe a partial file.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Sequence

import orjson

from utils.config import settings
from utils.files import atomic_write_bytes
from utils.schemas import UserRecord

logger = logging.getLogger(__name__)


class Archive:
    """Append-only, address-deduplicated JSON archive of user records."""

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initialize archive.

        Args:
            path: Archive file path, defaults to settings.ARCHIVE_FILE
        """
        self.path = Path(path or settings.ARCHIVE_FILE)

    def load(self) -> list[dict[str, Any]]:
        """
        Load the persisted collection.

        Missing, empty or unparseable files are treated as an empty archive.

        Returns:
            Existing records as plain dicts, in file order
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.info("No existing archive file, starting new one: %s", self.path)
            return []
        except OSError as e:
            logger.warning(
                "Failed to read archive, starting fresh",
                extra={"file_path": str(self.path), "error": str(e)},
            )
            return []

        if not raw.strip():
            logger.info("Empty archive file, starting fresh: %s", self.path)
            return []

        try:
            records = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.warning(
                "Invalid JSON in archive, starting fresh",
                extra={"file_path": str(self.path), "error": str(e)},
            )
            return []

        if not isinstance(records, list):
            logger.warning(
                "Archive is not a JSON array, starting fresh",
                extra={"file_path": str(self.path), "type": type(records).__name__},
            )
            return []

        logger.debug("Loaded existing users: %d", len(records))
        return records

    @staticmethod
    def _known_addresses(records: Sequence[dict[str, Any]]) -> set[str]:
        return {
            rec["address"].lower()
            for rec in records
            if isinstance(rec, dict) and isinstance(rec.get("address"), str)
        }

    def append(self, new_records: Sequence[UserRecord]) -> int:
        """
        Append records whose address is not already archived.

        Args:
            new_records: Records discovered in the current batch

        Returns:
            Number of records actually written

        Raises:
            OSError: If the updated archive cannot be written
        """
        if not new_records:
            return 0

        records = self.load()
        existing = self._known_addresses(records)
        unique = [rec for rec in new_records if rec.dedup_key not in existing]

        if not unique:
            logger.info("All %d users were duplicates", len(new_records))
            return 0

        records.extend(rec.model_dump() for rec in unique)
        atomic_write_bytes(self.path, orjson.dumps(records, option=orjson.OPT_INDENT_2))

        logger.info(
            "Saved %d new users (batch had %d total, archive now %d)",
            len(unique), len(new_records), len(records),
        )
        return len(unique)
