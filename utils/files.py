"""
File System Utilities

Directory creation and crash-safe file replacement shared by the checkpoint
and archive stores.
"""

import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_dir(path: PathLike) -> Path:
    """
    Ensure a directory exists, creating it (and parents) if needed.

    Args:
        path: Directory path

    Returns:
        The directory as a Path

    Raises:
        OSError: If the directory cannot be created
    """
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def temp_path_for(path: PathLike) -> Path:
    """Sibling temporary path used while a replacement is being written."""
    target = Path(path)
    return target.with_name(target.name + ".tmp")


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """
    Replace a file's contents atomically.

    Writes to a temporary sibling, fsyncs it, then renames it over the target.
    Readers see either the previous file or the new one, never a partial write.

    Args:
        path: Destination file path
        data: Complete new file contents

    Raises:
        OSError: If writing or renaming fails (the destination is left untouched)
    """
    target = Path(path)
    ensure_dir(target.parent)
    tmp = temp_path_for(target)

    with open(tmp, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp, target)
    logger.debug("Replaced file atomically: %s (%d bytes)", target, len(data))
