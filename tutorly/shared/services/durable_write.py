from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def fsync_dir(dir_path: Path) -> None:
    """Best-effort directory fsync so renames and unlinks survive a crash."""
    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY
    try:
        fd = os.open(str(dir_path), flags)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        # Not every filesystem supports fsync on a directory handle.
        logger.debug("Directory fsync unsupported for %s", dir_path)
    finally:
        os.close(fd)


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write *content* to a temp file beside *path*, then rename it into place.

    Readers see either the old file or the complete new one, never a
    partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
