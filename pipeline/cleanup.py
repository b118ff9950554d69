import os
import time
from pathlib import Path

from utils.logging import get_logger

logger = get_logger("pipeline.cleanup")

DEFAULT_MAX_AGE_SECONDS = 7 * 24 * 60 * 60


def cleanup_old_files(
    output_dir: str | Path,
    max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
    now: float | None = None,
) -> int:
    """Delete files in output_dir last modified more than max_age ago.

    Only regular files directly inside output_dir are considered. A file
    that cannot be stat'ed or removed is logged and skipped. A missing
    directory deletes nothing.

    Returns:
        Number of files deleted.
    """
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return 0

    threshold = (time.time() if now is None else now) - max_age_seconds
    deleted = 0

    with os.scandir(output_dir) as entries:
        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if entry.stat(follow_symlinks=False).st_mtime < threshold:
                    os.unlink(entry.path)
                    deleted += 1
            except OSError as e:
                logger.warning(
                    f"Could not remove {entry.path}: {e}",
                    extra={"context": {"path": entry.path}},
                )

    logger.info(
        f"Removed {deleted} optimized files older than {max_age_seconds}s",
        extra={"context": {"output_dir": str(output_dir), "deleted": deleted}},
    )
    return deleted
