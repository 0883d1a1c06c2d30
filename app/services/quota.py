"""
Listing Image Service - Quota Guard
Aggregate size check of the listings directory before accepting uploads
"""
import enum
import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class QuotaStatus(str, enum.Enum):
    """Outcome of a quota check."""
    OK = "ok"
    EXCEEDED = "exceeded"


def directory_size(directory: Union[str, Path]) -> int:
    """
    Sum the sizes of regular files directly inside a directory.

    Subdirectories are not descended into. A missing directory counts as
    empty. The scan blocks for its full duration; callers on the event loop
    should run it in a thread.
    """
    total = 0
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                try:
                    if entry.is_file(follow_symlinks=False):
                        total += entry.stat(follow_symlinks=False).st_size
                except FileNotFoundError:
                    # Removed between listing and stat
                    continue
    except FileNotFoundError:
        return 0
    return total


def check_quota(directory: Union[str, Path], ceiling_bytes: int) -> QuotaStatus:
    """
    Compare the directory's aggregate size against a ceiling.

    The ceiling is inclusive: a directory holding exactly ceiling_bytes is
    already over quota. Nothing is reserved, so concurrent uploads that pass
    this check together can push the directory past the ceiling; the quota
    is a soft limit.
    """
    current = directory_size(directory)
    if current >= ceiling_bytes:
        logger.warning(
            f"Storage quota exceeded for {directory}: {current} >= {ceiling_bytes} bytes"
        )
        return QuotaStatus.EXCEEDED
    return QuotaStatus.OK
