from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ..errors import PreconditionError

logger = logging.getLogger(__name__)

MiB = 1024 * 1024
GiB = 1024 * MiB


def _existing_parent(path: Path) -> Path:
    p = path.absolute()
    while not p.exists() and p != p.parent:
        p = p.parent
    return p


def free_bytes(path: str | Path) -> int:
    return shutil.disk_usage(str(_existing_parent(Path(path)))).free


def ensure_free_space(path: str | Path, required_bytes: int) -> None:
    """Fail early when the filesystem holding path is too small."""

    available = free_bytes(path)
    if available < required_bytes:
        raise PreconditionError(
            f"Insufficient disk space at {path}: need {required_bytes // MiB} MiB, "
            f"have {available // MiB} MiB"
        )
    logger.debug("Disk space OK at %s (%d MiB free)", path, available // MiB)
