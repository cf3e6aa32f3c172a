from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

OS_RELEASE = "/etc/os-release"


def read_os_release(path: str = OS_RELEASE) -> Dict[str, str]:
    p = Path(path)
    if not p.exists():
        return {}
    out: Dict[str, str] = {}
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value]
        out[key] = parts[0] if parts else ""
    return out


def is_supported(info: Dict[str, str]) -> bool:
    """Zorin OS or anything Ubuntu-based."""
    os_id = info.get("ID", "").lower()
    like = info.get("ID_LIKE", "").lower().split()
    return os_id in {"zorin", "ubuntu"} or "ubuntu" in like
