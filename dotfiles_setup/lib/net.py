from __future__ import annotations

import logging
from typing import Sequence

from .command import Runner, run_cmd

logger = logging.getLogger(__name__)

DEFAULT_PROBE_HOSTS = ("8.8.8.8", "1.1.1.1", "208.67.222.222")


def is_online(
    hosts: Sequence[str] = DEFAULT_PROBE_HOSTS,
    *,
    wait_s: int = 5,
    run: Runner = run_cmd,
) -> bool:
    """Best-effort online check: one bounded ping per host, any reply wins."""

    for host in hosts:
        r = run(["ping", "-c", "1", "-W", str(wait_s), host], check=False, timeout=wait_s + 2)
        if r.returncode == 0:
            logger.debug("Host %s reachable", host)
            return True
        logger.debug("Host %s unreachable (rc=%s)", host, r.returncode)
    return False
