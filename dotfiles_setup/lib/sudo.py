from __future__ import annotations

import logging
import threading
from typing import Optional

from ..errors import PreconditionError
from .command import Runner, is_root, run_cmd

logger = logging.getLogger(__name__)

# sudo caches credentials for 15 minutes by default; renew well before that.
DEFAULT_RENEW_INTERVAL_S = 60.0


class SudoLease:
    """Elevated privilege held for the lifetime of a run.

    acquire() prompts once (sudo -v). start() spawns a daemon thread that
    renews with `sudo -n true` every `interval` seconds. The thread ends
    when stop() is called, when a renewal is rejected, or with the process.
    """

    def __init__(
        self,
        *,
        interval: float = DEFAULT_RENEW_INTERVAL_S,
        run: Runner = run_cmd,
        needs_sudo: Optional[bool] = None,
    ) -> None:
        self.interval = interval
        self._run = run
        self._needs_sudo = (not is_root()) if needs_sudo is None else needs_sudo
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.renewals = 0
        self.expired = False

    def acquire(self) -> None:
        if not self._needs_sudo:
            logger.debug("Running as root; no sudo lease needed")
            return
        logger.info("Caching sudo credentials (you'll be asked for your password once)...")
        # Interactive: stdin/stdout stay attached to the terminal.
        r = self._run(["sudo", "-v"], check=False, interactive=True)
        if r.returncode != 0:
            raise PreconditionError("Could not obtain sudo credentials", hint="sudo -v")

    def start(self) -> None:
        if not self._needs_sudo or self.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._renew_loop, name="sudo-keepalive", daemon=True)
        self._thread.start()
        logger.info("Sudo will be renewed automatically during installation")

    def _renew_loop(self) -> None:
        while not self._stop.wait(self.interval):
            r = self._run(["sudo", "-n", "true"], check=False)
            if r.returncode != 0:
                # Lease really expired; re-authentication would need a prompt.
                self.expired = True
                logger.warning("Sudo credentials expired; later privileged commands may prompt")
                return
            self.renewals += 1

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self) -> "SudoLease":
        self.acquire()
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
