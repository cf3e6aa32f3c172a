from __future__ import annotations

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .lib.command import CmdResult, Runner, run_cmd
from .lib.download import Downloader
from .lib.manifests import assets_root, load_packages_manifest
from .lib.pkg import AptIndex
from .setup_config import SetupConfig


def _current_user() -> str:
    return os.environ.get("USER") or getpass.getuser()


@dataclass
class SetupContext:
    """Everything a step may touch during one run.

    Passed explicitly to every step; nothing here is module-global.
    """

    config: SetupConfig = field(default_factory=SetupConfig)
    dry_run: bool = False
    assume_yes: bool = False
    home: Path = field(default_factory=Path.home)
    user: str = field(default_factory=_current_user)
    runner: Runner = run_cmd
    downloader: Optional[Downloader] = None
    apt: Optional[AptIndex] = None
    assets_dir: Path = field(default_factory=assets_root)
    manifest: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.home = Path(self.home)
        if self.downloader is None:
            self.downloader = Downloader(
                self.config.cache_dir,
                max_retries=self.config.download_retries,
                timeout=self.config.download_timeout,
                connect_timeout=self.config.download_connect_timeout,
                retry_delay=self.config.download_retry_delay,
                dry_run=self.dry_run,
            )
        if self.apt is None:
            self.apt = AptIndex(run=self.run)
        if self.manifest is None:
            self.manifest = load_packages_manifest(self.config.packages)

    def run(self, argv: Sequence[str], **kw: Any) -> CmdResult:
        """run_cmd with this run's dry-run setting applied."""
        kw.setdefault("dry_run", self.dry_run)
        return self.runner(argv, **kw)

    def packages(self, key: str) -> Any:
        return (self.manifest or {}).get(key)

    @property
    def state_dir(self) -> Path:
        """Persistent per-user data (linked dotfiles live here)."""
        return self.home / ".config/dotfiles-setup"

    @property
    def dotfiles_store(self) -> Path:
        return self.state_dir / "dotfiles"

    def close(self) -> None:
        if self.downloader is not None:
            self.downloader.close()
