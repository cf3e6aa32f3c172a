from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import DownloadError
from .download import Downloader

logger = logging.getLogger(__name__)

BRANCH_ENV = "DOTFILES_BRANCH"
DEFAULT_BASE_URL = "https://raw.githubusercontent.com/RanielliMontagna/dotfiles"
TEMP_DIR_NAME = ".dotfiles-temp"

REQUIRED_FILES = ("dotfiles/.zshrc", "dotfiles/.gitconfig", "dotfiles/.aliases")
WALLPAPER_CANDIDATES = tuple(
    f"assets/wallpapers/{name}.{ext}"
    for name in ("background", "wallpaper", "desktop")
    for ext in ("jpg", "jpeg", "png", "webp")
)


def selected_branch() -> Optional[str]:
    branch = os.environ.get(BRANCH_ENV, "").strip()
    return branch or None


class RemoteAssets:
    """Configuration assets fetched from a branch of the dotfiles repository.

    Files land in ~/.dotfiles-temp with the same layout as the bundled
    assets directory; cleanup() removes the directory again.
    """

    def __init__(
        self,
        branch: str,
        *,
        downloader: Downloader,
        home: str | Path,
        base_url: str = DEFAULT_BASE_URL,
        required: Sequence[str] = REQUIRED_FILES,
        optional: Sequence[str] = WALLPAPER_CANDIDATES,
    ) -> None:
        self.branch = branch
        self.downloader = downloader
        self.root = Path(home) / TEMP_DIR_NAME
        self.base_url = f"{base_url.rstrip('/')}/{branch}"
        self.required = tuple(required)
        self.optional = tuple(optional)

    def url_for(self, rel: str) -> str:
        return f"{self.base_url}/{rel}"

    def local_path(self, rel: str) -> Path:
        """Same layout as the bundled assets directory."""
        if rel.startswith("assets/"):
            rel = rel[len("assets/") :]
        return self.root / rel

    def fetch(self) -> Path:
        logger.info("Downloading configuration assets from GitHub (branch: %s)...", self.branch)
        self.root.mkdir(parents=True, exist_ok=True)

        failed: List[str] = []
        for rel in self.required:
            try:
                self.downloader.fetch(self.url_for(rel), self.local_path(rel), timeout=30, use_cache=False)
            except DownloadError as e:
                logger.error("Failed to download %s: %s", rel, e)
                failed.append(rel)
        if failed:
            self.cleanup()
            raise DownloadError(
                f"Failed to download {len(failed)} asset(s) from branch {self.branch}",
                hint="Check your internet connection or unset DOTFILES_BRANCH to use the bundled files",
            )

        for rel in self.optional:
            url = self.url_for(rel)
            if not self.downloader.url_exists(url):
                continue
            try:
                self.downloader.fetch(url, self.local_path(rel), timeout=60, use_cache=False)
                break
            except DownloadError as e:
                logger.warning("Could not download %s: %s", rel, e)

        return self.root

    def cleanup(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
            logger.debug("Removed %s", self.root)

    def __enter__(self) -> Path:
        return self.fetch()

    def __exit__(self, *exc) -> None:
        self.cleanup()
