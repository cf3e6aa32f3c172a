from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, List

from ..errors import DownloadError, SetupError
from ..lib.command import command_exists
from ..lib.pkg import add_apt_source, apt_install, dpkg_installed, install_deb
from .base import Item, ItemStep

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

VSCODE_KEY = "https://packages.microsoft.com/keys/microsoft.asc"
VSCODE_SOURCE = "deb [arch=amd64,arm64,armhf signed-by={keyring}] https://packages.microsoft.com/repos/code stable main"
CURSOR_URLS = ("https://downloader.cursor.sh/linux/deb", "https://downloader.cursor.sh/linux/x64")

DEB_MAGIC = b"!<arch>\ndebian-binary"


def is_deb(path: Path) -> bool:
    with open(path, "rb") as f:
        return f.read(len(DEB_MAGIC)) == DEB_MAGIC


def fetch_and_install_deb(ctx: "SetupContext", urls, name: str) -> None:
    """Try each URL in turn; install the first download that is a real .deb."""

    with tempfile.TemporaryDirectory(prefix="dotfiles-deb-") as tmp:
        dest = Path(tmp) / f"{name}.deb"
        last: Exception = SetupError(f"No download URL for {name}")
        for url in urls:
            try:
                ctx.downloader.fetch(url, dest, use_cache=False)
            except DownloadError as e:
                logger.warning("Download of %s failed, trying alternative...", name)
                last = e
                continue
            if ctx.dry_run:
                return
            if not is_deb(dest):
                last = SetupError(f"Downloaded file for {name} is not a valid .deb package")
                continue
            install_deb(dest, run=ctx.run)
            return
        raise last


class EditorsStep(ItemStep):
    step_id = "04_editors"
    title = "Code editors"

    def _vscode(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return command_exists("code") or dpkg_installed("code", run=ctx.run)

        def install(ctx: "SetupContext") -> None:
            add_apt_source(
                "packages.microsoft",
                key_url=VSCODE_KEY,
                source_line=VSCODE_SOURCE,
                downloader=ctx.downloader,
                apt=ctx.apt,
                run=ctx.run,
            )
            apt_install(["code"], apt=ctx.apt, run=ctx.run)

        return Item(name="VS Code", detect=detect, install=install, manual="sudo apt-get install -y code")

    def _cursor(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return command_exists("cursor") or dpkg_installed("cursor", run=ctx.run)

        def install(ctx: "SetupContext") -> None:
            fetch_and_install_deb(ctx, CURSOR_URLS, "cursor")

        return Item(
            name="Cursor",
            detect=detect,
            install=install,
            required=False,
            manual="Download and install Cursor from https://cursor.com, then run this again to verify",
        )

    def items(self, ctx: "SetupContext") -> List[Item]:
        return [self._vscode(), self._cursor()]
