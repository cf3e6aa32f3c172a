from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, List

from ..lib.command import command_exists
from ..lib.pkg import add_apt_source, apt_install, dpkg_installed
from .base import Item, ItemStep, apt_item, snap_or_apt_item
from .step_04_editors import fetch_and_install_deb

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

CHROME_DEB = "https://dl.google.com/linux/direct/google-chrome-stable_current_amd64.deb"
BRAVE_KEY = "https://brave-browser-apt-release.s3.brave.com/brave-browser-archive-keyring.gpg"
BRAVE_SOURCE = "deb [signed-by={keyring} arch=amd64] https://brave-browser-apt-release.s3.brave.com/ stable main"
SPOTIFY_KEY = "https://download.spotify.com/debian/pubkey_7A3A762FAFD4A51F.gpg"
SPOTIFY_SOURCE = "deb [signed-by={keyring}] http://repository.spotify.com stable non-free"
DISCORD_DEB = "https://discord.com/api/download?platform=linux&format=deb"
NORDVPN_INSTALLER = "https://downloads.nordcdn.com/apps/linux/install.sh"


class ApplicationsStep(ItemStep):
    step_id = "08_applications"
    title = "Applications"
    critical = False
    prompt = True
    prompt_default = True

    def _chrome(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return command_exists("google-chrome") or dpkg_installed("google-chrome-stable", run=ctx.run)

        return Item(
            name="Google Chrome",
            detect=detect,
            install=lambda ctx: fetch_and_install_deb(ctx, [CHROME_DEB], "google-chrome"),
            manual="Install manually from https://www.google.com/chrome/",
        )

    def _brave(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return command_exists("brave-browser") or dpkg_installed("brave-browser", run=ctx.run)

        def install(ctx: "SetupContext") -> None:
            # Brave publishes the keyring already in binary form.
            add_apt_source(
                "brave-browser",
                key_url=BRAVE_KEY,
                source_line=BRAVE_SOURCE,
                downloader=ctx.downloader,
                apt=ctx.apt,
                dearmor=False,
                run=ctx.run,
            )
            apt_install(["brave-browser"], apt=ctx.apt, run=ctx.run)

        return Item(name="Brave Browser", detect=detect, install=install, manual="sudo apt-get install -y brave-browser")

    def _spotify_repo(self, ctx: "SetupContext") -> None:
        add_apt_source(
            "spotify",
            key_url=SPOTIFY_KEY,
            source_line=SPOTIFY_SOURCE,
            downloader=ctx.downloader,
            apt=ctx.apt,
            run=ctx.run,
        )
        apt_install(["spotify-client"], apt=ctx.apt, run=ctx.run)

    def _nordvpn(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return command_exists("nordvpn") or dpkg_installed("nordvpn", run=ctx.run)

        def install(ctx: "SetupContext") -> None:
            with tempfile.TemporaryDirectory(prefix="dotfiles-nordvpn-") as tmp:
                script = ctx.downloader.fetch(NORDVPN_INSTALLER, Path(tmp) / "nordvpn-install.sh", timeout=60, use_cache=False)
                ctx.run(["sh", str(script)], interactive=True)
            logger.info("To login to NordVPN, run: nordvpn login")

        return Item(
            name="NordVPN",
            detect=detect,
            install=install,
            required=False,
            manual=f"sh <(curl -sSf {NORDVPN_INSTALLER})",
        )

    def items(self, ctx: "SetupContext") -> List[Item]:
        return [
            self._chrome(),
            self._brave(),
            apt_item("firefox", name="Firefox", command="firefox"),
            snap_or_apt_item("Steam", snap="steam", command="steam", classic=True, apt_package="steam-launcher"),
            snap_or_apt_item("Spotify", snap="spotify", command="spotify", apt_package="spotify-client", fallback=self._spotify_repo),
            snap_or_apt_item(
                "Discord",
                snap="discord",
                command="discord",
                apt_package="discord",
                fallback=lambda c: fetch_and_install_deb(c, [DISCORD_DEB], "discord"),
                manual="Install manually from https://discord.com/download",
            ),
            snap_or_apt_item("OBS Studio", snap="obs-studio", command="obs", apt_package="obs-studio"),
            self._nordvpn(),
        ]
