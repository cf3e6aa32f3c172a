from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List

from ..lib.command import command_exists
from ..lib.pkg import add_apt_source, apt_cleanup, apt_install, dpkg_architecture, dpkg_installed
from .base import Item, ItemStep

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

GH_KEY = "https://cli.github.com/packages/githubcli-archive-keyring.gpg"
GH_REPO = "https://cli.github.com/packages"


def manifest_item(entry: Dict[str, Any]) -> Item:
    """Item from an `extras` manifest entry (command or package detection)."""

    name = str(entry["name"])
    command = entry.get("command")
    package = entry.get("package")
    packages = [str(p) for p in entry.get("packages") or [package or name]]
    post = [str(a) for a in entry.get("post") or []]

    def detect(ctx: "SetupContext") -> bool:
        if command:
            return command_exists(str(command))
        return dpkg_installed(str(package or packages[0]), run=ctx.run)

    def install(ctx: "SetupContext") -> None:
        apt_install(packages, apt=ctx.apt, run=ctx.run)
        if post:
            ctx.run(post)

    return Item(
        name=name,
        detect=detect,
        install=install,
        manual="sudo apt-get install -y " + " ".join(packages),
    )


class ExtrasStep(ItemStep):
    step_id = "09_extras"
    title = "Extra development tools"
    critical = False
    prompt = True
    prompt_default = False

    def _github_cli(self) -> Item:
        def install(ctx: "SetupContext") -> None:
            arch = dpkg_architecture(run=ctx.run)
            add_apt_source(
                "githubcli-archive-keyring",
                key_url=GH_KEY,
                source_line=f"deb [arch={arch} signed-by={{keyring}}] {GH_REPO} stable main",
                downloader=ctx.downloader,
                apt=ctx.apt,
                dearmor=False,
                run=ctx.run,
            )
            apt_install(["gh"], apt=ctx.apt, run=ctx.run)

        return Item(
            name="GitHub CLI",
            detect=lambda ctx: command_exists("gh"),
            install=install,
            manual="sudo apt-get install -y gh",
        )

    def items(self, ctx: "SetupContext") -> List[Item]:
        items = [manifest_item(e) for e in ctx.packages("extras") or []]
        items.append(self._github_cli())
        return items

    def finish(self, ctx: "SetupContext") -> None:
        apt_cleanup(run=ctx.run)
