from __future__ import annotations

import logging
import os
import pwd
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from ..errors import SetupError
from ..lib.dotfiles import dotfiles_linked, ensure_directories, install_dotfiles
from .base import Item, ItemStep, apt_item

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

OH_MY_ZSH_INSTALLER = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"


def login_shell(user: str) -> Optional[str]:
    try:
        return pwd.getpwnam(user).pw_shell
    except KeyError:
        return None


class ShellStep(ItemStep):
    step_id = "02_shell"
    title = "Shell environment"

    def oh_my_zsh_dir(self, ctx: "SetupContext") -> Path:
        return ctx.home / ".oh-my-zsh"

    def zsh_custom(self, ctx: "SetupContext") -> Path:
        custom = os.environ.get("ZSH_CUSTOM")
        return Path(custom) if custom else self.oh_my_zsh_dir(ctx) / "custom"

    def _oh_my_zsh(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return self.oh_my_zsh_dir(ctx).is_dir()

        def install(ctx: "SetupContext") -> None:
            with tempfile.TemporaryDirectory(prefix="dotfiles-omz-") as tmp:
                script = ctx.downloader.fetch(OH_MY_ZSH_INSTALLER, Path(tmp) / "ohmyzsh-install.sh", timeout=60, use_cache=False)
                ctx.run(
                    ["sh", str(script), "--unattended"],
                    env={"RUNZSH": "no", "CHSH": "no", "ZSH": str(self.oh_my_zsh_dir(ctx))},
                )

        return Item(
            name="Oh My Zsh",
            detect=detect,
            install=install,
            manual=f'sh -c "$(curl -fsSL {OH_MY_ZSH_INSTALLER})" "" --unattended',
        )

    def _plugin(self, plugin: dict) -> Item:
        name = str(plugin["name"])
        repo = str(plugin["repo"])
        rel = str(plugin["dest"])

        def detect(ctx: "SetupContext") -> bool:
            return (self.zsh_custom(ctx) / rel).is_dir()

        def install(ctx: "SetupContext") -> None:
            ctx.run(["git", "clone", "--depth=1", repo, str(self.zsh_custom(ctx) / rel)])

        return Item(name=name, detect=detect, install=install, manual=f"git clone --depth=1 {repo} $ZSH_CUSTOM/{rel}")

    def _dotfiles(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return dotfiles_linked(ctx.dotfiles_store, ctx.home)

        def install(ctx: "SetupContext") -> None:
            source = ctx.assets_dir / "dotfiles"
            if ctx.dry_run:
                logger.info("Would link dotfiles from %s", source)
                return
            linked = install_dotfiles(source, ctx.dotfiles_store, ctx.home)
            logger.info("Dotfiles linked: %s", ", ".join(linked) or "none changed")

        return Item(name="Dotfiles", detect=detect, install=install)

    def _projects_dir(self) -> Item:
        def path(ctx: "SetupContext") -> Path:
            return ctx.home / "www/personal"

        def install(ctx: "SetupContext") -> None:
            if not ctx.dry_run:
                ensure_directories([path(ctx)])

        return Item(name="~/www/personal", detect=lambda ctx: path(ctx).is_dir(), install=install)

    def _default_shell(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            zsh = shutil.which("zsh")
            return bool(zsh) and login_shell(ctx.user) == zsh

        def install(ctx: "SetupContext") -> None:
            zsh = shutil.which("zsh")
            if not zsh:
                if ctx.dry_run:
                    return
                raise SetupError("zsh not found in PATH")
            ctx.run(["chsh", "-s", zsh, ctx.user], root=True)
            logger.warning("You may need to log out and log back in for this to take effect")

        return Item(name="Zsh as default shell", detect=detect, install=install, manual="chsh -s $(which zsh)")

    def items(self, ctx: "SetupContext") -> List[Item]:
        items = [apt_item("zsh", name="Zsh", command="zsh"), self._oh_my_zsh()]
        items.extend(self._plugin(p) for p in ctx.packages("zsh_plugins") or [])
        items.extend([self._dotfiles(), self._projects_dir(), self._default_shell()])
        return items
