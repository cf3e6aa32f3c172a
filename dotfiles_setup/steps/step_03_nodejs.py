from __future__ import annotations

import logging
import shlex
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List

from ..errors import SetupError
from ..lib.command import CmdResult, command_exists
from .base import ABORT, Item, ItemStep

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

NVM_LATEST_API = "https://api.github.com/repos/nvm-sh/nvm/releases/latest"
NVM_INSTALLER = "https://raw.githubusercontent.com/nvm-sh/nvm/{tag}/install.sh"
BUN_INSTALLER = "https://bun.sh/install"


def nvm_dir(ctx: "SetupContext") -> Path:
    return ctx.home / ".nvm"


def nvm_exec(ctx: "SetupContext", command: str, *, check: bool = True, probe: bool = False) -> CmdResult:
    """Run a command in a bash with nvm loaded. probe=True also runs in dry-run."""

    d = shlex.quote(str(nvm_dir(ctx)))
    script = f'export NVM_DIR={d}; . "$NVM_DIR/nvm.sh"; {command}'
    kw = {"dry_run": False} if probe else {}
    return ctx.run(["bash", "-c", script], check=check, **kw)


class NodeJsStep(ItemStep):
    step_id = "03_nodejs"
    title = "Node.js toolchain"
    on_item_failure = ABORT

    def _nvm(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return (nvm_dir(ctx) / "nvm.sh").is_file()

        def install(ctx: "SetupContext") -> None:
            release = ctx.downloader.get_json(NVM_LATEST_API)
            tag = release.get("tag_name") if isinstance(release, dict) else None
            if not tag:
                raise SetupError("Could not determine the latest NVM release")
            logger.info("Installing NVM %s...", tag)
            with tempfile.TemporaryDirectory(prefix="dotfiles-nvm-") as tmp:
                script = ctx.downloader.fetch(NVM_INSTALLER.format(tag=tag), Path(tmp) / "nvm-install.sh", timeout=60, use_cache=False)
                # PROFILE=/dev/null: the linked .zshrc already loads nvm.
                ctx.run(["bash", str(script)], env={"NVM_DIR": str(nvm_dir(ctx)), "PROFILE": "/dev/null"})

        return Item(
            name="NVM",
            detect=detect,
            install=install,
            manual="curl -o- https://raw.githubusercontent.com/nvm-sh/nvm/master/install.sh | bash",
        )

    def _node(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return nvm_exec(ctx, "nvm which default", check=False, probe=True).ok

        def install(ctx: "SetupContext") -> None:
            nvm_exec(ctx, "nvm install --lts && nvm alias default 'lts/*'")

        return Item(name="Node.js LTS", detect=detect, install=install, manual="nvm install --lts")

    def _npm_global(self, package: str) -> Item:
        q = shlex.quote(package)

        def detect(ctx: "SetupContext") -> bool:
            return nvm_exec(ctx, f"npm list -g --depth=0 {q}", check=False, probe=True).ok

        def install(ctx: "SetupContext") -> None:
            nvm_exec(ctx, f"npm install -g {q}")

        return Item(name=package, detect=detect, install=install, manual=f"npm install -g {package}")

    def _bun(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return command_exists("bun") or (ctx.home / ".bun/bin/bun").is_file()

        def install(ctx: "SetupContext") -> None:
            with tempfile.TemporaryDirectory(prefix="dotfiles-bun-") as tmp:
                script = ctx.downloader.fetch(BUN_INSTALLER, Path(tmp) / "bun-install.sh", timeout=60, use_cache=False)
                ctx.run(["bash", str(script)])

        return Item(
            name="Bun",
            detect=detect,
            install=install,
            required=False,
            manual="curl -fsSL https://bun.sh/install | bash",
        )

    def _npm_config(self, settings: Dict[str, str]) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            for key, value in settings.items():
                r = nvm_exec(ctx, f"npm config get {shlex.quote(key)}", check=False, probe=True)
                if not r.ok or r.stdout.strip() != value:
                    return False
            return True

        def install(ctx: "SetupContext") -> None:
            for key, value in settings.items():
                nvm_exec(ctx, f"npm config set {shlex.quote(key)} {shlex.quote(value)}")

        return Item(name="npm config", detect=detect, install=install, required=False)

    def items(self, ctx: "SetupContext") -> List[Item]:
        items = [self._nvm(), self._node()]
        items.extend(self._npm_global(str(p)) for p in ctx.packages("npm_globals") or [])
        items.append(self._bun())
        settings = {str(k): str(v).lower() for k, v in (ctx.packages("npm_config") or {}).items()}
        if settings:
            items.append(self._npm_config(settings))
        return items
