from __future__ import annotations

import logging
import shlex
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence

from ..errors import SetupError
from ..lib.command import CmdResult
from .base import ABORT, Item, ItemStep

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

SDKMAN_INSTALLER = "https://get.sdkman.io"


def sdkman_dir(ctx: "SetupContext") -> Path:
    return ctx.home / ".sdkman"


def java_candidates_dir(ctx: "SetupContext") -> Path:
    return sdkman_dir(ctx) / "candidates/java"


def installed_java(ctx: "SetupContext", major: str) -> Optional[str]:
    """Identifier of an installed Java for this major version, if any."""
    root = java_candidates_dir(ctx)
    if not root.is_dir():
        return None
    for entry in sorted(root.iterdir(), reverse=True):
        if entry.name == "current" or not entry.is_dir():
            continue
        if entry.name.startswith(f"{major}.") or entry.name.startswith(f"{major}-"):
            return entry.name
    return None


def sdk(ctx: "SetupContext", args: str, *, check: bool = True) -> CmdResult:
    init = shlex.quote(str(sdkman_dir(ctx) / "bin/sdkman-init.sh"))
    script = f"set +u; source {init}; sdk {args}"
    # sdk asks whether to make each install the default; answer no.
    return ctx.run(["bash", "-c", script], check=check, input_text="n\n", env={"SDKMAN_DIR": str(sdkman_dir(ctx))})


class JavaStep(ItemStep):
    step_id = "06_java"
    title = "Java (SDKMAN)"
    on_item_failure = ABORT

    def _sdkman(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return (sdkman_dir(ctx) / "bin/sdkman-init.sh").is_file()

        def install(ctx: "SetupContext") -> None:
            with tempfile.TemporaryDirectory(prefix="dotfiles-sdkman-") as tmp:
                script = ctx.downloader.fetch(SDKMAN_INSTALLER, Path(tmp) / "sdkman-install.sh", timeout=60, use_cache=False)
                ctx.run(["bash", str(script)], env={"SDKMAN_DIR": str(sdkman_dir(ctx))})

        return Item(name="SDKMAN", detect=detect, install=install, manual='curl -s "https://get.sdkman.io" | bash')

    def _java(self, major: str, identifiers: Sequence[str]) -> Item:
        def install(ctx: "SetupContext") -> None:
            for ident in identifiers:
                logger.info("Trying Java %s...", ident)
                r = sdk(ctx, f"install java {shlex.quote(ident)}", check=False)
                if r.ok and (ctx.dry_run or installed_java(ctx, major)):
                    return
            raise SetupError(f"None of the Java {major} candidates could be installed")

        return Item(
            name=f"Java {major}",
            detect=lambda ctx: installed_java(ctx, major) is not None,
            install=install,
            required=False,
            manual=f"sdk install java {identifiers[0] if identifiers else major}",
        )

    def _default(self, major: str) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            current = java_candidates_dir(ctx) / "current"
            return current.is_symlink() and current.resolve().name.startswith(f"{major}.")

        def install(ctx: "SetupContext") -> None:
            ident = installed_java(ctx, major)
            if ident is None:
                if ctx.dry_run:
                    return
                raise SetupError(f"Java {major} is not installed")
            sdk(ctx, f"default java {shlex.quote(ident)}")

        return Item(
            name=f"Java {major} as default",
            detect=detect,
            install=install,
            required=False,
            manual=f"sdk default java <{major}.x identifier>",
        )

    def items(self, ctx: "SetupContext") -> List[Item]:
        cfg = ctx.packages("java") or {}
        versions = cfg.get("versions") or {}
        items = [self._sdkman()]
        items.extend(self._java(str(major), [str(i) for i in ids or []]) for major, ids in versions.items())
        default = cfg.get("default")
        if default:
            items.append(self._default(str(default)))
        return items
