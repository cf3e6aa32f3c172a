from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from ..errors import SetupError, StepFailed
from ..lib.command import command_exists
from ..lib.pkg import apt_install, dpkg_installed, snap_install, snap_installed
from ..logging_utils import log_success

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

Check = Callable[["SetupContext"], bool]
Action = Callable[["SetupContext"], None]

CONTINUE = "continue"
ABORT = "abort"


@dataclass(frozen=True)
class Item:
    """One thing a step installs: a package, a plugin, an extension."""

    name: str
    detect: Check
    install: Action
    check: Optional[Check] = None
    required: bool = True
    manual: Optional[str] = None

    def satisfied(self, ctx: "SetupContext") -> bool:
        try:
            return bool(self.detect(ctx))
        except Exception as e:
            logger.debug("Detection for %s raised %s", self.name, e)
            return False

    def verified(self, ctx: "SetupContext") -> bool:
        fn = self.check or self.detect
        try:
            return bool(fn(ctx))
        except Exception as e:
            logger.debug("Verification for %s raised %s", self.name, e)
            return False


class ItemStep:
    """A step made of ordered items with an explicit partial-failure policy.

    on_item_failure = "continue": install everything possible, then fail if
    a required item is still missing. "abort": stop at the first required
    failure. Best-effort items (required=False) only ever warn.
    """

    step_id = ""
    title = ""
    critical = True
    prompt = False
    prompt_default = True
    on_item_failure = CONTINUE

    def items(self, ctx: "SetupContext") -> Sequence[Item]:
        raise NotImplementedError

    def applicable(self, ctx: "SetupContext") -> bool:
        return True

    def prepare(self, ctx: "SetupContext") -> None:
        """Runs once before any item is installed."""

    def finish(self, ctx: "SetupContext") -> None:
        """Runs once after all items were processed."""

    def is_satisfied(self, ctx: "SetupContext") -> bool:
        if not self.applicable(ctx):
            return True
        return all(item.satisfied(ctx) for item in self.items(ctx))

    def verify(self, ctx: "SetupContext") -> bool:
        if not self.applicable(ctx):
            return True
        return all(item.verified(ctx) for item in self.items(ctx) if item.required)

    def _install_item(self, item: Item, ctx: "SetupContext") -> Optional[str]:
        """Returns an error message, or None when the item is in place."""

        logger.info("Installing %s...", item.name)
        try:
            item.install(ctx)
        except SetupError as e:
            return str(e)
        except Exception as e:
            logger.debug("Installing %s raised", item.name, exc_info=True)
            return str(e)
        if not ctx.dry_run and not item.verified(ctx):
            return f"{item.name} not detected after install"
        log_success(logger, "%s installed", item.name)
        return None

    def apply(self, ctx: "SetupContext") -> bool:
        """Install what is missing. Returns False when no item changed."""

        self.prepare(ctx)
        failed: List[Item] = []
        changed = False
        for item in self.items(ctx):
            if item.satisfied(ctx):
                logger.info("%s already installed", item.name)
                continue
            error = self._install_item(item, ctx)
            if error is None:
                changed = True
                continue

            if not item.required:
                logger.warning("Could not install %s: %s", item.name, error)
                if item.manual:
                    logger.info("Install it manually: %s", item.manual)
                continue

            logger.error("Failed to install %s: %s", item.name, error)
            failed.append(item)
            if self.on_item_failure == ABORT:
                raise StepFailed(f"{self.title}: {item.name} failed", hint=item.manual)

        self.finish(ctx)
        if failed:
            names = ", ".join(i.name for i in failed)
            hints = [i.manual for i in failed if i.manual]
            raise StepFailed(f"{self.title}: required item(s) failed: {names}", hint=hints[0] if hints else None)
        return changed


def apt_item(
    package: str,
    *,
    name: Optional[str] = None,
    command: Optional[str] = None,
    required: bool = True,
) -> Item:
    """Item for a single apt package, detected through dpkg or a command."""

    def detect(ctx: "SetupContext") -> bool:
        if command and command_exists(command):
            return True
        return dpkg_installed(package, run=ctx.run)

    def install(ctx: "SetupContext") -> None:
        apt_install([package], apt=ctx.apt, run=ctx.run)

    return Item(
        name=name or package,
        detect=detect,
        install=install,
        required=required,
        manual=f"sudo apt-get install -y {package}",
    )


def snap_or_apt_item(
    name: str,
    *,
    snap: str,
    command: str,
    classic: bool = False,
    apt_package: Optional[str] = None,
    fallback: Optional[Action] = None,
    required: bool = True,
    manual: Optional[str] = None,
) -> Item:
    """Prefer the snap; otherwise apt_package or a custom fallback."""

    def detect(ctx: "SetupContext") -> bool:
        if command_exists(command) or snap_installed(snap, run=ctx.run):
            return True
        return bool(apt_package) and dpkg_installed(apt_package, run=ctx.run)

    def install(ctx: "SetupContext") -> None:
        if command_exists("snap"):
            snap_install(snap, classic=classic, run=ctx.run)
        elif fallback is not None:
            logger.warning("Snap not available, using alternative install for %s", name)
            fallback(ctx)
        elif apt_package:
            logger.warning("Snap not available, installing %s via apt", name)
            apt_install([apt_package], apt=ctx.apt, run=ctx.run)
        else:
            raise SetupError(f"snap is not available to install {name}")

    return Item(
        name=name,
        detect=detect,
        install=install,
        required=required,
        manual=manual or f"sudo snap install {snap}{' --classic' if classic else ''}",
    )
