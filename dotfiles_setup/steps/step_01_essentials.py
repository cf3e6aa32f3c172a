from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from ..errors import PreconditionError
from ..lib.command import command_exists
from ..lib.pkg import apt_cleanup, apt_upgrade
from .base import Item, ItemStep, apt_item

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)


class EssentialsStep(ItemStep):
    step_id = "01_essentials"
    title = "Essential tools"

    def items(self, ctx: "SetupContext") -> List[Item]:
        return [apt_item(str(p)) for p in ctx.packages("essentials") or []]

    def prepare(self, ctx: "SetupContext") -> None:
        for tool in ("apt-get", "dpkg"):
            if not command_exists(tool):
                raise PreconditionError(f"{tool} is not installed or not in PATH")
        if ctx.config.essentials_upgrade:
            logger.info("Upgrading existing packages...")
            apt_upgrade(apt=ctx.apt, run=ctx.run)

    def finish(self, ctx: "SetupContext") -> None:
        apt_cleanup(run=ctx.run)
