from __future__ import annotations

import grp
import logging
from typing import TYPE_CHECKING, List

from ..lib.command import command_exists
from ..lib.pkg import add_apt_source, apt_install, apt_remove, distro_codename, dpkg_architecture, dpkg_installed
from ..logging_utils import log_success
from .base import ABORT, Item, ItemStep

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

DOCKER_KEY = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_REPO = "https://download.docker.com/linux/ubuntu"
PREREQUISITES = ["ca-certificates", "curl", "gnupg", "lsb-release"]


def in_group(user: str, group: str) -> bool:
    try:
        return user in grp.getgrnam(group).gr_mem
    except KeyError:
        return False


class DockerStep(ItemStep):
    step_id = "05_docker"
    title = "Docker"
    on_item_failure = ABORT

    def __init__(self) -> None:
        self._installed_engine = False

    def _engine(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return dpkg_installed("docker-ce", run=ctx.run) or command_exists("docker")

        def install(ctx: "SetupContext") -> None:
            packages = [str(p) for p in ctx.packages("docker") or []]
            logger.info("Removing old Docker versions (if any)...")
            apt_remove([str(p) for p in ctx.packages("docker_legacy") or []], run=ctx.run)
            apt_install(PREREQUISITES, apt=ctx.apt, run=ctx.run)

            arch = dpkg_architecture(run=ctx.run)
            codename = distro_codename(run=ctx.run)
            add_apt_source(
                "docker",
                key_url=DOCKER_KEY,
                source_line=f"deb [arch={arch} signed-by={{keyring}}] {DOCKER_REPO} {codename} stable",
                downloader=ctx.downloader,
                apt=ctx.apt,
                run=ctx.run,
            )
            apt_install(packages, apt=ctx.apt, run=ctx.run)
            self._installed_engine = True

        return Item(
            name="Docker Engine",
            detect=detect,
            install=install,
            manual="sudo apt-get install -y docker-ce docker-ce-cli containerd.io docker-buildx-plugin docker-compose-plugin",
        )

    def _service(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            r = ctx.run(["systemctl", "is-enabled", "docker"], check=False, dry_run=False)
            return r.ok and r.stdout.strip() == "enabled"

        def install(ctx: "SetupContext") -> None:
            ctx.run(["systemctl", "enable", "--now", "docker"], root=True)

        return Item(
            name="Docker service",
            detect=detect,
            install=install,
            required=False,
            manual="sudo systemctl enable --now docker",
        )

    def _group(self) -> Item:
        def install(ctx: "SetupContext") -> None:
            ctx.run(["usermod", "-aG", "docker", ctx.user], root=True)
            logger.warning("Please log out and log back in for group changes to take effect")

        return Item(
            name="docker group membership",
            detect=lambda ctx: in_group(ctx.user, "docker"),
            install=install,
            manual="sudo usermod -aG docker $USER",
        )

    def items(self, ctx: "SetupContext") -> List[Item]:
        return [self._engine(), self._service(), self._group()]

    def finish(self, ctx: "SetupContext") -> None:
        if not self._installed_engine or ctx.dry_run:
            return
        logger.info("Testing Docker installation...")
        r = ctx.run(["docker", "run", "--rm", "hello-world"], root=True, check=False, timeout=120)
        if r.ok:
            log_success(logger, "Docker is working correctly!")
        else:
            logger.warning("Docker test failed, but installation completed")
            logger.info("You can test manually later with: sudo docker run hello-world")
