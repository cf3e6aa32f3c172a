from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from .command import Runner, command_exists, run_cmd
from .download import Downloader

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
KEYRINGS_DIR = "/etc/apt/keyrings"
SOURCES_DIR = "/etc/apt/sources.list.d"


class AptIndex:
    """`apt-get update` at most once per run unless forced."""

    def __init__(self, *, run: Runner = run_cmd) -> None:
        self._run = run
        self.fresh = False
        self.refresh_count = 0

    def update(self, *, force: bool = False) -> None:
        if self.fresh and not force:
            logger.debug("Package lists already updated in this run")
            return
        logger.info("Updating package lists...")
        self._run(["apt-get", "update", "-qq"], root=True, env=APT_ENV)
        self.fresh = True
        self.refresh_count += 1


def dpkg_installed(package: str, *, run: Runner = run_cmd) -> bool:
    """True if dpkg reports the package as installed ("ii").

    Missing dpkg or an unreadable database means "not installed".
    """
    if not command_exists("dpkg-query"):
        return False
    r = run(["dpkg-query", "-W", "-f=${db:Status-Abbrev}", package], check=False, dry_run=False)
    return r.returncode == 0 and r.stdout.startswith("ii")


def apt_install(
    packages: Sequence[str],
    *,
    apt: Optional[AptIndex] = None,
    run: Runner = run_cmd,
) -> None:
    if not packages:
        return
    if apt is not None:
        apt.update()
    run(["apt-get", "install", "-y", *packages], root=True, env=APT_ENV)


def apt_remove(packages: Sequence[str], *, run: Runner = run_cmd) -> None:
    # Legacy packages are often absent; apt-get errors on unknown names.
    run(["apt-get", "remove", "-y", *packages], root=True, env=APT_ENV, check=False)


def apt_upgrade(*, apt: Optional[AptIndex] = None, run: Runner = run_cmd) -> None:
    if apt is not None:
        apt.update()
    run(["apt-get", "upgrade", "-y"], root=True, env=APT_ENV)


def apt_cleanup(*, run: Runner = run_cmd) -> None:
    logger.info("Cleaning up...")
    run(["apt-get", "autoremove", "-y"], root=True, env=APT_ENV, check=False)
    run(["apt-get", "autoclean", "-y"], root=True, env=APT_ENV, check=False)


def install_deb(path: str | Path, *, run: Runner = run_cmd) -> None:
    """dpkg -i, repairing missing dependencies with apt-get -f if needed."""

    r = run(["dpkg", "-i", str(path)], root=True, check=False)
    if r.returncode == 0:
        return
    logger.info("Resolving missing dependencies for %s", Path(path).name)
    run(["apt-get", "install", "-f", "-y"], root=True, env=APT_ENV)
    run(["dpkg", "-i", str(path)], root=True)


def snap_available() -> bool:
    return command_exists("snap")


def snap_installed(name: str, *, run: Runner = run_cmd) -> bool:
    if not snap_available():
        return False
    r = run(["snap", "list", name], check=False, dry_run=False)
    return r.returncode == 0


def snap_install(name: str, *, classic: bool = False, run: Runner = run_cmd) -> None:
    argv = ["snap", "install", name]
    if classic:
        argv.append("--classic")
    run(argv, root=True)


def dpkg_architecture(*, run: Runner = run_cmd) -> str:
    r = run(["dpkg", "--print-architecture"], check=False, dry_run=False)
    return r.stdout.strip() if r.returncode == 0 and r.stdout.strip() else "amd64"


def distro_codename(*, run: Runner = run_cmd, default: str = "jammy") -> str:
    """Ubuntu base codename (Zorin reports its own codename via lsb_release)."""
    from .osinfo import read_os_release

    info = read_os_release()
    codename = info.get("UBUNTU_CODENAME") or info.get("VERSION_CODENAME")
    if codename:
        return codename
    r = run(["lsb_release", "-cs"], check=False, dry_run=False)
    return r.stdout.strip() or default


def add_apt_source(
    name: str,
    *,
    key_url: str,
    source_line: str,
    downloader: Downloader,
    apt: AptIndex,
    dearmor: bool = True,
    run: Runner = run_cmd,
) -> None:
    """Register a signed third-party apt repository.

    The key lands in /etc/apt/keyrings/<name>.gpg and source_line may refer
    to it through the `{keyring}` placeholder. The package index is force
    refreshed so the new source is visible to the next install.
    """

    keyring = f"{KEYRINGS_DIR}/{name}.gpg"
    with tempfile.TemporaryDirectory(prefix="dotfiles-key-") as tmp:
        raw = downloader.fetch(key_url, Path(tmp) / f"{name}.key", timeout=60, use_cache=False)
        key_file = raw
        if dearmor:
            key_file = Path(tmp) / f"{name}.gpg"
            run(["gpg", "--dearmor", "--yes", "-o", str(key_file), str(raw)])
        run(["install", "-D", "-o", "root", "-g", "root", "-m", "644", str(key_file), keyring], root=True)

    line = source_line.format(keyring=keyring)
    run(["tee", f"{SOURCES_DIR}/{name}.list"], root=True, input_text=line + "\n")
    logger.info("Added apt repository %s", name)
    apt.update(force=True)
