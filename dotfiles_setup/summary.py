from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .lib.command import Runner, command_exists, run_cmd

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"v?\d+(?:\.\d+)+")


@dataclass(frozen=True)
class VersionCheck:
    group: str
    label: str
    command: str
    args: Tuple[str, ...] = ("--version",)

    def argv(self) -> List[str]:
        return [self.command, *self.args]


CHECKS: Sequence[VersionCheck] = (
    VersionCheck("Core Tools", "Git", "git"),
    VersionCheck("Core Tools", "Zsh", "zsh"),
    VersionCheck("Core Tools", "Node.js", "node"),
    VersionCheck("Core Tools", "npm", "npm"),
    VersionCheck("Core Tools", "Yarn", "yarn"),
    VersionCheck("Core Tools", "pnpm", "pnpm"),
    VersionCheck("Core Tools", "Bun", "bun"),
    VersionCheck("Code Editors", "VS Code", "code"),
    VersionCheck("Code Editors", "Cursor", "cursor"),
    VersionCheck("Development Tools", "Docker", "docker"),
    VersionCheck("Development Tools", "Java", "java", ("-version",)),
    VersionCheck("Development Tools", "DBeaver", "dbeaver", ()),
    VersionCheck("Development Tools", "Postman", "postman", ()),
    VersionCheck("Applications", "Google Chrome", "google-chrome"),
    VersionCheck("Applications", "Brave Browser", "brave-browser"),
    VersionCheck("Applications", "Firefox", "firefox"),
    VersionCheck("Applications", "Spotify", "spotify", ()),
    VersionCheck("Applications", "Discord", "discord", ()),
    VersionCheck("Applications", "NordVPN", "nordvpn"),
    VersionCheck("Extras", "Python", "python3"),
    VersionCheck("Extras", "GitHub CLI", "gh"),
)


def parse_version(text: str) -> Optional[str]:
    m = _VERSION_RE.search(text or "")
    return m.group(0) if m else None


def probe_version(
    check: VersionCheck,
    *,
    run: Runner = run_cmd,
    exists: Callable[[str], bool] = command_exists,
) -> Optional[str]:
    """Version string, "installed" when unreadable, None when absent."""

    if not exists(check.command):
        return None
    if not check.args:
        return "installed"
    try:
        r = run(check.argv(), check=False, timeout=10, dry_run=False)
    except Exception as e:
        logger.debug("Version probe for %s failed: %s", check.label, e)
        return "installed"
    # java -version prints to stderr.
    return parse_version(r.stdout) or parse_version(r.stderr) or "installed"


def collect_versions(
    checks: Sequence[VersionCheck] = CHECKS,
    *,
    run: Runner = run_cmd,
    exists: Callable[[str], bool] = command_exists,
) -> List[Tuple[str, str, str]]:
    found: List[Tuple[str, str, str]] = []
    for check in checks:
        version = probe_version(check, run=run, exists=exists)
        if version is not None:
            found.append((check.group, check.label, version))
    return found


def log_versions(rows: Sequence[Tuple[str, str, str]]) -> None:
    group = None
    for g, label, version in rows:
        if g != group:
            logger.info("%s:", g)
            group = g
        logger.info("  • %s: %s", label, version)
