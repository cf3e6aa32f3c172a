from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import DownloadError, SetupError
from .command import Runner, command_exists, run_cmd
from .download import Downloader
from .gnome import dconf_read, dconf_write, format_string_list, parse_string_list

logger = logging.getLogger(__name__)

REGISTRY_URL = "https://extensions.gnome.org"
ENABLED_KEY = "/org/gnome/shell/enabled-extensions"


def extensions_dir(home: str | Path) -> Path:
    return Path(home) / ".local/share/gnome-shell/extensions"


@dataclass(frozen=True)
class ExtensionSpec:
    """An extension we want, as listed in the manifest."""

    name: str
    pk: int
    uuid: str

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExtensionSpec":
        return cls(name=str(d["name"]), pk=int(d["id"]), uuid=str(d["uuid"]))


@dataclass(frozen=True)
class ExtensionInfo:
    """The subset of /extension-info/ we rely on."""

    uuid: str
    name: str
    version: Optional[int]
    download_url: Optional[str]

    @classmethod
    def from_json(cls, data: Dict[str, Any], *, base_url: str = REGISTRY_URL) -> "ExtensionInfo":
        version = data.get("version")
        try:
            version = int(version) if version is not None else None
        except (TypeError, ValueError):
            version = None
        url = data.get("download_url") or None
        if url and not str(url).startswith("http"):
            url = base_url.rstrip("/") + "/" + str(url).lstrip("/")
        return cls(
            uuid=str(data.get("uuid") or ""),
            name=str(data.get("name") or ""),
            version=version,
            download_url=url,
        )


class ExtensionRegistry:
    """Client for the extensions.gnome.org JSON API."""

    def __init__(self, downloader: Downloader, *, base_url: str = REGISTRY_URL) -> None:
        self.downloader = downloader
        self.base_url = base_url.rstrip("/")

    def info(self, pk: int, shell_version: str) -> Optional[ExtensionInfo]:
        url = f"{self.base_url}/extension-info/?pk={pk}&shell_version={shell_version}"
        try:
            data = self.downloader.get_json(url)
        except DownloadError as e:
            logger.debug("Registry lookup failed for %s: %s", pk, e)
            return None
        if not isinstance(data, dict):
            return None
        return ExtensionInfo.from_json(data, base_url=self.base_url)

    def data_url(self, uuid: str, version: int) -> str:
        return f"{self.base_url}/extension-data/{uuid}.v{version}.shell-extension.zip"

    def resolve_download_url(self, ext: ExtensionSpec, shell_version: str) -> Optional[str]:
        """Best download URL for this shell.

        Tries the exact shell version, then "<major>.0", then builds the
        extension-data URL from whatever version number the API reported.
        """

        candidates = [shell_version]
        major = shell_version.split(".", 1)[0]
        if f"{major}.0" != shell_version:
            candidates.append(f"{major}.0")

        version: Optional[int] = None
        for v in candidates:
            info = self.info(ext.pk, v)
            if info is None:
                continue
            if info.download_url:
                return info.download_url
            if version is None and info.version is not None:
                version = info.version

        if version is not None:
            logger.info("Constructed download URL for %s with version %s", ext.name, version)
            return self.data_url(ext.uuid, version)
        return None


def is_installed(uuid: str, home: str | Path) -> bool:
    return (extensions_dir(home) / uuid / "metadata.json").is_file()


def _fix_permissions(root: Path) -> None:
    for dirpath, dirnames, filenames in os.walk(root):
        os.chmod(dirpath, 0o755)
        for f in filenames:
            os.chmod(os.path.join(dirpath, f), 0o644)


def install_from_zip(zip_path: str | Path, uuid: str, home: str | Path) -> Path:
    """Unpack an extension zip into ~/.local/share/gnome-shell/extensions/<uuid>."""

    zip_path = Path(zip_path)
    if not zipfile.is_zipfile(zip_path):
        raise SetupError(f"Downloaded file is not a valid ZIP for extension {uuid}")

    base = extensions_dir(home)
    base.mkdir(parents=True, exist_ok=True)
    target = base / uuid

    with tempfile.TemporaryDirectory(prefix=".install-", dir=str(base)) as tmp:
        staging = Path(tmp) / "ext"
        with zipfile.ZipFile(zip_path) as zf:
            zf.extractall(staging)

        # Some archives wrap everything in a directory named after the uuid.
        nested = staging / uuid
        root = nested if (nested.is_dir() and not (staging / "metadata.json").exists()) else staging

        metadata = root / "metadata.json"
        if not metadata.is_file():
            raise SetupError(f"Extension {uuid} extracted but metadata.json not found")

        meta = json.loads(metadata.read_text(encoding="utf-8"))
        if meta.get("uuid") != uuid:
            logger.info("Fixing UUID in metadata.json: %s -> %s", meta.get("uuid"), uuid)
            meta["uuid"] = uuid
            metadata.write_text(json.dumps(meta, indent=2), encoding="utf-8")

        _fix_permissions(root)
        if target.exists():
            shutil.rmtree(target)
        shutil.move(str(root), str(target))

    logger.info("Extension %s installed", uuid)
    return target


def enabled_extensions(*, run: Runner = run_cmd) -> List[str]:
    return parse_string_list(dconf_read(ENABLED_KEY, run=run) or "")


def extension_state(uuid: str, *, run: Runner = run_cmd) -> Optional[str]:
    """ACTIVE / ENABLED / DISABLED / ... as reported by gnome-extensions."""
    if not command_exists("gnome-extensions"):
        return None
    r = run(["gnome-extensions", "info", uuid], check=False, dry_run=False)
    if r.returncode != 0:
        return None
    for line in r.stdout.splitlines():
        key, _, value = line.strip().partition(":")
        if key == "State":
            return value.strip().upper()
    return None


def is_enabled(uuid: str, *, run: Runner = run_cmd) -> bool:
    if extension_state(uuid, run=run) in {"ACTIVE", "ENABLED"}:
        return True
    return uuid in enabled_extensions(run=run)


def enable_extension(uuid: str, home: str | Path, *, run: Runner = run_cmd) -> bool:
    """Enable through gnome-extensions, falling back to the dconf list."""

    if not is_installed(uuid, home):
        logger.warning("Extension %s not found in %s", uuid, extensions_dir(home))
        return False

    if command_exists("gnome-extensions"):
        r = run(["gnome-extensions", "enable", uuid], check=False)
        if r.returncode == 0:
            logger.debug("Enabled %s via gnome-extensions", uuid)
            return True

    current = enabled_extensions(run=run)
    if uuid in current:
        logger.info("Extension %s already enabled", uuid)
        return True
    if dconf_write(ENABLED_KEY, format_string_list([*current, uuid]), run=run):
        logger.info("Extension %s enabled via dconf", uuid)
        return True

    logger.warning("Could not enable extension %s automatically", uuid)
    return False
