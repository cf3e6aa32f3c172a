from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DOTFILES = (".zshrc", ".gitconfig", ".aliases")


def backup_path(path: Path) -> Path:
    """<path>.backup, or <path>.backup.N if earlier backups exist."""
    candidate = path.with_name(path.name + ".backup")
    n = 1
    while candidate.exists() or candidate.is_symlink():
        candidate = path.with_name(f"{path.name}.backup.{n}")
        n += 1
    return candidate


def is_linked(link: Path, target: Path) -> bool:
    return link.is_symlink() and Path(os.readlink(link)) == target


def link_with_backup(target: str | Path, link: str | Path) -> Optional[Path]:
    """Point `link` at `target`, keeping any regular file it replaces.

    Returns the backup path when a pre-existing file was moved aside.
    Existing symlinks are replaced without a backup.
    """

    target = Path(target)
    link = Path(link)
    if is_linked(link, target):
        logger.debug("%s already links to %s", link, target)
        return None

    backup: Optional[Path] = None
    if link.is_symlink():
        link.unlink()
    elif link.exists():
        backup = backup_path(link)
        logger.warning("Backing up existing %s to %s", link.name, backup.name)
        link.rename(backup)

    link.parent.mkdir(parents=True, exist_ok=True)
    link.symlink_to(target)
    return backup


def install_dotfiles(source_dir: str | Path, store_dir: str | Path, home: str | Path, names: Iterable[str] = DOTFILES) -> List[str]:
    """Copy dotfiles into a persistent store and link them into home.

    Returns the names that were (re)linked.
    """

    source_dir = Path(source_dir)
    store_dir = Path(store_dir)
    store_dir.mkdir(parents=True, exist_ok=True)
    changed: List[str] = []
    for name in names:
        src = source_dir / name
        if not src.is_file():
            logger.warning("Dotfile %s missing from %s", name, source_dir)
            continue
        stored = store_dir / name
        if src.resolve() != stored.resolve():
            shutil.copyfile(src, stored)
        link = Path(home) / name
        if not is_linked(link, stored):
            link_with_backup(stored, link)
            changed.append(name)
    return changed


def dotfiles_linked(store_dir: str | Path, home: str | Path, names: Iterable[str] = DOTFILES) -> bool:
    store_dir = Path(store_dir)
    return all(is_linked(Path(home) / n, store_dir / n) and (store_dir / n).is_file() for n in names)


def ensure_directories(paths: Iterable[str | Path]) -> List[Path]:
    created: List[Path] = []
    for p in paths:
        p = Path(p)
        if not p.is_dir():
            p.mkdir(parents=True, exist_ok=True)
            created.append(p)
    return created
