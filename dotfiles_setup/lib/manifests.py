from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional


def _package_root() -> Path:
    # dotfiles_setup/lib/manifests.py -> dotfiles_setup
    return Path(__file__).resolve().parents[1]


def load_yaml_rel(rel_path: str) -> Dict[str, Any]:
    """Load a YAML file relative to the package (manifests/...)."""
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("PyYAML required to load manifests") from e

    p = _package_root() / rel_path.lstrip("/")
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a mapping/dict: {p}")
    return data


def load_packages_manifest(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Bundled package manifest with top-level keys replaced from config."""

    data = load_yaml_rel("manifests/packages.yaml")
    for key, value in (overrides or {}).items():
        data[key] = value
    return data


def assets_root() -> Path:
    return _package_root() / "assets"
