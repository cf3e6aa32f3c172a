from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .lib.download import DEFAULT_CACHE_DIR
from .lib.net import DEFAULT_PROBE_HOSTS
from .lib.remote import DEFAULT_BASE_URL
from .lib.sudo import DEFAULT_RENEW_INTERVAL_S

CONFIG_ENV = "DOTFILES_SETUP_CONFIG"


@dataclass(frozen=True)
class SetupConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    def _number(self, section: str, key: str, default: float, *, minimum: float = 0, strict: bool = True) -> float:
        """Numeric setting; the default applies only when the key is absent."""
        v = self._section(section).get(key)
        n = float(default if v is None else v)
        if n < minimum or (strict and n == minimum):
            bound = ">" if strict else ">="
            raise ValueError(f"{section}.{key} must be {bound} {minimum}, got {v}")
        return n

    @property
    def cache_dir(self) -> str:
        return os.path.expanduser(str(self._section("paths").get("cache_dir") or DEFAULT_CACHE_DIR))

    @property
    def download_retries(self) -> int:
        return int(self._number("download", "retries", 3, minimum=1, strict=False))

    @property
    def download_timeout(self) -> float:
        return self._number("download", "timeout", 300)

    @property
    def download_connect_timeout(self) -> float:
        return self._number("download", "connect_timeout", 30)

    @property
    def download_retry_delay(self) -> float:
        return self._number("download", "retry_delay", 5, strict=False)

    @property
    def keepalive_interval(self) -> float:
        return self._number("sudo", "keepalive_interval", DEFAULT_RENEW_INTERVAL_S)

    @property
    def connectivity_hosts(self) -> List[str]:
        return [str(h) for h in (self._section("connectivity").get("hosts") or DEFAULT_PROBE_HOSTS)]

    @property
    def remote_base_url(self) -> str:
        return str(self._section("remote").get("base_url") or DEFAULT_BASE_URL)

    @property
    def essentials_upgrade(self) -> bool:
        return bool(self._section("essentials").get("upgrade", False))

    @property
    def user_name(self) -> Optional[str]:
        v = self._section("user").get("name")
        return str(v) if v else None

    @property
    def user_email(self) -> Optional[str]:
        v = self._section("user").get("email")
        return str(v) if v else None

    @property
    def packages(self) -> Dict[str, Any]:
        return dict(self.raw.get("packages") or {})

    def validate(self) -> None:
        for name in ("download_retries", "download_timeout", "download_connect_timeout", "download_retry_delay", "keepalive_interval"):
            getattr(self, name)


def load_setup_config(path: Optional[str]) -> SetupConfig:
    """YAML config, or defaults when no path is given or the file is absent."""

    if not path:
        return SetupConfig()
    p = Path(path).expanduser()
    if not p.exists():
        return SetupConfig()

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("setup config must be YAML")

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read the setup config") from e

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{p} must contain a mapping/object")

    cfg = SetupConfig(raw=raw)
    cfg.validate()
    return cfg
