from __future__ import annotations

import ast
import logging
import os
import re
from typing import List, Optional, Sequence

from .command import Runner, command_exists, run_cmd

logger = logging.getLogger(__name__)


def is_gnome() -> bool:
    desktop = os.environ.get("XDG_CURRENT_DESKTOP", "").lower()
    if "gnome" in desktop or "zorin" in desktop:
        return True
    return command_exists("gnome-shell") or command_exists("gsettings")


def has_display() -> bool:
    return bool(os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))


def gvariant_str(value: str) -> str:
    """Quote a Python string as a GVariant string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def unquote(value: str) -> str:
    v = value.strip()
    if len(v) >= 2 and v[0] == v[-1] and v[0] in "'\"":
        return v[1:-1]
    return v


def parse_string_list(text: str) -> List[str]:
    """Parse a GVariant string array as printed by dconf/gsettings.

    Accepts "['a', 'b']", "@as ['a']", "@as []" and empty output.
    """
    v = (text or "").strip()
    if v.startswith("@as"):
        v = v[3:].strip()
    if not v:
        return []
    try:
        parsed = ast.literal_eval(v)
    except (ValueError, SyntaxError):
        logger.debug("Unparseable string list %r", text)
        return []
    if not isinstance(parsed, (list, tuple)):
        return []
    return [str(x) for x in parsed]


def format_string_list(items: Sequence[str]) -> str:
    if not items:
        return "@as []"
    return "[" + ", ".join(gvariant_str(i) for i in items) + "]"


def gsettings_get(schema: str, key: str, *, run: Runner = run_cmd) -> Optional[str]:
    if not command_exists("gsettings"):
        return None
    r = run(["gsettings", "get", schema, key], check=False, dry_run=False)
    return r.stdout.strip() if r.returncode == 0 else None


def gsettings_set(schema: str, key: str, value: str, *, run: Runner = run_cmd) -> bool:
    if not command_exists("gsettings"):
        return False
    r = run(["gsettings", "set", schema, key, value], check=False)
    if r.returncode != 0:
        logger.debug("gsettings set %s %s failed: %s", schema, key, r.stderr.strip())
    return r.returncode == 0


def dconf_read(path: str, *, run: Runner = run_cmd) -> Optional[str]:
    if not command_exists("dconf"):
        return None
    r = run(["dconf", "read", path], check=False, dry_run=False)
    return r.stdout.strip() if r.returncode == 0 else None


def dconf_write(path: str, value: str, *, run: Runner = run_cmd) -> bool:
    if not command_exists("dconf"):
        return False
    r = run(["dconf", "write", path, value], check=False)
    return r.returncode == 0


def dconf_list(path: str, *, run: Runner = run_cmd) -> List[str]:
    if not command_exists("dconf"):
        return []
    r = run(["dconf", "list", path], check=False, dry_run=False)
    if r.returncode != 0:
        return []
    return [line.strip() for line in r.stdout.splitlines() if line.strip()]


def shell_version(*, run: Runner = run_cmd) -> Optional[str]:
    """major.minor of the running GNOME Shell, e.g. "46.0"."""
    if not command_exists("gnome-shell"):
        return None
    r = run(["gnome-shell", "--version"], check=False, dry_run=False)
    m = re.search(r"(\d+)(?:\.(\d+))?", r.stdout or "")
    if not m:
        return None
    return f"{m.group(1)}.{m.group(2) or '0'}"


def reload_shell(*, run: Runner = run_cmd) -> bool:
    """Ask GNOME Shell to restart (X11 only; Wayland needs a re-login)."""

    script = 'Meta.restart("Restarting GNOME Shell...")'
    if command_exists("busctl"):
        r = run(
            ["busctl", "--user", "call", "org.gnome.Shell", "/org/gnome/Shell", "org.gnome.Shell", "Eval", "s", script],
            check=False,
        )
        if r.returncode == 0:
            return True
    if command_exists("dbus-send"):
        r = run(
            [
                "dbus-send",
                "--session",
                "--type=method_call",
                "--dest=org.gnome.Shell",
                "/org/gnome/Shell",
                "org.gnome.Shell.Eval",
                f"string:{script}",
            ],
            check=False,
        )
        if r.returncode == 0:
            return True
    return False
