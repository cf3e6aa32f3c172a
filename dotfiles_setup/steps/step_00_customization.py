from __future__ import annotations

import fnmatch
import logging
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from ..lib import gnome
from ..lib.command import command_exists
from ..lib.extensions import (
    ExtensionRegistry,
    ExtensionSpec,
    enable_extension,
    install_from_zip,
    is_enabled,
    is_installed,
)
from ..lib.gnome import gvariant_str, unquote
from ..errors import SetupError
from .base import Item, ItemStep, apt_item

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

SYSTEM_THEMES = Path("/usr/share/themes")
YARU_DARK = ("Yaru-dark", "Yaru-purple-dark", "Yaru-blue-dark", "Yaru-green-dark", "Yaru-red-dark", "Yaru-orange-dark")
FALLBACK_DARK = "Adwaita-dark"

TERMINAL_PROFILES = "/org/gnome/terminal/legacy/profiles:/"
NORD_BG = "rgb(46,52,64)"
NORD_FG = "rgb(216,222,233)"
NORD_PALETTE = [
    "rgb(46,52,64)",
    "rgb(191,97,106)",
    "rgb(163,190,140)",
    "rgb(235,203,139)",
    "rgb(129,161,193)",
    "rgb(180,142,173)",
    "rgb(136,192,208)",
    "rgb(216,222,233)",
    "rgb(88,110,117)",
    "rgb(191,97,106)",
    "rgb(163,190,140)",
    "rgb(235,203,139)",
    "rgb(129,161,193)",
    "rgb(180,142,173)",
    "rgb(136,192,208)",
    "rgb(236,239,244)",
]
TERMINAL_FONT = "JetBrains Mono 11"

WALLPAPER_NAMES = ("background", "wallpaper", "desktop")
WALLPAPER_EXTS = ("jpg", "jpeg", "png", "webp")

VITALS_UUID = "Vitals@CoreCoding.com"
VITALS_SETTINGS = {
    "show-temperature": "true",
    "show-voltage": "false",
    "show-fan": "false",
    "show-frequency": "false",
    "show-memory": "true",
    "show-cpu": "true",
    "show-network": "true",
    "show-disk": "false",
    "show-battery": "true",
}

DEFAULT_SHELL_VERSION = "44.0"


def is_dark(theme: str) -> bool:
    return theme.endswith("-dark") or theme.endswith("Dark")


def choose_dark_theme(current: str, theme_dirs: Sequence[Path]) -> str:
    """Dark variant of the current GTK theme if installed, else Yaru, else Adwaita."""

    def installed(name: str) -> bool:
        return any((d / name).is_dir() for d in theme_dirs)

    if current and is_dark(current):
        return current
    if current:
        if current.endswith("-light"):
            candidate = current[: -len("-light")] + "-dark"
        elif current.endswith("Light"):
            candidate = current[: -len("Light")] + "Dark"
        else:
            candidate = current + "-dark"
        if installed(candidate):
            return candidate
    for name in YARU_DARK:
        if installed(name):
            return name
    return FALLBACK_DARK


def find_wallpaper(directory: Path) -> Optional[Path]:
    for name in WALLPAPER_NAMES:
        for ext in WALLPAPER_EXTS:
            for candidate in (directory / f"{name}.{ext}", directory / f"{name}.{ext.upper()}"):
                if candidate.is_file():
                    return candidate
    return None


def extract_fonts(zip_path: Path, dest: Path, patterns: Iterable[str]) -> int:
    """Copy the font files matching patterns out of a release zip, flattened."""

    dest.mkdir(parents=True, exist_ok=True)
    patterns = list(patterns)
    count = 0
    with zipfile.ZipFile(zip_path) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            base = Path(info.filename).name
            if not any(fnmatch.fnmatch(base, p) for p in patterns):
                continue
            with zf.open(info) as src, open(dest / base, "wb") as out:
                shutil.copyfileobj(src, out)
            count += 1
    return count


class CustomizationStep(ItemStep):
    step_id = "00_customization"
    title = "Visual customization"
    critical = False

    def __init__(self) -> None:
        self._fonts_changed = False
        self._extensions_changed = False

    # fonts

    def fonts_dir(self, ctx: "SetupContext") -> Path:
        return ctx.home / ".local/share/fonts"

    def _font_item(self, font: dict) -> Item:
        family = str(font["family"])
        marker = str(font.get("marker") or f"{family}-Regular.ttf")
        url = str(font["url"])
        patterns = list(font.get("patterns") or ["*.ttf"])

        def detect(ctx: "SetupContext") -> bool:
            root = self.fonts_dir(ctx)
            return (root / marker).is_file() or (root / family / marker).is_file()

        def install(ctx: "SetupContext") -> None:
            with tempfile.TemporaryDirectory(prefix="dotfiles-font-") as tmp:
                archive = ctx.downloader.fetch(url, Path(tmp) / Path(url).name)
                if ctx.dry_run:
                    return
                n = extract_fonts(archive, self.fonts_dir(ctx) / family, patterns)
                if n == 0:
                    raise SetupError(f"No font files found in {Path(url).name}")
            self._fonts_changed = True

        return Item(
            name=f"{family} font",
            detect=detect,
            install=install,
            required=False,
            manual=f"Download {url} and copy the fonts to ~/.local/share/fonts/{family}",
        )

    def _has_font(self, ctx: "SetupContext", family: str) -> bool:
        return (self.fonts_dir(ctx) / family).is_dir()

    # appearance

    def _appearance_item(self) -> Item:
        def current_theme(ctx: "SetupContext") -> str:
            return unquote(gnome.gsettings_get("org.gnome.desktop.interface", "gtk-theme", run=ctx.run) or "")

        def detect(ctx: "SetupContext") -> bool:
            scheme = unquote(gnome.gsettings_get("org.gnome.desktop.interface", "color-scheme", run=ctx.run) or "")
            return scheme == "prefer-dark" and is_dark(current_theme(ctx))

        def install(ctx: "SetupContext") -> None:
            current = current_theme(ctx)
            theme = choose_dark_theme(current, [SYSTEM_THEMES, ctx.home / ".themes"])
            if theme != current:
                gnome.gsettings_set("org.gnome.desktop.interface", "gtk-theme", gvariant_str(theme), run=ctx.run)
                gnome.dconf_write("/org/gnome/desktop/interface/gtk-theme", gvariant_str(theme), run=ctx.run)
                logger.info("Dark theme applied: %s", theme)
            if not gnome.gsettings_set("org.gnome.desktop.interface", "color-scheme", "'prefer-dark'", run=ctx.run):
                raise SetupError("Could not set color-scheme", hint="gsettings set org.gnome.desktop.interface color-scheme 'prefer-dark'")
            gnome.dconf_write("/org/gnome/desktop/interface/color-scheme", "'prefer-dark'", run=ctx.run)

            # Zorin keeps its own copy of the appearance settings.
            if command_exists("zorin-appearance"):
                gnome.dconf_write("/org/zorin/desktop/interface/color-scheme", "'prefer-dark'", run=ctx.run)
            if "Yaru" in theme and Path("/usr/share/gnome-shell/theme/Yaru-dark").is_dir():
                gnome.dconf_write("/org/gnome/shell/theme/name", "'Yaru-dark'", run=ctx.run)
            gnome.dconf_write("/org/gnome/gedit/preferences/editor/scheme", "'classic-dark'", run=ctx.run)
            gnome.dconf_write("/org/gnome/nautilus/preferences/use-dark-theme", "true", run=ctx.run)

            if self._has_font(ctx, "Inter"):
                gnome.gsettings_set("org.gnome.desktop.interface", "font-name", "'Inter 11'", run=ctx.run)
                gnome.gsettings_set("org.gnome.desktop.interface", "document-font-name", "'Inter 11'", run=ctx.run)
            if self._has_font(ctx, "JetBrainsMono"):
                gnome.gsettings_set("org.gnome.desktop.interface", "monospace-font-name", gvariant_str(TERMINAL_FONT), run=ctx.run)

        return Item(
            name="Dark theme",
            detect=detect,
            install=install,
            manual="gsettings set org.gnome.desktop.interface color-scheme 'prefer-dark'",
        )

    # terminal

    def _terminal_profile(self, ctx: "SetupContext") -> Optional[str]:
        default = unquote(gnome.dconf_read(TERMINAL_PROFILES + "default", run=ctx.run) or "")
        if default:
            return default
        for entry in gnome.dconf_list(TERMINAL_PROFILES, run=ctx.run):
            if entry.startswith(":"):
                return entry.strip(":/")
        return None

    def _terminal_item(self) -> Item:
        def key(profile: str, name: str) -> str:
            return f"{TERMINAL_PROFILES}:{profile}/{name}"

        def detect(ctx: "SetupContext") -> bool:
            profile = self._terminal_profile(ctx)
            if not profile:
                return False
            palette = gnome.parse_string_list(gnome.dconf_read(key(profile, "palette"), run=ctx.run) or "")
            return palette == NORD_PALETTE

        def install(ctx: "SetupContext") -> None:
            profile = self._terminal_profile(ctx)
            if not profile:
                raise SetupError("Could not find a GNOME Terminal profile to configure")
            values = {
                "background-color": gvariant_str(NORD_BG),
                "foreground-color": gvariant_str(NORD_FG),
                "cursor-colors-set": "true",
                "cursor-background-color": gvariant_str(NORD_FG),
                "cursor-foreground-color": gvariant_str(NORD_BG),
                "palette": gnome.format_string_list(NORD_PALETTE),
                "use-theme-colors": "false",
            }
            if self._has_font(ctx, "JetBrainsMono"):
                values["use-system-font"] = "false"
                values["font"] = gvariant_str(TERMINAL_FONT)
            for name, value in values.items():
                gnome.dconf_write(key(profile, name), value, run=ctx.run)
            gnome.dconf_write(TERMINAL_PROFILES + "default", gvariant_str(profile), run=ctx.run)

        return Item(name="Terminal Nord profile", detect=detect, install=install, required=False)

    # wallpaper

    def _wallpaper_item(self, source: Path) -> Item:
        def dest(ctx: "SetupContext") -> Path:
            return ctx.home / "Pictures" / f"background{source.suffix.lower()}"

        def uri(ctx: "SetupContext") -> str:
            return dest(ctx).resolve().as_uri()

        def detect(ctx: "SetupContext") -> bool:
            current = unquote(gnome.gsettings_get("org.gnome.desktop.background", "picture-uri", run=ctx.run) or "")
            return dest(ctx).is_file() and current == uri(ctx)

        def install(ctx: "SetupContext") -> None:
            target = dest(ctx)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            logger.info("Wallpaper copied to: %s", target)
            value = gvariant_str(uri(ctx))
            ok = gnome.gsettings_set("org.gnome.desktop.background", "picture-uri", value, run=ctx.run)
            gnome.gsettings_set("org.gnome.desktop.background", "picture-uri-dark", value, run=ctx.run)
            gnome.gsettings_set("org.gnome.desktop.background", "picture-options", "'zoom'", run=ctx.run)
            if not ok:
                raise SetupError(
                    "gsettings not available, wallpaper copied but not set",
                    hint=f"gsettings set org.gnome.desktop.background picture-uri {value}",
                )

        return Item(name="Wallpaper", detect=detect, install=install, required=False)

    # extensions

    def _extension_item(self, ext: ExtensionSpec) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return is_installed(ext.uuid, ctx.home) and is_enabled(ext.uuid, run=ctx.run)

        def install(ctx: "SetupContext") -> None:
            if not is_installed(ext.uuid, ctx.home):
                version = gnome.shell_version(run=ctx.run) or DEFAULT_SHELL_VERSION
                url = ExtensionRegistry(ctx.downloader).resolve_download_url(ext, version)
                if not url:
                    raise SetupError(f"No download available for {ext.name} on GNOME Shell {version}")
                with tempfile.TemporaryDirectory(prefix="dotfiles-ext-") as tmp:
                    archive = ctx.downloader.fetch(url, Path(tmp) / f"{ext.uuid}.zip", timeout=120, connect_timeout=30)
                    if ctx.dry_run:
                        return
                    install_from_zip(archive, ext.uuid, ctx.home)
            if not enable_extension(ext.uuid, ctx.home, run=ctx.run):
                raise SetupError(f"{ext.name} installed but could not be enabled", hint=f"gnome-extensions enable {ext.uuid}")
            if ext.uuid == VITALS_UUID:
                for name, value in VITALS_SETTINGS.items():
                    gnome.dconf_write(f"/org/gnome/shell/extensions/vitals/{name}", value, run=ctx.run)
            self._extensions_changed = True

        return Item(
            name=f"{ext.name} extension",
            detect=detect,
            install=install,
            required=False,
            manual=f"Install from https://extensions.gnome.org/extension/{ext.pk}/",
        )

    # step

    def items(self, ctx: "SetupContext") -> List[Item]:
        items = [self._font_item(f) for f in ctx.packages("fonts") or []]
        if not gnome.is_gnome():
            return items

        items.append(self._appearance_item())
        if command_exists("gnome-terminal") and gnome.has_display():
            items.append(self._terminal_item())

        wallpaper = find_wallpaper(ctx.assets_dir / "wallpapers")
        if wallpaper is not None:
            items.append(self._wallpaper_item(wallpaper))

        for pkg in ctx.packages("extension_support") or []:
            items.append(apt_item(str(pkg), required=False))
        for d in ctx.packages("gnome_extensions") or []:
            items.append(self._extension_item(ExtensionSpec.from_dict(d)))
        return items

    def prepare(self, ctx: "SetupContext") -> None:
        if not gnome.is_gnome():
            logger.warning("Not running in GNOME environment, skipping GNOME customization")
        elif find_wallpaper(ctx.assets_dir / "wallpapers") is None:
            logger.info("No wallpaper found in %s (background|wallpaper|desktop .jpg/.png/.webp)", ctx.assets_dir / "wallpapers")

    def finish(self, ctx: "SetupContext") -> None:
        if self._fonts_changed and command_exists("fc-cache"):
            ctx.run(["fc-cache", "-f", str(self.fonts_dir(ctx))], check=False)
            logger.info("Font cache updated")
        if self._extensions_changed and not gnome.reload_shell(run=ctx.run):
            logger.info("Log out and back in (or press Alt+F2, r) to activate new extensions")
