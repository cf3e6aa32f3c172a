from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from ..errors import DownloadError, SetupError
from ..lib.command import command_exists
from ..lib.disk import GiB, ensure_free_space
from ..lib.pkg import apt_install, snap_installed
from .base import Item, ItemStep, snap_or_apt_item
from .step_04_editors import fetch_and_install_deb

if TYPE_CHECKING:
    from ..context import SetupContext

logger = logging.getLogger(__name__)

ANDROID_STUDIO_DIR = Path("/opt/android-studio")
ANDROID_STUDIO_TARBALL = "https://dl.google.com/dl/android/studio/ide-zips/latest/android-studio-linux.tar.gz"
ANDROID_STUDIO_SPACE = 4 * GiB
CMDLINE_TOOLS_URLS = (
    "https://dl.google.com/android/repository/commandlinetools-linux-9477386_latest.zip",
    "https://dl.google.com/android/repository/commandlinetools-latest-linux.zip",
)
DBEAVER_DEBS = (
    "https://dbeaver.io/files/dbeaver-ce_latest_amd64.deb",
    "https://github.com/dbeaver/dbeaver/releases/latest/download/dbeaver-ce_latest_amd64.deb",
)
POSTMAN_TARBALL = "https://dl.pstmn.io/download/latest/linux64"

ANDROID_STUDIO_DESKTOP = """[Desktop Entry]
Version=1.0
Type=Application
Name=Android Studio
Icon={root}/bin/studio.png
Exec="{root}/bin/studio.sh" %f
Comment=The Official IDE for Android
Categories=Development;IDE;
Terminal=false
MimeType=text/x-java;
"""

POSTMAN_DESKTOP = """[Desktop Entry]
Type=Application
Name=Postman
Exec=/opt/Postman/Postman
Icon=/opt/Postman/app/resources/app/assets/icon.png
Terminal=false
Categories=Development;
"""


def write_desktop_entry(ctx: "SetupContext", name: str, content: str) -> None:
    path = f"/usr/share/applications/{name}.desktop"
    ctx.run(["tee", path], root=True, input_text=content)
    ctx.run(["chmod", "+x", path], root=True)


def extract_tarball_to_opt(ctx: "SetupContext", url: str, name: str) -> None:
    with tempfile.TemporaryDirectory(prefix="dotfiles-tar-") as tmp:
        ensure_free_space(tmp, 1 * GiB)
        archive = ctx.downloader.fetch(url, Path(tmp) / f"{name}.tar.gz")
        ctx.run(["mkdir", "-p", "/opt"], root=True)
        ctx.run(["tar", "-xzf", str(archive), "-C", "/opt"], root=True)


def android_sdk_path(ctx: "SetupContext") -> Path:
    for candidate in (ctx.home / "Android/Sdk", ctx.home / "snap/android-studio/current/Android/Sdk"):
        if candidate.is_dir():
            return candidate
    return ctx.home / "Android/Sdk"


def find_sdkmanager(sdk: Path) -> Optional[Path]:
    latest = sdk / "cmdline-tools/latest/bin/sdkmanager"
    if latest.is_file():
        return latest
    tools = sdk / "cmdline-tools"
    if tools.is_dir():
        for p in tools.rglob("sdkmanager"):
            if p.is_file():
                return p
    return None


class DevToolsStep(ItemStep):
    step_id = "07_dev_tools"
    title = "Development tools"

    def _android_studio(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            return (
                command_exists("android-studio")
                or ANDROID_STUDIO_DIR.is_dir()
                or snap_installed("android-studio", run=ctx.run)
            )

        def install(ctx: "SetupContext") -> None:
            if command_exists("snap"):
                ctx.run(["snap", "install", "android-studio", "--classic"], root=True)
                return
            logger.warning("Snap not available, installing Android Studio manually...")
            apt_install([str(p) for p in ctx.packages("android_studio_deps") or []], apt=ctx.apt, run=ctx.run)
            ensure_free_space("/opt", ANDROID_STUDIO_SPACE)
            extract_tarball_to_opt(ctx, ANDROID_STUDIO_TARBALL, "android-studio")
            write_desktop_entry(ctx, "android-studio", ANDROID_STUDIO_DESKTOP.format(root=ANDROID_STUDIO_DIR))

        return Item(
            name="Android Studio",
            detect=detect,
            install=install,
            manual="sudo snap install android-studio --classic",
        )

    def _install_cmdline_tools(self, ctx: "SetupContext", sdk: Path) -> None:
        tools = sdk / "cmdline-tools"
        with tempfile.TemporaryDirectory(prefix="dotfiles-android-") as tmp:
            archive: Optional[Path] = None
            for url in CMDLINE_TOOLS_URLS:
                try:
                    archive = ctx.downloader.fetch(url, Path(tmp) / Path(url).name)
                    break
                except DownloadError:
                    logger.warning("Could not download %s, trying alternative...", Path(url).name)
            if archive is None:
                raise SetupError("Could not download Android SDK Command-line Tools")
            ctx.run(["mkdir", "-p", str(tools)])
            # unzip keeps the executable bits zipfile would drop.
            ctx.run(["unzip", "-q", "-o", str(archive), "-d", str(tools)])
            ctx.run(["mv", str(tools / "cmdline-tools"), str(tools / "latest")], check=False)

    def _android_sdk(self) -> Item:
        def detect(ctx: "SetupContext") -> bool:
            sdk = android_sdk_path(ctx)
            return find_sdkmanager(sdk) is not None and (sdk / "platform-tools").is_dir()

        def install(ctx: "SetupContext") -> None:
            sdk = android_sdk_path(ctx)
            if find_sdkmanager(sdk) is None:
                logger.info("Installing Android SDK Command-line Tools...")
                self._install_cmdline_tools(ctx, sdk)
            sdkmanager = find_sdkmanager(sdk)
            if sdkmanager is None:
                if ctx.dry_run:
                    return
                raise SetupError("sdkmanager not found after installing command-line tools")

            env = {"ANDROID_HOME": str(sdk), "ANDROID_SDK_ROOT": str(sdk)}
            logger.info("Accepting Android SDK licenses...")
            ctx.run([str(sdkmanager), "--licenses"], input_text="y\n" * 50, env=env, check=False)
            ctx.run([str(sdkmanager), "--update"], env=env, check=False)
            for component in ctx.packages("android_sdk_components") or []:
                logger.info("Installing %s...", component)
                r = ctx.run([str(sdkmanager), str(component)], env=env, check=False)
                if not r.ok:
                    logger.warning("Could not install %s", component)
            if not ctx.run([str(sdkmanager), "emulator"], env=env, check=False).ok:
                logger.warning("Emulator installation skipped (can be installed later)")
            logger.info("SDK Location: %s", sdk)

        return Item(
            name="Android SDK",
            detect=detect,
            install=install,
            required=False,
            manual="Open Android Studio and complete the setup wizard",
        )

    def _postman_fallback(self, ctx: "SetupContext") -> None:
        extract_tarball_to_opt(ctx, POSTMAN_TARBALL, "postman")
        write_desktop_entry(ctx, "postman", POSTMAN_DESKTOP)
        ctx.run(["ln", "-sf", "/opt/Postman/Postman", "/usr/local/bin/postman"], root=True)

    def items(self, ctx: "SetupContext") -> List[Item]:
        return [
            self._android_studio(),
            self._android_sdk(),
            snap_or_apt_item(
                "DBeaver",
                snap="dbeaver-ce",
                command="dbeaver",
                apt_package="dbeaver-ce",
                fallback=lambda c: fetch_and_install_deb(c, DBEAVER_DEBS, "dbeaver"),
                required=False,
                manual="Install manually from https://dbeaver.io",
            ),
            snap_or_apt_item(
                "Postman",
                snap="postman",
                command="postman",
                fallback=self._postman_fallback,
                required=False,
                manual="Install manually from https://www.postman.com/downloads/",
            ),
        ]
