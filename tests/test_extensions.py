"""
Tests for GNOME Shell extension lookup, unpacking and enabling.
"""

import json
import stat
import zipfile
from pathlib import Path

import httpx
import pytest

from dotfiles_setup.errors import SetupError
from dotfiles_setup.lib import extensions, gnome
from dotfiles_setup.lib.extensions import (
    ENABLED_KEY,
    ExtensionRegistry,
    ExtensionSpec,
    enable_extension,
    extension_state,
    extensions_dir,
    install_from_zip,
    is_installed,
)

VITALS = ExtensionSpec(name="Vitals", pk=1460, uuid="Vitals@CoreCoding.com")


def registry(downloader_factory, answers):
    """answers maps shell_version -> JSON body (None means 404)."""

    def handler(request):
        body = answers.get(request.url.params.get("shell_version"))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, json=body)

    return ExtensionRegistry(downloader_factory(handler))


def make_zip(path: Path, files: dict) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


class TestRegistry:
    def test_relative_download_url_is_made_absolute(self, downloader_factory):
        reg = registry(
            downloader_factory,
            {"46.0": {"uuid": VITALS.uuid, "version": 66, "download_url": "/download-extension/Vitals.zip?version_tag=1"}},
        )

        url = reg.resolve_download_url(VITALS, "46.0")

        assert url == "https://extensions.gnome.org/download-extension/Vitals.zip?version_tag=1"

    def test_falls_back_to_major_dot_zero(self, downloader_factory):
        reg = registry(
            downloader_factory,
            {"46.0": {"uuid": VITALS.uuid, "download_url": "https://extensions.gnome.org/dl/v.zip"}},
        )

        assert reg.resolve_download_url(VITALS, "46.2") == "https://extensions.gnome.org/dl/v.zip"

    def test_constructs_url_from_version(self, downloader_factory):
        reg = registry(downloader_factory, {"44.1": {"uuid": VITALS.uuid, "version": 12}})

        url = reg.resolve_download_url(VITALS, "44.1")

        assert url == "https://extensions.gnome.org/extension-data/Vitals@CoreCoding.com.v12.shell-extension.zip"

    def test_unknown_extension(self, downloader_factory):
        reg = registry(downloader_factory, {})
        assert reg.resolve_download_url(VITALS, "46.0") is None

    def test_manifest_entry(self):
        spec = ExtensionSpec.from_dict({"name": "Vitals", "id": "1460", "uuid": "Vitals@CoreCoding.com"})
        assert spec == VITALS


class TestInstallFromZip:
    def test_flat_archive(self, tmp_path: Path, home: Path):
        z = make_zip(tmp_path / "v.zip", {"metadata.json": json.dumps({"uuid": VITALS.uuid}), "extension.js": "//"})

        target = install_from_zip(z, VITALS.uuid, home)

        assert target == extensions_dir(home) / VITALS.uuid
        assert (target / "extension.js").is_file()
        assert is_installed(VITALS.uuid, home)

    def test_nested_archive_is_flattened_and_uuid_fixed(self, tmp_path: Path, home: Path):
        z = make_zip(
            tmp_path / "v.zip",
            {
                f"{VITALS.uuid}/metadata.json": json.dumps({"uuid": "wrong@example", "name": "Vitals"}),
                f"{VITALS.uuid}/schemas/x.xml": "<x/>",
            },
        )

        target = install_from_zip(z, VITALS.uuid, home)

        meta = json.loads((target / "metadata.json").read_text())
        assert meta["uuid"] == VITALS.uuid
        assert meta["name"] == "Vitals"
        assert stat.S_IMODE((target / "schemas").stat().st_mode) == 0o755
        assert stat.S_IMODE((target / "schemas" / "x.xml").stat().st_mode) == 0o644
        assert sorted(p.name for p in extensions_dir(home).iterdir()) == [VITALS.uuid]

    def test_reinstall_replaces(self, tmp_path: Path, home: Path):
        old = make_zip(tmp_path / "old.zip", {"metadata.json": "{}", "stale.js": ""})
        new = make_zip(tmp_path / "new.zip", {"metadata.json": "{}", "fresh.js": ""})

        install_from_zip(old, VITALS.uuid, home)
        target = install_from_zip(new, VITALS.uuid, home)

        assert (target / "fresh.js").exists()
        assert not (target / "stale.js").exists()

    def test_missing_metadata(self, tmp_path: Path, home: Path):
        z = make_zip(tmp_path / "v.zip", {"extension.js": "//"})

        with pytest.raises(SetupError, match="metadata.json"):
            install_from_zip(z, VITALS.uuid, home)
        assert not is_installed(VITALS.uuid, home)

    def test_not_a_zip(self, tmp_path: Path, home: Path):
        bogus = tmp_path / "v.zip"
        bogus.write_text("<html>404</html>")

        with pytest.raises(SetupError, match="not a valid ZIP"):
            install_from_zip(bogus, VITALS.uuid, home)


class TestEnable:
    def test_state_from_gnome_extensions(self, runner, monkeypatch):
        monkeypatch.setattr(extensions, "command_exists", lambda name: True)
        runner.respond(["gnome-extensions", "info"], stdout=f"{VITALS.uuid}\n  Name: Vitals\n  State: ACTIVE\n")

        assert extension_state(VITALS.uuid, run=runner) == "ACTIVE"

    def test_dconf_fallback_appends(self, tmp_path: Path, home: Path, runner, monkeypatch):
        install_from_zip(make_zip(tmp_path / "v.zip", {"metadata.json": "{}"}), VITALS.uuid, home)
        monkeypatch.setattr(extensions, "command_exists", lambda name: False)
        monkeypatch.setattr(gnome, "command_exists", lambda name: name == "dconf")
        runner.respond(["dconf", "read"], stdout="['user-theme@gnome-shell-extensions.gcampax.github.com']")

        assert enable_extension(VITALS.uuid, home, run=runner)
        assert [
            "dconf",
            "write",
            ENABLED_KEY,
            f"['user-theme@gnome-shell-extensions.gcampax.github.com', '{VITALS.uuid}']",
        ] in runner.calls

    def test_not_installed(self, home: Path, runner):
        assert not enable_extension(VITALS.uuid, home, run=runner)
        assert runner.calls == []
