"""
Tests for /etc/os-release parsing.
"""

import textwrap
from pathlib import Path

from dotfiles_setup.lib.osinfo import is_supported, read_os_release


def test_read_zorin(tmp_path: Path):
    path = tmp_path / "os-release"
    path.write_text(textwrap.dedent("""\
        PRETTY_NAME="Zorin OS 17.1"
        NAME="Zorin OS"
        VERSION_ID="17"
        ID=zorin
        ID_LIKE="ubuntu debian"
        # comment
        UBUNTU_CODENAME=jammy
    """))

    info = read_os_release(str(path))

    assert info["PRETTY_NAME"] == "Zorin OS 17.1"
    assert info["ID"] == "zorin"
    assert info["UBUNTU_CODENAME"] == "jammy"
    assert is_supported(info)


def test_missing_file(tmp_path: Path):
    assert read_os_release(str(tmp_path / "nope")) == {}


def test_supported_distributions():
    assert is_supported({"ID": "ubuntu"})
    assert is_supported({"ID": "pop", "ID_LIKE": "ubuntu debian"})
    assert not is_supported({"ID": "fedora"})
    assert not is_supported({"ID": "debian"})
    assert not is_supported({})
