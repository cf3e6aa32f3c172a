"""
Shared test fixtures.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from dotfiles_setup.context import SetupContext
from dotfiles_setup.lib.command import CmdResult
from dotfiles_setup.lib.download import Downloader
from dotfiles_setup.logging_utils import StatusFormatter
from dotfiles_setup.setup_config import SetupConfig


class RecordingRunner:
    """Stands in for run_cmd; records argv and answers from a table."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.kwargs: List[Dict] = []
        self.responses: Dict[tuple, CmdResult] = {}
        self.default_rc = 0

    def respond(self, argv_prefix, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        prefix = tuple(argv_prefix)
        self.responses[prefix] = CmdResult(list(prefix), returncode, stdout, stderr)

    def __call__(self, argv, **kw) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        self.kwargs.append(kw)
        for n in range(len(argv), 0, -1):
            hit = self.responses.get(tuple(argv[:n]))
            if hit is not None:
                return CmdResult(argv, hit.returncode, hit.stdout, hit.stderr)
        return CmdResult(argv, self.default_rc, "", "")

    def ran(self, *prefix: str) -> bool:
        return any(c[: len(prefix)] == list(prefix) for c in self.calls)


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A throwaway home directory."""
    h = tmp_path / "home"
    h.mkdir()
    return h


def make_downloader(
    tmp_path: Path,
    handler: Callable[[httpx.Request], httpx.Response],
    **kw,
) -> Downloader:
    client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
    kw.setdefault("retry_delay", 0)
    kw.setdefault("sleep", lambda s: None)
    return Downloader(str(tmp_path / "cache"), client=client, **kw)


@pytest.fixture
def make_ctx(tmp_path: Path, home: Path, runner: RecordingRunner):
    """Factory for a SetupContext that never touches the network or the host."""

    def _make(
        *,
        manifest: Optional[Dict] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
        dry_run: bool = False,
        raw_config: Optional[Dict] = None,
    ) -> SetupContext:
        downloader = make_downloader(tmp_path, handler or (lambda request: httpx.Response(404)))
        return SetupContext(
            config=SetupConfig(raw=raw_config or {}),
            dry_run=dry_run,
            assume_yes=True,
            home=home,
            user="tester",
            runner=runner,
            downloader=downloader,
            assets_dir=tmp_path / "assets",
            manifest=manifest if manifest is not None else {},
        )

    return _make


@pytest.fixture
def downloader_factory(tmp_path: Path):
    """Downloader backed by an httpx.MockTransport handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kw) -> Downloader:
        return make_downloader(tmp_path, handler, **kw)

    return _make


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo configure_logging() so handlers do not leak between tests."""
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler) or isinstance(h.formatter, StatusFormatter):
            root.removeHandler(h)
            h.close()
    for attr in ("_dotfiles_configured", "_dotfiles_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
