from __future__ import annotations

import hashlib
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from ..errors import DownloadError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = str(Path.home() / ".cache/dotfiles-setup/downloads")
USER_AGENT = "dotfiles-setup"


class ChecksumMismatch(DownloadError):
    pass


def file_sha256(path: str | Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_checksum(path: str | Path, expected_sha256: Optional[str]) -> bool:
    """Advisory sha256 check. No expected digest means nothing to verify."""

    if not expected_sha256:
        logger.debug("No checksum published for %s; skipping verification", path)
        return True
    actual = file_sha256(path)
    if actual.lower() != expected_sha256.strip().lower():
        logger.warning("Checksum mismatch for %s (expected %s, got %s)", path, expected_sha256, actual)
        return False
    return True


class Downloader:
    """File downloads with a fixed-delay retry loop and a local cache.

    The cache is keyed by destination file name. A non-empty cache entry is
    as good as a fresh download; entries are only removed by clear_cache().
    """

    def __init__(
        self,
        cache_dir: str = DEFAULT_CACHE_DIR,
        *,
        max_retries: int = 3,
        timeout: float = 300.0,
        connect_timeout: float = 30.0,
        retry_delay: float = 5.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        dry_run: bool = False,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.max_retries = max_retries
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.retry_delay = retry_delay
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._clock = clock
        self.dry_run = dry_run
        self.network_attempts = 0

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(follow_redirects=True, headers={"User-Agent": USER_AGENT})
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "Downloader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # cache

    def cache_path(self, dest: str | Path) -> Path:
        return self.cache_dir / Path(dest).name

    def cached(self, dest: str | Path) -> Optional[Path]:
        p = self.cache_path(dest)
        if p.is_file() and p.stat().st_size > 0:
            return p
        return None

    def clear_cache(self) -> int:
        if not self.cache_dir.exists():
            return 0
        removed = 0
        for entry in self.cache_dir.iterdir():
            if entry.is_file():
                entry.unlink()
                removed += 1
        logger.info("Cleared %d cached download(s) from %s", removed, self.cache_dir)
        return removed

    # transfer

    def _timeout(self, max_time: float, connect_timeout: float) -> httpx.Timeout:
        return httpx.Timeout(max_time, connect=connect_timeout)

    def _attempt(self, url: str, tmp: Path, *, max_time: float, connect_timeout: float) -> None:
        deadline = self._clock() + max_time
        self.network_attempts += 1
        with self.client.stream("GET", url, timeout=self._timeout(max_time, connect_timeout)) as resp:
            resp.raise_for_status()
            with open(tmp, "wb") as f:
                for chunk in resp.iter_bytes():
                    f.write(chunk)
                    if self._clock() > deadline:
                        raise httpx.TimeoutException(f"transfer did not complete within {max_time}s")

    def fetch(
        self,
        url: str,
        dest: str | Path,
        *,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        sha256: Optional[str] = None,
        use_cache: bool = True,
    ) -> Path:
        """Download url to dest, consulting the cache first."""

        dest = Path(dest)
        retries = self.max_retries if max_retries is None else max_retries
        max_time = self.timeout if timeout is None else timeout
        conn_time = self.connect_timeout if connect_timeout is None else connect_timeout

        if self.dry_run:
            logger.info("Would download: %s -> %s", url, dest)
            return dest

        hit = self.cached(dest) if use_cache else None
        if hit is not None:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if hit.resolve() != dest.resolve():
                shutil.copyfile(hit, dest)
            logger.info("Using cached %s", dest.name)
            return dest

        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + ".part")
        last_error: Optional[Exception] = None

        for attempt in range(1, retries + 1):
            try:
                self._attempt(url, tmp, max_time=max_time, connect_timeout=conn_time)
                if tmp.stat().st_size == 0:
                    raise DownloadError(f"Empty response from {url}")
                if not verify_checksum(tmp, sha256):
                    tmp.unlink()
                    raise ChecksumMismatch(f"Checksum mismatch for {url}")
                tmp.replace(dest)
                if use_cache:
                    self.cache_dir.mkdir(parents=True, exist_ok=True)
                    shutil.copyfile(dest, self.cache_path(dest))
                logger.info("Downloaded: %s", dest.name)
                return dest
            except ChecksumMismatch:
                raise
            except DownloadError as e:
                last_error = e
            except (httpx.HTTPError, OSError) as e:
                last_error = e
            finally:
                if tmp.exists():
                    tmp.unlink()

            if attempt < retries:
                logger.warning("Download failed, retrying (%d/%d)...", attempt, retries)
                self._sleep(self.retry_delay)

        raise DownloadError(
            f"Failed to download after {retries} attempts: {url} ({last_error})",
            hint=f"curl -fL -o {dest} {url}",
        )

    def get_json(self, url: str, *, timeout: float = 10.0) -> Any:
        """Small JSON API call (release metadata, extension registry)."""

        try:
            r = self.client.get(url, timeout=timeout)
            r.raise_for_status()
            return r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DownloadError(f"Request to {url} failed: {e}") from e

    def url_exists(self, url: str, *, timeout: float = 5.0) -> bool:
        try:
            r = self.client.head(url, timeout=timeout)
        except httpx.HTTPError:
            return False
        return r.status_code == 200
