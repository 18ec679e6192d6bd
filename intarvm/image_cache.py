"""Local cache of downloaded base images."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path

from .errors import CloudInitError
from .models import ImageSource

log = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_IMAGE_SUFFIXES = {".img", ".qcow2"}

ProgressCallback = Callable[[float], None]


def _trim_suffix_repeatedly(text: str, suffix: str) -> str:
    while text.endswith(suffix):
        text = text[: -len(suffix)]
    return text


def _sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(_CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def _download(url: str, dest: Path, progress: ProgressCallback) -> None:
    try:
        response = urllib.request.urlopen(url)
    except urllib.error.HTTPError as e:
        raise CloudInitError(f"Download failed with status: {e.code} {e.reason}") from e
    except (OSError, ValueError) as e:
        raise CloudInitError(f"Failed to start download: {e}") from e

    temp_path = dest.with_name(dest.stem + ".img.tmp")
    with response:
        status = getattr(response, "status", None)
        if status is not None and not 200 <= status < 300:
            raise CloudInitError(f"Download failed with status: {status}")
        try:
            total = int(response.headers.get("Content-Length") or 0)
        except ValueError:
            total = 0

        downloaded = 0
        with open(temp_path, "wb") as f:
            while True:
                try:
                    chunk = response.read(_CHUNK_SIZE)
                except OSError as e:
                    raise CloudInitError(f"Download error: {e}") from e
                if not chunk:
                    break
                f.write(chunk)
                downloaded += len(chunk)
                if total > 0:
                    scaled = min(downloaded * 10_000 // total, 10_000)
                    progress(scaled / 10_000)

    progress(1.0)
    os.replace(temp_path, dest)
    log.info("Image downloaded to %s", dest)


class ImageCache:
    """Downloads base images once and verifies them against their checksum."""

    def __init__(self, dir: str | os.PathLike) -> None:
        self.dir = Path(dir)

    @staticmethod
    def cache_filename(url: str, arch: str) -> str:
        """Name of the cached file for an image URL and architecture."""
        url_hash = hashlib.sha256(url.encode("utf-8")).digest()[:8].hex()
        basename = url.rsplit("/", 1)[-1]
        basename = _trim_suffix_repeatedly(basename, ".qcow2")
        basename = _trim_suffix_repeatedly(basename, ".img")
        return f"{basename}-{arch}-{url_hash}.img"

    def _path_for(self, source: ImageSource) -> Path:
        return self.dir / self.cache_filename(source.url, source.arch)

    def is_cached(self, source: ImageSource) -> bool:
        return self._path_for(source).exists()

    def get_cached_path(self, source: ImageSource) -> Path | None:
        path = self._path_for(source)
        return path if path.exists() else None

    async def ensure_image(
        self, source: ImageSource, progress_callback: ProgressCallback | None = None
    ) -> Path:
        """Return the local image, downloading it first if needed, and verify it."""
        progress = progress_callback or (lambda _fraction: None)
        path = self._path_for(source)

        if path.exists():
            log.info("Image already cached: %s", path)
            progress(1.0)
            await asyncio.to_thread(self.verify_checksum, path, source.checksum)
            return path

        self.dir.mkdir(parents=True, exist_ok=True)
        log.info("Downloading image from %s", source.url)
        await asyncio.to_thread(_download, source.url, path, progress)
        await asyncio.to_thread(self.verify_checksum, path, source.checksum)
        return path

    def verify_checksum(self, path: str | os.PathLike, expected: str) -> None:
        """Check a 'sha256:<hex>' checksum; other formats are skipped with a warning."""
        if not expected.startswith("sha256:"):
            log.warning("Unknown checksum format, skipping verification")
            return
        expected_hash = expected[len("sha256:"):]
        log.info("Verifying checksum for %s", path)
        actual_hash = _sha256_file(Path(path))
        if actual_hash != expected_hash:
            raise CloudInitError(
                f"Checksum mismatch: expected {expected_hash}, got {actual_hash}"
            )
        log.info("Checksum verified")

    def list_cached_images(self) -> list[Path]:
        """Image files (.img or .qcow2) present in the cache directory."""
        if not self.dir.exists():
            return []
        return [
            entry
            for entry in self.dir.iterdir()
            if entry.suffix in _IMAGE_SUFFIXES
        ]