"""
Resource loading: resolve models and dictionaries from bytes, paths, or URLs.

URLs are downloaded once into the on-disk cache and served from there
afterwards.

Usage:
    from onnx_paddle_ocr.models import loader, DETECTION_MODEL

    data = loader.load(None, DETECTION_MODEL)           # default download
    data = loader.load("models/det.onnx", DETECTION_MODEL)
    loader.clear_cache()
"""

import io
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urlparse

import requests
import tqdm
from loguru import logger

from ..config import ResourceSource
from ..errors import ResourceLoadError
from .config import ModelFile, default_cache_dir


class ResourceLoader:
    """Resolve resource sources to raw bytes."""

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None, timeout: float = 60.0):
        """Initialize resource loader.

        Args:
            cache_dir: Download cache (default: resolved from the environment on each use)
            timeout: Seconds to wait for the server before giving up
        """
        self._cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.timeout = timeout

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir if self._cache_dir is not None else default_cache_dir()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self, source: Optional[ResourceSource], default: Union[ModelFile, str, None] = None) -> bytes:
        """Return the bytes for a resource source.

        Args:
            source: Raw bytes, a local path, an http(s) URL, or None
            default: Model file (or URL) to download when source is None

        Returns:
            Resource content

        Raises:
            ResourceLoadError: If the file is missing or the download fails
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            logger.debug("Loading resource from buffer")
            return bytes(source)

        if isinstance(source, str) and source.startswith(("http://", "https://")):
            return self.fetch(source)

        if isinstance(source, (str, Path)):
            return self.read_path(source)

        if source is None:
            if default is None:
                raise ResourceLoadError("No resource source given and no default available")
            url = default.url if isinstance(default, ModelFile) else default
            return self.fetch(url)

        raise ResourceLoadError(f"Unsupported resource source type: {type(source).__name__}")

    def read_path(self, path: Union[str, Path]) -> bytes:
        resolved = Path(path).expanduser().resolve()
        logger.debug(f"Loading resource from path: {resolved}")
        try:
            return resolved.read_bytes()
        except OSError as e:
            raise ResourceLoadError(f"Failed to read resource {resolved}: {e}") from e

    def cached_path(self, url: str) -> Path:
        """Cache location for a URL (its file name inside the cache dir)."""
        file_name = Path(urlparse(url).path).name
        if not file_name:
            raise ResourceLoadError(f"Cannot derive a file name from URL: {url}")
        return self.cache_dir / file_name

    def fetch(self, url: str) -> bytes:
        """Download a URL unless it is already cached.

        Raises:
            ResourceLoadError: If the download fails
        """
        save_path = self.cached_path(url)

        if save_path.exists():
            logger.debug(f"Loading cached resource from: {save_path}")
            return save_path.read_bytes()

        logger.info(f"Downloading {save_path.name} from {url} (cached at: {self.cache_dir})")
        try:
            file_content = self._download_with_progress(url, save_path.name, self.timeout)
        except requests.RequestException as e:
            raise ResourceLoadError(f"Failed to fetch resource from {url}: {e}") from e

        self._save_file(save_path, file_content)
        logger.debug(f"Saved to {save_path}")
        return file_content

    def clear_cache(self) -> List[Path]:
        """Delete every downloaded file from the cache directory.

        Returns:
            Paths that were removed
        """
        cache_dir = self.cache_dir
        if not cache_dir.is_dir():
            logger.info(f"Model cache {cache_dir} does not exist, nothing to clear")
            return []

        removed = []
        for path in sorted(cache_dir.iterdir()):
            if path.is_file():
                path.unlink()
                removed.append(path)

        logger.info(f"Removed {len(removed)} cached file(s) from {cache_dir}")
        return removed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _download_with_progress(url: str, name: Optional[str] = None, timeout: float = 60.0) -> bytes:
        resp = requests.get(url, stream=True, allow_redirects=True, timeout=timeout)
        resp.raise_for_status()

        total = int(resp.headers.get("content-length", 0))
        bio = io.BytesIO()

        with tqdm.tqdm(
            desc=name,
            total=total,
            unit="b",
            unit_scale=True,
            unit_divisor=1024
        ) as bar:
            for chunk in resp.iter_content(chunk_size=65536):
                bar.update(len(chunk))
                bio.write(chunk)

        return bio.getvalue()

    @staticmethod
    def _save_file(save_path: Path, file_content: bytes) -> None:
        # Write next to the target and rename, so an interrupted download never looks cached
        save_path.parent.mkdir(parents=True, exist_ok=True)
        partial = save_path.with_name(save_path.name + ".part")
        with open(partial, "wb") as f:
            f.write(file_content)
        partial.replace(save_path)

    def __repr__(self):
        return f"ResourceLoader(cache_dir={str(self.cache_dir)!r})"


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
loader = ResourceLoader()
