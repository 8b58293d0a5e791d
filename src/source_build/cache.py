"""Download cache keyed by artifact filename.

Entries are re-verified against the expected checksum on every lookup; a
filename collision with a different checksum is never reused.
"""

import logging
import os
import shutil
from pathlib import Path

from .buildlog import BuildLog
from .checksum import verify_checksum
from .exceptions import CacheWriteFailed
from .exceptions import FetchError

logger = logging.getLogger(__name__)


def normalize_cache_path(raw: str | os.PathLike | None) -> Path | None:
    """Normalize a configured cache root.

    Trailing separators are stripped and relative roots are made absolute,
    since cache entries are symlinked into the workspace. A root that does
    not exist disables caching instead of failing.
    """
    if raw is None:
        return None
    text = os.fspath(raw)
    stripped = text.rstrip(os.sep) or text
    if not stripped:
        return None
    path = Path(stripped).expanduser().absolute()
    if not path.is_dir():
        logger.debug(f"Cache path {path} does not exist, caching disabled")
        return None
    return path


class CacheStore:
    """Filename-keyed artifact cache (disabled when root is None)."""

    def __init__(self, root: Path | None, log: BuildLog | None = None):
        self.root = root
        self.log = log

    @property
    def enabled(self) -> bool:
        return self.root is not None

    def lookup(self, filename: str, checksum: str | None) -> Path | None:
        """Return a cached artifact that passes verification.

        Args:
            filename: Artifact filename (cache key)
            checksum: Expected checksum (None disables verification)

        Returns:
            Path to the cached file, or None if the caller must download
        """
        if self.root is None:
            return None

        cached = self.root / filename
        if not cached.is_file():
            return None

        try:
            verify_checksum(cached, checksum, self.log)
        except FetchError as e:
            self._log(f"cached {filename} rejected: {e}")
            return None

        logger.debug(f"Cache hit for {filename}")
        return cached

    def link(self, cached: Path, destination: Path) -> None:
        """Symlink a cached artifact into the build workspace."""
        if destination.is_symlink() or destination.exists():
            destination.unlink()
        destination.symlink_to(cached)

    def store(self, filename: str, source_path: Path, checksum: str | None) -> Path:
        """Move a verified download into the cache and link it back.

        Args:
            filename: Artifact filename (cache key)
            source_path: Freshly downloaded file in the workspace
            checksum: Expected checksum, recorded in the build log

        Returns:
            Path of the cache entry

        Raises:
            CacheWriteFailed: If the entry could not be written
        """
        if self.root is None:
            raise CacheWriteFailed("No cache path configured", context={"filename": filename})

        cached = self.root / filename
        staging = self.root / f".{filename}.{os.getpid()}.tmp"
        try:
            shutil.move(source_path, staging)
            os.replace(staging, cached)
            source_path.symlink_to(cached)
        except OSError as e:
            staging.unlink(missing_ok=True)
            raise CacheWriteFailed(
                f"Failed to cache {filename} in {self.root}: {e}",
                context={"filename": filename, "cache_path": str(self.root)},
            ) from e

        self._log(f"cached {filename} ({checksum or 'unverified'}) at {cached}")
        return cached

    def _log(self, message: str) -> None:
        if self.log is not None:
            self.log.write(message)
