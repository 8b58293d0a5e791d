"""Package source fetchers.

One fetcher per source kind; the kind in a PackageSpec selects exactly one
of them. Tarballs go through the cache and mirror; VCS checkouts and local
copies do not.
"""

import logging
import re
import shutil
import tarfile
from pathlib import Path

from .buildlog import BuildLog
from .cache import CacheStore
from .checksum import verify_checksum
from .exceptions import DownloadFailed
from .exceptions import ExtractionFailed
from .exceptions import FetchError
from .exceptions import VcsCheckoutFailed
from .exceptions import VcsToolMissing
from .protocols import HttpClientProtocol
from .protocols import SourceFetcherProtocol
from .schema import PackageSpec
from .schema import SourceKind

logger = logging.getLogger(__name__)

_ARCHIVE_EXTENSION = re.compile(r"\.(tar\.gz|tgz|tar\.bz2|tbz2?|tar\.xz|txz)$")


def archive_filename(spec: PackageSpec) -> str:
    """Cache filename for a tarball: `<name>.<extension from URL>`.

    Example:
        >>> archive_filename(PackageSpec(name="foo-1.0", url="https://example.org/foo-1.0.tar.bz2"))
        'foo-1.0.tar.bz2'
    """
    path = spec.url.split("?", 1)[0]
    match = _ARCHIVE_EXTENSION.search(path)
    extension = match.group(1) if match else "tar.gz"
    return f"{spec.name}.{extension}"


def mirror_url_for(spec: PackageSpec, mirror_base: str | None) -> str | None:
    """Derive the checksum-addressed mirror URL for a tarball, if any."""
    if spec.mirror_url:
        return spec.mirror_url
    if mirror_base and spec.checksum:
        return f"{mirror_base.rstrip('/')}/{spec.checksum}"
    return None


class TarballFetcher:
    """Fetch via cache, then mirror, then primary URL, and unpack."""

    def __init__(
        self,
        http: HttpClientProtocol,
        cache: CacheStore,
        log: BuildLog,
        mirror_base: str | None = None,
    ):
        self.http = http
        self.cache = cache
        self.log = log
        self.mirror_base = mirror_base

    async def fetch(self, spec: PackageSpec, destination: Path) -> Path:
        filename = archive_filename(spec)
        archive = destination / filename

        cached = self.cache.lookup(filename, spec.checksum)
        if cached is not None:
            logger.info(f"-> {cached} (cached)")
            self.cache.link(cached, archive)
        else:
            await self._download(spec, archive)

        return self._extract(spec, archive, destination)

    async def _download(self, spec: PackageSpec, archive: Path) -> None:
        mirror_url = mirror_url_for(spec, self.mirror_base)
        if mirror_url and await self._try_mirror(spec, mirror_url, archive):
            return

        logger.info(f"-> {spec.url}")
        if not await self.http.get(spec.url, archive):
            archive.unlink(missing_ok=True)
            raise DownloadFailed(
                f"error: failed to download {archive.name}",
                context={"package": spec.name, "url": spec.url},
            )
        self._verify_and_cache(spec, archive)

    async def _try_mirror(self, spec: PackageSpec, mirror_url: str, archive: Path) -> bool:
        """Attempt the mirror once; any failure falls back to the primary URL."""
        if not await self.http.head(mirror_url):
            self.log.write(f"mirror probe failed for {mirror_url}, falling back to {spec.url}")
            return False

        logger.info(f"-> {mirror_url}")
        if not await self.http.get(mirror_url, archive):
            archive.unlink(missing_ok=True)
            self.log.write(f"mirror download failed for {mirror_url}, falling back to {spec.url}")
            return False

        try:
            verify_checksum(archive, spec.checksum, self.log)
        except FetchError as e:
            archive.unlink(missing_ok=True)
            self.log.write(f"mirror artifact rejected ({e}), falling back to {spec.url}")
            return False

        if self.cache.enabled:
            self.cache.store(archive.name, archive, spec.checksum)
        return True

    def _verify_and_cache(self, spec: PackageSpec, archive: Path) -> None:
        try:
            verify_checksum(archive, spec.checksum, self.log)
        except FetchError:
            archive.unlink(missing_ok=True)
            raise
        if self.cache.enabled:
            self.cache.store(archive.name, archive, spec.checksum)

    def _extract(self, spec: PackageSpec, archive: Path, destination: Path) -> Path:
        self.log.write(f"extracting {archive.name} into {destination}")
        try:
            with tarfile.open(archive, "r:*") as tar:
                tar.extractall(destination, filter="data")
        except (tarfile.TarError, OSError) as e:
            raise ExtractionFailed(
                f"Failed to extract {archive.name}: {e}",
                context={"package": spec.name, "archive": str(archive)},
            ) from e
        finally:
            archive.unlink(missing_ok=True)

        source_tree = destination / spec.name
        if not source_tree.is_dir():
            raise ExtractionFailed(
                f"{archive.name} did not contain a {spec.name}/ directory",
                context={"package": spec.name, "archive": str(archive)},
            )
        return source_tree


class GitFetcher:
    """Shallow git checkout at spec.ref."""

    def __init__(self, log: BuildLog):
        self.log = log

    async def fetch(self, spec: PackageSpec, destination: Path) -> Path:
        if shutil.which("git") is None:
            raise VcsToolMissing("error: please install `git` and try again", context={"package": spec.name})

        source_tree = destination / spec.name
        logger.info(f"Cloning {spec.url}...")

        if (source_tree / ".git").is_dir() and spec.ref:
            commands = [
                (["git", "fetch", "--depth", "1", "origin", f"+{spec.ref}"], source_tree),
                (["git", "checkout", "-q", "-B", spec.ref, f"origin/{spec.ref}"], source_tree),
            ]
        else:
            if source_tree.exists():
                shutil.rmtree(source_tree)
            branch = ["--branch", spec.ref] if spec.ref else []
            clone = ["git", "clone", "--depth", "1", *branch, spec.url, str(source_tree.absolute())]
            commands = [(clone, destination)]

        for args, cwd in commands:
            if await self.log.run(args, cwd=cwd) != 0:
                raise VcsCheckoutFailed(
                    f"git checkout of {spec.url} failed",
                    context={"package": spec.name, "url": spec.url, "ref": spec.ref},
                )
        return source_tree


class SvnFetcher:
    """Subversion checkout at spec.ref (HEAD by default)."""

    def __init__(self, log: BuildLog):
        self.log = log

    async def fetch(self, spec: PackageSpec, destination: Path) -> Path:
        if shutil.which("svn") is None:
            raise VcsToolMissing("error: please install `svn` and try again", context={"package": spec.name})

        source_tree = destination / spec.name
        revision = spec.ref or "HEAD"
        logger.info(f"Checking out {spec.url}...")

        if (source_tree / ".svn").is_dir():
            args, cwd = ["svn", "up", "-r", revision], source_tree
        else:
            args, cwd = ["svn", "co", "-r", revision, spec.url, str(source_tree.absolute())], destination

        if await self.log.run(args, cwd=cwd) != 0:
            raise VcsCheckoutFailed(
                f"svn checkout of {spec.url} failed",
                context={"package": spec.name, "url": spec.url, "ref": revision},
            )
        return source_tree


class CopyFetcher:
    """Treat a local directory as already-fetched source."""

    def __init__(self, log: BuildLog):
        self.log = log

    async def fetch(self, spec: PackageSpec, destination: Path) -> Path:
        source = Path(spec.url).expanduser()
        if not source.is_dir():
            raise FetchError(f"Source directory {source} does not exist", context={"package": spec.name})

        source_tree = destination / spec.name
        self.log.write(f"copying {source} to {source_tree}")
        try:
            shutil.copytree(source, source_tree, symlinks=True, dirs_exist_ok=True)
        except OSError as e:
            self.log.write(f"copy failed: {e}")
            raise FetchError(
                f"Failed to copy {source} for {spec.name}: {e}",
                context={"package": spec.name, "source": str(source)},
            ) from e
        return source_tree


def create_fetcher(
    kind: SourceKind,
    http: HttpClientProtocol,
    cache: CacheStore,
    log: BuildLog,
    mirror_base: str | None = None,
) -> SourceFetcherProtocol:
    """Return the fetcher for a source kind."""
    if kind == SourceKind.TARBALL:
        return TarballFetcher(http, cache, log, mirror_base)
    if kind == SourceKind.GIT:
        return GitFetcher(log)
    if kind == SourceKind.SVN:
        return SvnFetcher(log)
    return CopyFetcher(log)
