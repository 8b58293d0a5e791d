"""Installation transaction.

Owns the build workspace and build log for one pipeline run and guarantees
a consistent outcome:

- success: prefix directories lose group/world write bits, the workspace
  and log are removed (unless keep is requested)
- failure: the workspace is preserved for inspection unless it is empty,
  and a summary naming the log is written to the original stderr

States: INITIALIZED -> RUNNING -> COMMITTED | FAILED
"""

import asyncio
import logging
import os
import platform
import shutil
import stat
import sys
import tempfile
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import TextIO

from .buildlog import BuildLog
from .cache import normalize_cache_path
from .config import InstallerSettings
from .exceptions import BuildError

logger = logging.getLogger(__name__)

LOG_TAIL_LINES = 10


class TransactionState(StrEnum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    COMMITTED = "committed"
    FAILED = "failed"


def run_seed() -> str:
    """Process-unique workspace identifier (timestamp + pid)."""
    return f"{datetime.now():%Y%m%d%H%M%S}.{os.getpid()}"


@dataclass
class InstallationContext:
    """Paths and settings for one run.

    Hooks receive this object and may change version_name, prefix_path, or
    settings before packages are installed.
    """

    prefix_path: Path
    build_path: Path
    log_path: Path
    settings: InstallerSettings
    version_name: str = ""
    cache_path: Path | None = None
    keep_build_tree: bool = False
    verbose: bool = False
    log: BuildLog = field(init=False)

    def __post_init__(self) -> None:
        self.log = BuildLog(self.log_path)

    @classmethod
    def create(
        cls,
        prefix_path: Path,
        settings: InstallerSettings,
        version_name: str = "",
        keep_build_tree: bool | None = None,
        verbose: bool | None = None,
        seed: str | None = None,
    ) -> "InstallationContext":
        """Allocate workspace and log paths for a new run.

        Nothing is created on disk until the transaction starts.

        Args:
            prefix_path: Installation prefix
            settings: Installer settings (build_root and cache_path are read)
            version_name: Name reported on success (defaults to prefix name)
            keep_build_tree: Keep workspace after success (defaults to settings)
            verbose: Follow the build log (defaults to settings)
            seed: Workspace identifier (defaults to timestamp + pid)

        Returns:
            InstallationContext instance
        """
        root = (settings.build_root or Path(tempfile.gettempdir())).expanduser().absolute()
        seed = seed or run_seed()
        prefix_path = prefix_path.expanduser().absolute()

        return cls(
            prefix_path=prefix_path,
            build_path=root / f"source-build.{seed}",
            log_path=root / f"source-build.{seed}.log",
            settings=settings,
            version_name=version_name or prefix_path.name,
            cache_path=normalize_cache_path(settings.cache_path),
            keep_build_tree=settings.keep_build_path if keep_build_tree is None else keep_build_tree,
            verbose=settings.verbose if verbose is None else verbose,
        )


def fix_directory_permissions(root: Path) -> None:
    """Strip group and world write bits from every directory under root."""
    if not root.is_dir():
        return
    writable = stat.S_IWGRP | stat.S_IWOTH
    for dirpath, _dirnames, _filenames in os.walk(root):
        mode = os.stat(dirpath).st_mode
        if mode & writable:
            os.chmod(dirpath, stat.S_IMODE(mode) & ~writable)


class InstallationTransaction:
    """Async context manager wrapping one installation run.

    Example:
        >>> context = InstallationContext.create(Path("~/.versions/3.3.0"), settings)
        >>> async with InstallationTransaction(context):
        ...     await install_packages(...)
    """

    follow_command: tuple[str, ...] = ("tail", "-f")

    def __init__(self, context: InstallationContext, stream: TextIO | None = None):
        self.context = context
        # Captured now so failure output bypasses later redirection
        self.stream = stream or sys.stderr
        self.state = TransactionState.INITIALIZED
        self._follower: asyncio.subprocess.Process | None = None

    async def __aenter__(self) -> InstallationContext:
        self.start()
        if self.context.verbose:
            await self._start_follower()
        return self.context

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self._stop_follower()
        if exc is not None:
            self.fail(exc)
            return False
        try:
            self.commit()
        except BuildError as e:
            self.fail(e)
            raise
        return False

    def start(self) -> None:
        """Create the fresh workspace and log file."""
        if self.state != TransactionState.INITIALIZED:
            raise RuntimeError(f"Transaction already {self.state}")

        self.context.build_path.mkdir(parents=True, exist_ok=False)
        self.context.log.touch()
        self.state = TransactionState.RUNNING
        logger.debug(f"Build workspace {self.context.build_path}, log {self.context.log_path}")

    def commit(self) -> None:
        """Harden the prefix, then remove the workspace and log.

        Raises:
            BuildError: If prefix permissions cannot be changed
        """
        try:
            fix_directory_permissions(self.context.prefix_path)
        except OSError as e:
            raise BuildError(
                f"Failed to fix permissions under {self.context.prefix_path}: {e}",
                context={"prefix": str(self.context.prefix_path)},
            ) from e

        if not self.context.keep_build_tree:
            shutil.rmtree(self.context.build_path, ignore_errors=True)
            self.context.log_path.unlink(missing_ok=True)

        self.state = TransactionState.COMMITTED
        logger.debug(f"Committed {self.context.version_name} in {self.context.prefix_path}")

    def fail(self, error: BaseException) -> None:
        """Record the failure, tidy the workspace, and print the summary."""
        from . import __version__

        context = self.context
        context.log.write(f"error: {error}")

        build_path = context.build_path
        if build_path.is_dir() and not any(build_path.iterdir()):
            build_path.rmdir()

        lines = ["", f"BUILD FAILED ({platform.platform()} using source-build {__version__})", ""]
        if build_path.exists():
            lines.append(f"Inspect or clean up the working tree at {build_path}")
        lines.append(f"Results logged to {context.log_path}")
        if not context.log.is_empty():
            lines.extend(["", f"Last {LOG_TAIL_LINES} log lines:"])
            lines.extend(context.log.tail(LOG_TAIL_LINES))

        print("\n".join(lines), file=self.stream)
        self.stream.flush()
        self.state = TransactionState.FAILED

    async def _start_follower(self) -> None:
        try:
            self._follower = await asyncio.create_subprocess_exec(
                *self.follow_command,
                str(self.context.log_path),
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug(f"Not following build log: {e}")
            self._follower = None

    async def _stop_follower(self) -> None:
        if self._follower is None:
            return
        follower, self._follower = self._follower, None
        if follower.returncode is None:
            try:
                follower.terminate()
            except ProcessLookupError:
                return
        await follower.wait()
