"""Per-run build log.

All external tool output and pipeline diagnostics are appended to one file so
normal runs print only progress lines while failures stay inspectable.
"""

import asyncio
import logging
import os
import shlex
from collections import deque
from pathlib import Path

logger = logging.getLogger(__name__)


class BuildLog:
    """Append-only build log file."""

    def __init__(self, path: Path):
        self.path = path

    def touch(self) -> None:
        """Create the log file if it does not exist yet."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()

    def write(self, message: str) -> None:
        """Append a diagnostic message to the log."""
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(message.rstrip("\n") + "\n")

    async def run(
        self,
        args: list[str],
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> int:
        """Run an external command with stdout and stderr sent to the log.

        Args:
            args: Command and arguments
            cwd: Working directory for the command
            env: Extra environment variables merged over os.environ

        Returns:
            Exit status of the command

        Raises:
            FileNotFoundError: If the executable does not exist
        """
        self.write(f"+ {shlex.join(args)}")
        logger.debug(f"Running {shlex.join(args)} in {cwd or Path.cwd()}")

        process_env = None
        if env:
            process_env = {**os.environ, **env}

        with open(self.path, "ab") as f:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd,
                env=process_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=f,
                stderr=asyncio.subprocess.STDOUT,
            )
            return await process.wait()

    def tail(self, lines: int = 10) -> list[str]:
        """Return the last lines of the log (empty if missing)."""
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8", errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=lines)]

    def is_empty(self) -> bool:
        return not self.path.exists() or self.path.stat().st_size == 0
