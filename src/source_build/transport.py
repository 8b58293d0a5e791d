"""HTTP transport over command-line clients.

Transfers shell out to curl or wget; whichever is present is used unless a
client is named explicitly.
"""

import logging
import shutil
from pathlib import Path

from .buildlog import BuildLog
from .exceptions import NetworkUnavailable

logger = logging.getLogger(__name__)

HTTP_CLIENTS = ("curl", "wget")


def detect_http_client(preferred: str | None = None) -> str:
    """Pick the HTTP client executable to use.

    Args:
        preferred: Client name to require ("curl" or "wget"), or None to probe

    Returns:
        Client name

    Raises:
        NetworkUnavailable: If no usable client is installed
    """
    candidates = (preferred,) if preferred else HTTP_CLIENTS
    for name in candidates:
        if name in HTTP_CLIENTS and shutil.which(name):
            return name
    raise NetworkUnavailable(
        f"error: please install {' or '.join(candidates)} and try again",
        context={"candidates": list(candidates)},
    )


class CommandHttpClient:
    """HttpClientProtocol implementation using curl or wget."""

    def __init__(self, log: BuildLog, client: str | None = None):
        self.log = log
        self.preferred = client
        self._client: str | None = None

    @property
    def client(self) -> str:
        # Detected on first use so VCS and copy fetches work without a client
        if self._client is None:
            self._client = detect_http_client(self.preferred)
            logger.debug(f"Using {self._client} for downloads")
        return self._client

    async def head(self, url: str) -> bool:
        if self.client == "curl":
            args = ["curl", "-q", "-o", "/dev/null", "-sSILf", url]
        else:
            args = ["wget", "-q", "--spider", url]
        return await self.log.run(args) == 0

    async def get(self, url: str, destination: Path) -> bool:
        if self.client == "curl":
            args = ["curl", "-q", "-o", str(destination), "-sSLf", url]
        else:
            args = ["wget", "-nv", "-O", str(destination), url]
        return await self.log.run(args) == 0
