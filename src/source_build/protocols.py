"""Protocols for pipeline collaborators.

Apps and tests can provide any implementation; the pipeline only requires
these interfaces.
"""

from pathlib import Path
from typing import TYPE_CHECKING
from typing import Protocol
from typing import runtime_checkable

if TYPE_CHECKING:
    from .schema import PackageSpec


@runtime_checkable
class HttpClientProtocol(Protocol):
    """HTTP transport capability.

    Example implementations:
    - CommandHttpClient: shells out to curl or wget
    - Test doubles serving local files
    """

    async def head(self, url: str) -> bool:
        """Probe whether a URL exists without downloading it."""
        ...

    async def get(self, url: str, destination: Path) -> bool:
        """Download a URL to a file.

        Returns:
            True if the download completed, False otherwise
        """
        ...


class SourceFetcherProtocol(Protocol):
    """Fetches one package's source into the build workspace."""

    async def fetch(self, spec: "PackageSpec", destination: Path) -> Path:
        """Fetch source for spec into destination.

        Args:
            spec: Package directive
            destination: Build workspace directory

        Returns:
            Path to the unpacked source tree

        Raises:
            FetchError: If the source cannot be fetched
        """
        ...


@runtime_checkable
class HookDiscoveryProtocol(Protocol):
    """Enumerates hook scripts to load at run start."""

    def discover(self) -> list[Path]:
        """Return hook script paths in load order."""
        ...
