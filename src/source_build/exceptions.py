"""Source build exceptions.

Every failure the pipeline can report derives from SourceBuildError so the
installation transaction and the CLI can handle them through one path.
"""


class SourceBuildError(Exception):
    """Base exception for source build operations."""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (paths, URLs, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class DefinitionError(SourceBuildError):
    """Definition file is unreadable or contains an invalid directive."""


class DefinitionNotFoundError(DefinitionError):
    """Definition not found as a file or in any definitions directory."""


class FetchError(SourceBuildError):
    """Package source could not be fetched."""


class NetworkUnavailable(FetchError):
    """Neither curl nor wget is available."""


class DownloadFailed(FetchError):
    """Download from every candidate URL failed."""


class ChecksumMismatch(FetchError):
    """Downloaded or cached artifact does not match its expected checksum."""

    def __init__(self, filename: str, expected: str, computed: str):
        super().__init__(
            f"checksum mismatch: {filename} (file is corrupt)",
            context={"filename": filename, "expected": expected, "computed": computed},
        )
        self.expected = expected
        self.computed = computed


class HashComputationFailed(FetchError):
    """Content hash could not be computed."""


class VcsToolMissing(FetchError):
    """Required version control tool is not installed."""


class VcsCheckoutFailed(FetchError):
    """Version control checkout exited with a nonzero status."""


class ExtractionFailed(FetchError):
    """Archive could not be unpacked into the build workspace."""


class CacheWriteFailed(FetchError):
    """Artifact could not be moved into the cache."""


class BuildError(SourceBuildError):
    """Package build failed."""


class BuildToolMissing(BuildError):
    """Build tool or configure script is not available."""


class BuildStepFailed(BuildError):
    """Build step exited with a nonzero status."""

    def __init__(self, package: str, step: str, returncode: int, log_tail: list[str]):
        super().__init__(
            f"{step} failed for {package} (exit status {returncode})",
            context={"package": package, "step": step, "returncode": returncode},
        )
        self.step = step
        self.returncode = returncode
        self.log_tail = log_tail


class HookError(SourceBuildError):
    """Hook script failed to load or a hook callback raised."""
