"""Checksum verification for downloaded artifacts.

The digest algorithm is inferred from the length of the expected checksum.
Supported algorithms are probed once at import; when the interpreter lacks
one, verification for that algorithm succeeds without hashing.
"""

import hashlib
import logging
from pathlib import Path

from .buildlog import BuildLog
from .exceptions import ChecksumMismatch
from .exceptions import HashComputationFailed

logger = logging.getLogger(__name__)

ALGORITHMS_BY_LENGTH = {
    32: "md5",
    40: "sha1",
    64: "sha256",
    128: "sha512",
}

SUPPORTED_ALGORITHMS = frozenset(
    name for name in ALGORITHMS_BY_LENGTH.values() if name in hashlib.algorithms_available
)
HAS_CHECKSUM_SUPPORT = bool(SUPPORTED_ALGORITHMS)


def compute_checksum(path: Path, algorithm: str = "sha256") -> str:
    """Compute the hex digest of a file.

    Raises:
        HashComputationFailed: If the file cannot be read
    """
    try:
        digest = hashlib.new(algorithm)
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                digest.update(chunk)
    except (OSError, ValueError) as e:
        raise HashComputationFailed(
            f"Could not compute {algorithm} checksum of {path}: {e}",
            context={"path": str(path), "algorithm": algorithm},
        ) from e
    return digest.hexdigest()


def verify_checksum(path: Path, expected: str | None, log: BuildLog | None = None) -> None:
    """Verify a file against its expected checksum.

    A missing file or an empty expected checksum is nothing to check and
    succeeds. On mismatch a diagnostic is written to the build log.

    Args:
        path: File to verify
        expected: Expected hex digest (md5, sha1, sha256 or sha512 by length)
        log: Build log receiving mismatch diagnostics

    Raises:
        ChecksumMismatch: If the computed digest differs
        HashComputationFailed: If the digest length is unknown or hashing failed
    """
    if not HAS_CHECKSUM_SUPPORT:
        return
    if not expected or not path.exists():
        return

    expected = expected.strip().lower()
    algorithm = ALGORITHMS_BY_LENGTH.get(len(expected))
    if algorithm is None:
        raise HashComputationFailed(
            f"unexpected checksum length: {len(expected)} ({expected})",
            context={"path": str(path), "expected": expected},
        )
    if algorithm not in SUPPORTED_ALGORITHMS:
        logger.debug(f"No {algorithm} support, skipping verification of {path.name}")
        return

    computed = compute_checksum(path, algorithm)
    if computed != expected:
        if log is not None:
            log.write(f"checksum mismatch: {path.name} (file is corrupt)\nexpected {expected}, got {computed}")
        raise ChecksumMismatch(path.name, expected, computed)
