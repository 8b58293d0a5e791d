"""source-build - Fetch, build, and install software from source.

Public API for version managers and hook plugins.
"""

from .builder import STRATEGIES
from .builder import BuildStep
from .builder import register_strategy
from .cache import CacheStore
from .checksum import verify_checksum
from .config import BuildOptions
from .config import InstallerSettings
from .config import PackageOverrides
from .discovery import HookPathDiscovery
from .discovery import discover_hook_scripts
from .exceptions import BuildError
from .exceptions import BuildStepFailed
from .exceptions import BuildToolMissing
from .exceptions import CacheWriteFailed
from .exceptions import ChecksumMismatch
from .exceptions import DefinitionError
from .exceptions import DefinitionNotFoundError
from .exceptions import DownloadFailed
from .exceptions import ExtractionFailed
from .exceptions import FetchError
from .exceptions import HashComputationFailed
from .exceptions import HookError
from .exceptions import NetworkUnavailable
from .exceptions import SourceBuildError
from .exceptions import VcsCheckoutFailed
from .exceptions import VcsToolMissing
from .hooks import HookPhase
from .hooks import HookRegistry
from .installer import install_definition
from .installer import install_package
from .installer import validate_definition
from .predicates import register_predicate
from .protocols import HookDiscoveryProtocol
from .protocols import HttpClientProtocol
from .protocols import SourceFetcherProtocol
from .resolver import DefinitionResolver
from .schema import Definition
from .schema import PackageSpec
from .schema import SourceKind
from .transaction import InstallationContext
from .transaction import InstallationTransaction
from .transaction import TransactionState

__all__ = [
    # Definitions
    "Definition",
    "DefinitionResolver",
    "PackageSpec",
    "SourceKind",
    # Configuration
    "BuildOptions",
    "InstallerSettings",
    "PackageOverrides",
    # Pipeline
    "install_definition",
    "install_package",
    "validate_definition",
    "InstallationContext",
    "InstallationTransaction",
    "TransactionState",
    "CacheStore",
    "verify_checksum",
    # Extension points
    "BuildStep",
    "STRATEGIES",
    "register_strategy",
    "register_predicate",
    "HookPhase",
    "HookRegistry",
    "HookPathDiscovery",
    "discover_hook_scripts",
    "HookDiscoveryProtocol",
    "HttpClientProtocol",
    "SourceFetcherProtocol",
    # Exceptions
    "SourceBuildError",
    "DefinitionError",
    "DefinitionNotFoundError",
    "FetchError",
    "NetworkUnavailable",
    "DownloadFailed",
    "ChecksumMismatch",
    "HashComputationFailed",
    "VcsToolMissing",
    "VcsCheckoutFailed",
    "ExtractionFailed",
    "CacheWriteFailed",
    "BuildError",
    "BuildToolMissing",
    "BuildStepFailed",
    "HookError",
]

__version__ = "0.1.0"
