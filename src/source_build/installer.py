"""Definition interpreter - install every package in a definition.

Process:
1. Validate strategy and predicate names (before any workspace exists)
2. Open one installation transaction
3. Run before-install hooks
4. For each package, in order: check its predicate, fetch, build
5. Run after-install hooks
6. Commit (or fail, on any error) the transaction

The first failing package aborts the run; later packages are not attempted.
"""

import logging
from typing import TextIO

from . import builder
from .cache import CacheStore
from .exceptions import DefinitionError
from .fetcher import create_fetcher
from .hooks import HookPhase
from .hooks import HookRegistry
from .predicates import PREDICATES
from .protocols import HttpClientProtocol
from .schema import Definition
from .schema import PackageSpec
from .transaction import InstallationContext
from .transaction import InstallationTransaction
from .transport import CommandHttpClient

logger = logging.getLogger(__name__)


def validate_definition(definition: Definition) -> None:
    """Check every directive names known strategies and predicates.

    Raises:
        DefinitionError: On the first unknown name
    """
    for spec in definition.packages:
        unknown = builder.unknown_strategies(spec.build)
        if unknown:
            raise DefinitionError(
                f"{definition.name}: unknown build strategy '{unknown[0]}' for {spec.name}",
                context={"package": spec.name, "strategy": unknown[0]},
            )
        if spec.only_if and spec.only_if not in PREDICATES:
            raise DefinitionError(
                f"{definition.name}: unknown predicate '{spec.only_if}' for {spec.name}",
                context={"package": spec.name, "predicate": spec.only_if},
            )


async def install_package(
    spec: PackageSpec,
    context: InstallationContext,
    http: HttpClientProtocol,
) -> bool:
    """Fetch and build one package into context.prefix_path.

    Returns:
        False if the package was skipped by its predicate, True if installed

    Raises:
        FetchError: If the source could not be fetched
        BuildError: If the build failed
    """
    if spec.only_if and not PREDICATES[spec.only_if](context):
        logger.debug(f"Skipping {spec.name} ({spec.only_if} is false)")
        context.log.write(f"skipping {spec.name}: {spec.only_if} is false")
        return False

    settings = context.settings
    mirror_base = None if settings.skip_mirror else settings.mirror_url
    cache = CacheStore(context.cache_path, context.log)
    fetcher = create_fetcher(spec.source_kind, http, cache, context.log, mirror_base)

    logger.info(f"Downloading {spec.name}...")
    source_tree = await fetcher.fetch(spec, context.build_path)

    logger.info(f"Installing {spec.name}...")
    options = settings.options_for(spec.name, context.prefix_path)
    await builder.build(spec, source_tree, options, context.log)

    logger.info(f"Installed {spec.name} to {context.prefix_path}")
    return True


async def install_definition(
    definition: Definition,
    context: InstallationContext,
    hooks: HookRegistry | None = None,
    http: HttpClientProtocol | None = None,
    stream: TextIO | None = None,
) -> InstallationContext:
    """
    Install every package of a definition inside one transaction.

    Args:
        definition: Parsed definition
        context: Run context from InstallationContext.create()
        hooks: Hook registry (no hooks if None)
        http: HTTP transport (curl/wget via CommandHttpClient if None)
        stream: Stream for the failure summary (stderr if None)

    Returns:
        The run context (hooks may have changed version_name or prefix_path)

    Raises:
        DefinitionError: If the definition is invalid (no workspace is created)
        SourceBuildError: Any fetch, build, or hook failure, after the
            transaction has cleaned up and printed its summary

    Example:
        >>> definition = DefinitionResolver().resolve("ruby-dev")
        >>> context = InstallationContext.create(Path("~/.versions/ruby-dev"), settings)
        >>> await install_definition(definition, context)
    """
    validate_definition(definition)
    hooks = hooks or HookRegistry()
    http = http or CommandHttpClient(context.log, context.settings.http_client)

    async with InstallationTransaction(context, stream=stream):
        hooks.run_all(HookPhase.BEFORE_INSTALL, context)

        installed = 0
        for spec in definition.packages:
            if await install_package(spec, context, http):
                installed += 1

        hooks.run_all(HookPhase.AFTER_INSTALL, context)
        logger.debug(f"Installed {installed} of {len(definition.packages)} packages for {definition.name}")

    return context
