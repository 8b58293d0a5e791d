"""source-build command-line interface.

    source-build [--keep] [--verbose] [--force] DEFINITION PREFIX
    source-build --definitions
"""

import asyncio
import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import InstallerSettings
from .discovery import HookPathDiscovery
from .exceptions import SourceBuildError
from .hooks import HookRegistry
from .installer import install_definition
from .installer import validate_definition
from .resolver import DefinitionResolver
from .transaction import InstallationContext

USAGE = "usage: source-build [-k|--keep] [-v|--verbose] [-f|--force] DEFINITION PREFIX"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )


def _list_definitions(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    settings = InstallerSettings.from_environ()
    for name in DefinitionResolver(settings.definitions_paths).list_definitions():
        click.echo(name)
    ctx.exit(0)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("definition", required=False)
@click.argument("prefix", required=False, type=click.Path(path_type=Path))
@click.option("-k", "--keep", is_flag=True, default=None, help="Keep the build workspace after installation")
@click.option("-v", "--verbose", is_flag=True, default=None, help="Stream the build log while installing")
@click.option("-f", "--force", is_flag=True, help="Install even if PREFIX already exists")
@click.option(
    "--definitions",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_list_definitions,
    help="List built-in and configured definitions",
)
@click.version_option(version=__version__, prog_name="source-build")
@click.pass_context
def main(
    ctx: click.Context,
    definition: str | None,
    prefix: Path | None,
    keep: bool | None,
    verbose: bool | None,
    force: bool,
) -> None:
    """Build and install DEFINITION into PREFIX."""
    if not definition or prefix is None:
        click.echo(USAGE, err=True)
        ctx.exit(1)

    settings = InstallerSettings.from_environ()
    configure_logging(verbose if verbose is not None else settings.verbose)

    try:
        resolved = DefinitionResolver(settings.definitions_paths).resolve(definition)
        validate_definition(resolved)
        hooks = HookRegistry.from_discovery(HookPathDiscovery(settings.hook_paths))
    except SourceBuildError as e:
        click.echo(f"source-build: {e.message}", err=True)
        ctx.exit(1)

    context = InstallationContext.create(
        prefix,
        settings,
        version_name=resolved.name,
        keep_build_tree=keep,
        verbose=verbose,
    )

    if context.prefix_path.exists() and not force:
        if not click.confirm(f"source-build: {context.prefix_path} already exists. Continue with installation?"):
            ctx.exit(1)

    try:
        asyncio.run(install_definition(resolved, context, hooks=hooks, stream=sys.stderr))
    except SourceBuildError:
        # Transaction already reported the failure
        ctx.exit(1)


if __name__ == "__main__":
    main()
