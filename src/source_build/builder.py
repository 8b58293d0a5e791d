"""Build strategy dispatch.

A strategy is a pure function of (package name, resolved BuildOptions) that
returns the ordered build steps for a package. The dispatcher runs the steps
inside the unpacked source tree with all tool output sent to the build log.

Strategies are looked up by name in STRATEGIES; plugins can add their own
with register_strategy().
"""

import logging
import shutil
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from .buildlog import BuildLog
from .config import BuildOptions
from .config import package_var_prefix
from .exceptions import BuildStepFailed
from .exceptions import BuildToolMissing
from .exceptions import DefinitionError
from .schema import PackageSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildStep:
    """One build step: an external command or an in-process action."""

    name: str
    command: list[str] | None = None
    env: dict[str, str] = field(default_factory=dict)
    action: Callable[[Path], None] | None = None


@dataclass(frozen=True)
class OptionalArgument:
    """Default configure argument the user's own flags can veto."""

    argument: str
    skip_if: tuple[str, ...] = ()

    def applies(self, flags: Iterable[str]) -> bool:
        return not any(flag.split("=", 1)[0] in self.skip_if for flag in flags)


# Defaults added to `configure` per package family unless vetoed
OPTIONAL_CONFIGURE_ARGS: dict[str, list[OptionalArgument]] = {
    "RUBY": [
        OptionalArgument("--enable-shared", skip_if=("--enable-shared", "--disable-shared")),
    ],
}

Strategy = Callable[[str, BuildOptions], list[BuildStep]]

STRATEGIES: dict[str, Strategy] = {}


def register_strategy(name: str) -> Callable[[Strategy], Strategy]:
    """Register a build strategy under name.

    Example:
        >>> @register_strategy("cmake")
        ... def build_cmake(package_name, options):
        ...     return [BuildStep("cmake", ["cmake", f"-DCMAKE_INSTALL_PREFIX={options.prefix_path}", "."])]
    """

    def decorator(func: Strategy) -> Strategy:
        STRATEGIES[name] = func
        return func

    return decorator


def unknown_strategies(names: Iterable[str]) -> list[str]:
    return [name for name in names if name not in STRATEGIES]


@register_strategy("standard")
def build_standard(package_name: str, options: BuildOptions) -> list[BuildStep]:
    """configure, make, make install."""
    optional = [
        opt.argument
        for opt in OPTIONAL_CONFIGURE_ARGS.get(package_var_prefix(package_name), [])
        if opt.applies(options.configure_opts)
    ]
    env = {"CFLAGS": options.cflags} if options.cflags else {}

    return [
        BuildStep(
            "configure",
            [options.configure, f"--prefix={options.prefix_path}", *optional, *options.configure_opts],
            env=env,
        ),
        BuildStep("make", [options.make, *options.make_opts], env=env),
        BuildStep("make install", [options.make, "install", *options.make_install_opts], env=env),
    ]


@register_strategy("autoconf")
def build_autoconf(package_name: str, options: BuildOptions) -> list[BuildStep]:
    return [BuildStep("autoreconf", ["autoreconf", "-i"])]


@register_strategy("ruby")
def build_ruby(package_name: str, options: BuildOptions) -> list[BuildStep]:
    """Run setup.rb with the ruby installed earlier in the same prefix."""
    return [BuildStep("setup.rb", [str(options.prefix_path / "bin" / "ruby"), "setup.rb"])]


def _copy_tree(prefix_path: Path) -> Callable[[Path], None]:
    def copy(source_tree: Path) -> None:
        prefix_path.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source_tree, prefix_path, symlinks=True, dirs_exist_ok=True)

    return copy


@register_strategy("copy")
def build_copy(package_name: str, options: BuildOptions) -> list[BuildStep]:
    return [BuildStep("copy", action=_copy_tree(options.prefix_path))]


def _jruby_post_install(prefix_path: Path) -> Callable[[Path], None]:
    def post_install(source_tree: Path) -> None:
        bin_path = prefix_path / "bin"
        for pattern in ("*.exe", "*.dll", "*.bat"):
            for artifact in bin_path.glob(pattern):
                artifact.unlink()

        alias = bin_path / "ruby"
        if alias.is_symlink() or alias.exists():
            alias.unlink()
        alias.symlink_to("jruby")

    return post_install


@register_strategy("jruby")
def build_jruby(package_name: str, options: BuildOptions) -> list[BuildStep]:
    """Copy a binary distribution and expose it as `ruby`."""
    return [
        *build_copy(package_name, options),
        BuildStep("jruby post-install", action=_jruby_post_install(options.prefix_path)),
    ]


async def run_step(step: BuildStep, package_name: str, source_tree: Path, log: BuildLog) -> None:
    """Execute one build step in the source tree.

    Raises:
        BuildToolMissing: If the step's executable is not available
        BuildStepFailed: If the step exits nonzero or its action raises OSError
    """
    if step.action is not None:
        log.write(f"+ ({step.name})")
        try:
            step.action(source_tree)
        except OSError as e:
            log.write(f"{step.name}: {e}")
            raise BuildStepFailed(package_name, step.name, 1, log.tail()) from e
        return

    if not step.command:
        return

    executable = step.command[0]
    if "/" in executable:
        resolved = source_tree / executable if not Path(executable).is_absolute() else Path(executable)
        if not resolved.exists():
            raise BuildToolMissing(
                f"{step.name}: {executable} not found for {package_name}",
                context={"package": package_name, "tool": executable},
            )
    elif shutil.which(executable) is None:
        raise BuildToolMissing(
            f"{step.name}: {executable} is not installed",
            context={"package": package_name, "tool": executable},
        )

    try:
        returncode = await log.run(step.command, cwd=source_tree, env=step.env)
    except FileNotFoundError as e:
        raise BuildToolMissing(
            f"{step.name}: {executable} could not be executed",
            context={"package": package_name, "tool": executable},
        ) from e

    if returncode != 0:
        raise BuildStepFailed(package_name, step.name, returncode, log.tail())


async def build(spec: PackageSpec, source_tree: Path, options: BuildOptions, log: BuildLog) -> None:
    """Build and install one package with its configured strategies.

    Args:
        spec: Package directive (spec.build lists strategies in order)
        source_tree: Unpacked source directory (cwd for every step)
        options: Resolved options for this package
        log: Build log receiving all tool output

    Raises:
        DefinitionError: If a strategy name is not registered
        BuildToolMissing: If a required tool is missing
        BuildStepFailed: If any step fails
    """
    for strategy_name in spec.build:
        strategy = STRATEGIES.get(strategy_name)
        if strategy is None:
            raise DefinitionError(
                f"Unknown build strategy '{strategy_name}' for {spec.name}",
                context={"package": spec.name, "strategy": strategy_name},
            )

        logger.debug(f"Building {spec.name} with {strategy_name} strategy")
        for step in strategy(spec.name, options):
            await run_step(step, spec.name, source_tree, log)
