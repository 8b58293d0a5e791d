"""Named predicates for conditional package directives (`only_if`)."""

import platform
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .transaction import InstallationContext

Predicate = Callable[["InstallationContext"], bool]

PREDICATES: dict[str, Predicate] = {}

INCLUDE_DIRS = (
    Path("/usr/include"),
    Path("/usr/local/include"),
    Path("/opt/homebrew/include"),
    Path("/opt/local/include"),
)


def register_predicate(name: str) -> Callable[[Predicate], Predicate]:
    def decorator(func: Predicate) -> Predicate:
        PREDICATES[name] = func
        return func

    return decorator


@register_predicate("is_linux")
def is_linux(context: "InstallationContext") -> bool:
    return platform.system() == "Linux"


@register_predicate("is_mac")
def is_mac(context: "InstallationContext") -> bool:
    return platform.system() == "Darwin"


@register_predicate("is_freebsd")
def is_freebsd(context: "InstallationContext") -> bool:
    return platform.system() == "FreeBSD"


@register_predicate("needs_yaml")
def needs_yaml(context: "InstallationContext") -> bool:
    """True when libyaml headers are installed neither system-wide nor in the prefix."""
    include_dirs = (context.prefix_path / "include", *INCLUDE_DIRS)
    return not any((include_dir / "yaml.h").exists() for include_dir in include_dirs)
