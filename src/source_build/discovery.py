"""Hook script discovery - Convention over configuration.

Each hook path may contain an `install/` directory; every `*.py` file in it
is a hook script. Paths are searched in the order given and scripts within
one directory load in name order:

    ~/.source-build/hooks/install/10-version-name.py
    ~/.source-build/hooks/install/20-notify.py
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

HOOK_SUBDIR = "install"


def discover_hook_scripts(hook_paths: list[Path], subdir: str = HOOK_SUBDIR) -> list[Path]:
    """
    Discover hook scripts under the given hook paths.

    Args:
        hook_paths: Directories to search, in load order
        subdir: Per-command subdirectory holding the scripts

    Returns:
        Script paths in load order (duplicates removed)

    Example:
        >>> discover_hook_scripts([Path("/etc/source-build/hooks")])
        [PosixPath('/etc/source-build/hooks/install/10-version-name.py')]
    """
    scripts: list[Path] = []
    seen: set[Path] = set()

    for hook_path in hook_paths:
        hooks_dir = hook_path / subdir
        if not hooks_dir.is_dir():
            continue

        for script in sorted(f for f in hooks_dir.glob("*.py") if f.is_file()):
            resolved = script.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            scripts.append(script)

    logger.debug(f"Discovered {len(scripts)} hook scripts")
    return scripts


class HookPathDiscovery:
    """HookDiscoveryProtocol implementation over hook directories."""

    def __init__(self, hook_paths: list[Path]):
        self.hook_paths = hook_paths

    def discover(self) -> list[Path]:
        return discover_hook_scripts(self.hook_paths)
