"""Before/after install hooks.

Hook scripts are plain Python files exposing `register(registry)`:

    def set_version_name(context):
        context.version_name = f"{context.version_name}-custom"

    def register(registry):
        registry.before_install(set_version_name)

Callbacks run synchronously in registration order and receive the mutable
InstallationContext, so later pipeline stages observe their changes.
"""

import importlib.util
import logging
from collections.abc import Callable
from collections.abc import Iterable
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from .exceptions import HookError
from .protocols import HookDiscoveryProtocol

if TYPE_CHECKING:
    from .transaction import InstallationContext

logger = logging.getLogger(__name__)

HookCallback = Callable[["InstallationContext"], None]


class HookPhase(StrEnum):
    BEFORE_INSTALL = "before_install"
    AFTER_INSTALL = "after_install"


class HookRegistry:
    """Ordered, append-only hook callbacks per phase."""

    def __init__(self):
        self._hooks: dict[HookPhase, list[HookCallback]] = {phase: [] for phase in HookPhase}

    @classmethod
    def from_discovery(cls, discovery: HookDiscoveryProtocol) -> "HookRegistry":
        """Create a registry and load every discovered hook script."""
        registry = cls()
        registry.load(discovery.discover())
        return registry

    def register(self, phase: HookPhase, callback: HookCallback) -> HookCallback:
        self._hooks[HookPhase(phase)].append(callback)
        return callback

    def before_install(self, callback: HookCallback) -> HookCallback:
        return self.register(HookPhase.BEFORE_INSTALL, callback)

    def after_install(self, callback: HookCallback) -> HookCallback:
        return self.register(HookPhase.AFTER_INSTALL, callback)

    def callbacks(self, phase: HookPhase) -> list[HookCallback]:
        return list(self._hooks[HookPhase(phase)])

    def load(self, scripts: Iterable[Path]) -> None:
        """Import hook scripts and let each register its callbacks.

        Raises:
            HookError: If a script cannot be imported or has no register()
        """
        for script in scripts:
            module_name = f"source_build_hook_{script.stem.replace('-', '_')}"
            spec = importlib.util.spec_from_file_location(module_name, script)
            if spec is None or spec.loader is None:
                raise HookError(f"Cannot load hook script {script}", context={"script": str(script)})

            module = importlib.util.module_from_spec(spec)
            try:
                spec.loader.exec_module(module)
            except Exception as e:
                raise HookError(f"Hook script {script} failed to load: {e}", context={"script": str(script)}) from e

            register = getattr(module, "register", None)
            if not callable(register):
                raise HookError(
                    f"Hook script {script} does not define register(registry)",
                    context={"script": str(script)},
                )
            try:
                register(self)
            except Exception as e:
                raise HookError(f"Hook script {script} failed to register: {e}", context={"script": str(script)}) from e
            logger.debug(f"Loaded hook script {script}")

    def run_all(self, phase: HookPhase, context: "InstallationContext") -> None:
        """Run every callback for phase in registration order.

        Raises:
            HookError: If a callback raises; remaining callbacks are skipped
        """
        for callback in self._hooks[HookPhase(phase)]:
            name = getattr(callback, "__name__", repr(callback))
            logger.debug(f"Running {phase} hook {name}")
            context.log.write(f"running {phase} hook {name}")
            try:
                callback(context)
            except HookError:
                raise
            except Exception as e:
                raise HookError(f"{phase} hook {name} failed: {e}", context={"hook": name}) from e
