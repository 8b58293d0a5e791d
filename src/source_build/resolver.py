"""Definition resolver - Resolve definition names to files.

Search paths are injected by the caller; the built-in definitions shipped
with the package are always searched last.
"""

import logging
from pathlib import Path

from .exceptions import DefinitionNotFoundError
from .schema import Definition

logger = logging.getLogger(__name__)

BUILTIN_DEFINITIONS = Path(__file__).parent / "definitions"
DEFINITION_SUFFIX = ".toml"


class DefinitionResolver:
    """
    Resolve definition names (or paths) to Definition objects.

    Resolution order:
    1. An existing file path
    2. `<name>.toml` in search_paths, first match wins
    3. `<name>.toml` in the built-in definitions directory
    """

    def __init__(self, search_paths: list[Path] | None = None, builtin_path: Path = BUILTIN_DEFINITIONS):
        """Initialize resolver with app-provided search paths.

        Args:
            search_paths: Definition directories in precedence order (highest first)
            builtin_path: Directory with the definitions shipped with the package

        Example:
            >>> resolver = DefinitionResolver(search_paths=[Path.home() / ".source-build" / "definitions"])
        """
        self.search_paths = list(search_paths or [])
        self.builtin_path = builtin_path

    @property
    def all_paths(self) -> list[Path]:
        return [*self.search_paths, self.builtin_path]

    def resolve_path(self, name_or_path: str) -> Path | None:
        """Resolve a definition argument to a file path, or None if not found."""
        candidate = Path(name_or_path).expanduser()
        if candidate.is_file():
            return candidate

        filename = name_or_path if name_or_path.endswith(DEFINITION_SUFFIX) else f"{name_or_path}{DEFINITION_SUFFIX}"
        for search_path in self.all_paths:
            path = search_path / filename
            if path.is_file():
                logger.debug(f"Resolved definition '{name_or_path}' to {path}")
                return path

        return None

    def resolve(self, name_or_path: str) -> Definition:
        """
        Resolve and load a definition.

        Args:
            name_or_path: Definition file path or definition name (e.g. "ruby-dev")

        Returns:
            Parsed Definition

        Raises:
            DefinitionNotFoundError: If no matching file exists
            DefinitionError: If the file cannot be parsed
        """
        path = self.resolve_path(name_or_path)
        if path is None:
            raise DefinitionNotFoundError(
                f"definition not found: {name_or_path}",
                context={"definition": name_or_path, "search_paths": [str(p) for p in self.all_paths]},
            )
        return Definition.from_file(path)

    def list_definitions(self) -> list[str]:
        """List all definition names available in the search paths.

        Returns:
            Sorted, de-duplicated definition names
        """
        names: set[str] = set()
        for search_path in self.all_paths:
            if not search_path.is_dir():
                continue
            for path in search_path.glob(f"*{DEFINITION_SUFFIX}"):
                if path.is_file():
                    names.add(path.name.removesuffix(DEFINITION_SUFFIX))
        return sorted(names)
