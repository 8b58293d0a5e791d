"""Tests for DefinitionResolver with injected search paths."""

import tempfile
from pathlib import Path

import pytest
from source_build import DefinitionNotFoundError
from source_build import DefinitionResolver

DEFINITION = """
[[package]]
name = "{name}"
url = "https://example.org/{name}.tar.gz"
"""


def write_definition(directory: Path, name: str, package: str = "foo-1.0") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.toml"
    path.write_text(DEFINITION.format(name=package))
    return path


def test_resolve_existing_file_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = write_definition(Path(tmpdir) / "anywhere", "custom")

        definition = DefinitionResolver(search_paths=[]).resolve(str(path))

        assert definition.name == "custom"
        assert definition.path == path


def test_resolve_name_in_search_paths_first_match_wins():
    with tempfile.TemporaryDirectory() as tmpdir:
        high = Path(tmpdir) / "high"
        low = Path(tmpdir) / "low"
        write_definition(high, "3.3.0", package="ruby-3.3.0-patched")
        write_definition(low, "3.3.0", package="ruby-3.3.0")

        definition = DefinitionResolver(search_paths=[high, low], builtin_path=Path(tmpdir) / "none").resolve("3.3.0")

        assert definition.packages[0].name == "ruby-3.3.0-patched"


def test_resolve_builtin_definition():
    """Test the definitions shipped with the package are found by name."""
    definition = DefinitionResolver().resolve("ruby-dev")

    assert definition.name == "ruby-dev"
    assert definition.packages[0].ref == "master"


def test_resolve_not_found():
    with tempfile.TemporaryDirectory() as tmpdir:
        resolver = DefinitionResolver(search_paths=[Path(tmpdir)], builtin_path=Path(tmpdir) / "none")

        assert resolver.resolve_path("nope") is None
        with pytest.raises(DefinitionNotFoundError, match="definition not found: nope"):
            resolver.resolve("nope")


def test_list_definitions():
    with tempfile.TemporaryDirectory() as tmpdir:
        user = Path(tmpdir) / "user"
        write_definition(user, "3.3.0")
        write_definition(user, "ruby-dev")
        (user / "README.md").write_text("not a definition")

        names = DefinitionResolver(search_paths=[user, Path(tmpdir) / "missing"]).list_definitions()

        assert "3.3.0" in names
        assert "ruby-3.4-dev" in names
        assert names.count("ruby-dev") == 1
        assert "README" not in names
        assert names == sorted(names)
