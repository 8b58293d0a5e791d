"""Definition schema - Parse definition TOML files.

A definition is an ordered list of package directives:

    [[package]]
    name = "yaml-0.1.6"
    url = "https://example.org/yaml-0.1.6.tar.gz#<sha256>"
    only_if = "needs_yaml"

    [[package]]
    name = "ruby-3.3.0"
    url = "https://example.org/ruby-3.3.0.tar.gz#<sha256>"
    build = ["autoconf", "standard"]
"""

import tomllib
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from .exceptions import DefinitionError


class SourceKind(StrEnum):
    """How a package's source is obtained."""

    TARBALL = "tarball"
    GIT = "git"
    SVN = "svn"
    COPY = "copy"


def split_checksum(url: str) -> tuple[str, str | None]:
    """Split an embedded checksum fragment off a tarball URL.

    Example:
        >>> split_checksum("https://example.org/foo-1.0.tar.gz#abc123")
        ('https://example.org/foo-1.0.tar.gz', 'abc123')
    """
    base, sep, fragment = url.partition("#")
    if not sep or not fragment:
        return base, None
    return base, fragment


class PackageSpec(BaseModel):
    """One package directive from a definition (immutable)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    source_kind: SourceKind = SourceKind.TARBALL
    url: str = Field(min_length=1)
    mirror_url: str | None = None
    ref: str | None = None
    checksum: str | None = None
    build: list[str] = Field(default_factory=lambda: ["standard"])
    only_if: str | None = None

    @classmethod
    def from_directive(cls, directive: dict) -> "PackageSpec":
        """Create a spec from a raw `[[package]]` table.

        The `kind` key selects the source kind; tarball URLs may carry their
        checksum as a `#fragment`.

        Raises:
            ValidationError: If the directive is malformed
        """
        data = dict(directive)
        if "kind" in data:
            data["source_kind"] = data.pop("kind")

        url = data.get("url")
        kind = data.get("source_kind", SourceKind.TARBALL)
        if isinstance(url, str) and kind == SourceKind.TARBALL:
            data["url"], embedded = split_checksum(url)
            if embedded and not data.get("checksum"):
                data["checksum"] = embedded

        if isinstance(data.get("build"), str):
            data["build"] = [data["build"]]
        if not data.get("build"):
            data.pop("build", None)

        return cls(**data)


class Definition(BaseModel):
    """Ordered package directives describing one buildable version."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path | None = None
    packages: list[PackageSpec] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path) -> "Definition":
        """Load a definition from a TOML file.

        Args:
            path: Definition file; the definition name is the file stem

        Returns:
            Definition instance

        Raises:
            DefinitionError: If the file is unreadable, invalid TOML, or a
                directive is malformed
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise DefinitionError(f"Cannot read definition {path}: {e}", context={"path": str(path)}) from e
        except tomllib.TOMLDecodeError as e:
            raise DefinitionError(f"Invalid definition {path}: {e}", context={"path": str(path)}) from e

        directives = data.get("package", [])
        if not isinstance(directives, list) or not directives:
            raise DefinitionError(f"No [[package]] directives in {path}", context={"path": str(path)})

        packages = []
        for index, directive in enumerate(directives):
            try:
                packages.append(PackageSpec.from_directive(directive))
            except (ValidationError, TypeError, ValueError) as e:
                raise DefinitionError(
                    f"Invalid package directive #{index + 1} in {path}: {e}",
                    context={"path": str(path), "index": index},
                ) from e

        name = path.name.removesuffix(".toml")
        return cls(name=name, path=path, packages=packages)
