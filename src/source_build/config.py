"""Installer configuration.

Settings are read from the environment once, into an explicit object that is
threaded through the pipeline. Per-package overrides are keyed by the
uppercased package name up to its first hyphen, so one override applies to
every version of a package family:

    RUBY_CONFIGURE_OPTS="--disable-install-doc"   # applies to ruby-3.3.0
    OPENSSL_PREFIX_PATH=/opt/openssl              # applies to openssl-3.2.1
"""

import os
import platform
import re
import shlex
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

ENV_PREFIX = "SOURCE_BUILD_"

OVERRIDE_SUFFIXES = (
    "CONFIGURE_OPTS",
    "MAKE_INSTALL_OPTS",
    "MAKE_OPTS",
    "CONFIGURE",
    "PREFIX_PATH",
    "CFLAGS",
)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def package_var_prefix(package_name: str) -> str:
    """Derive the override variable prefix for a package.

    Example:
        >>> package_var_prefix("foo-1.2")
        'FOO'
        >>> package_var_prefix("libffi-3.4.4")
        'LIBFFI'
    """
    family = package_name.split("-", 1)[0]
    return re.sub(r"[^A-Z0-9]", "_", family.upper())


def _split(value: str | None) -> list[str]:
    return shlex.split(value) if value else []


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def _paths(value: str | None) -> list[Path]:
    return [Path(p).expanduser() for p in (value or "").split(os.pathsep) if p]


def default_make() -> str:
    return "gmake" if platform.system() == "FreeBSD" else "make"


class PackageOverrides(BaseModel):
    """Raw overrides for one package family.

    Flat strings come from the environment; the `*_array` list forms are set
    programmatically, for example by a before-install hook.
    """

    configure: str | None = None
    prefix_path: Path | None = None
    configure_opts: str = ""
    make_opts: str = ""
    make_install_opts: str = ""
    cflags: str = ""
    configure_opts_array: list[str] = Field(default_factory=list)
    make_opts_array: list[str] = Field(default_factory=list)
    make_install_opts_array: list[str] = Field(default_factory=list)


class BuildOptions(BaseModel):
    """Resolved build options for one package (read-only during a build)."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    prefix_path: Path
    make: str = "make"
    configure: str = "./configure"
    configure_opts: list[str] = Field(default_factory=list)
    make_opts: list[str] = Field(default_factory=list)
    make_install_opts: list[str] = Field(default_factory=list)
    cflags: str = ""


class InstallerSettings(BaseModel):
    """Process-wide installer configuration."""

    cache_path: Path | None = None
    mirror_url: str | None = None
    skip_mirror: bool = False
    build_root: Path | None = None
    definitions_paths: list[Path] = Field(default_factory=list)
    hook_paths: list[Path] = Field(default_factory=list)
    http_client: str | None = None
    keep_build_path: bool = False
    verbose: bool = False

    make: str = Field(default_factory=default_make)
    make_opts: str | None = None
    make_install_opts: str = ""
    configure_opts: str = ""
    cflags: str = ""

    package_overrides: dict[str, PackageOverrides] = Field(default_factory=dict)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "InstallerSettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read (defaults to os.environ)

        Returns:
            InstallerSettings instance
        """
        env = os.environ if environ is None else environ

        cache_path = env.get(f"{ENV_PREFIX}CACHE_PATH")
        build_root = env.get(f"{ENV_PREFIX}BUILD_PATH")

        return cls(
            cache_path=Path(cache_path) if cache_path else None,
            mirror_url=env.get(f"{ENV_PREFIX}MIRROR_URL") or None,
            skip_mirror=_flag(env.get(f"{ENV_PREFIX}SKIP_MIRROR")),
            build_root=Path(build_root).expanduser() if build_root else None,
            definitions_paths=_paths(env.get(f"{ENV_PREFIX}DEFINITIONS")),
            hook_paths=_paths(env.get(f"{ENV_PREFIX}HOOK_PATH")),
            http_client=env.get(f"{ENV_PREFIX}HTTP_CLIENT") or None,
            keep_build_path=_flag(env.get(f"{ENV_PREFIX}KEEP")),
            verbose=_flag(env.get(f"{ENV_PREFIX}VERBOSE")),
            make=env.get("MAKE") or default_make(),
            make_opts=env.get("MAKE_OPTS"),
            make_install_opts=env.get("MAKE_INSTALL_OPTS", ""),
            configure_opts=env.get("CONFIGURE_OPTS", ""),
            cflags=env.get("CFLAGS", ""),
            package_overrides=_overrides_from_environ(env),
        )

    def overrides_for(self, package_name: str) -> PackageOverrides:
        """Return (creating if needed) the overrides for a package family."""
        key = package_var_prefix(package_name)
        if key not in self.package_overrides:
            self.package_overrides[key] = PackageOverrides()
        return self.package_overrides[key]

    def options_for(self, package_name: str, prefix_path: Path) -> BuildOptions:
        """Resolve build options for one package.

        Global flags come first, then the package family's flat flags, then
        its list-form flags.

        Args:
            package_name: Package name (e.g. "ruby-3.3.0")
            prefix_path: Installation prefix for the run

        Returns:
            Resolved BuildOptions
        """
        overrides = self.package_overrides.get(package_var_prefix(package_name), PackageOverrides())

        make_opts = _split(self.make_opts)
        if self.make_opts is None:
            make_opts = [f"-j{os.cpu_count() or 1}"]

        cflags = " ".join(part for part in (self.cflags, overrides.cflags) if part)

        return BuildOptions(
            package_name=package_name,
            prefix_path=overrides.prefix_path or prefix_path,
            make=self.make,
            configure=overrides.configure or "./configure",
            configure_opts=[
                *_split(self.configure_opts),
                *_split(overrides.configure_opts),
                *overrides.configure_opts_array,
            ],
            make_opts=[*make_opts, *_split(overrides.make_opts), *overrides.make_opts_array],
            make_install_opts=[
                *_split(self.make_install_opts),
                *_split(overrides.make_install_opts),
                *overrides.make_install_opts_array,
            ],
            cflags=cflags,
        )


def _overrides_from_environ(env: Mapping[str, str]) -> dict[str, PackageOverrides]:
    """Collect `<PKG>_<SUFFIX>` variables into per-family overrides."""
    raw: dict[str, dict[str, str]] = {}
    for name, value in env.items():
        if name.startswith(ENV_PREFIX):
            continue
        for suffix in OVERRIDE_SUFFIXES:
            key, sep, tail = name.rpartition(f"_{suffix}")
            if sep and not tail and key:
                raw.setdefault(key, {})[suffix.lower()] = value
                break

    return {key: PackageOverrides(**fields) for key, fields in raw.items()}
