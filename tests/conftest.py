"""Shared fixtures: local tarballs, a fake HTTP client, and fake build tools."""

import hashlib
import io
import shutil
import subprocess
import tarfile
from pathlib import Path

import pytest
from source_build import InstallerSettings

CONFIGURE_SCRIPT = """#!/bin/sh
for arg in "$@"; do
  case "$arg" in
    --prefix=*) echo "${arg#--prefix=}" > .prefix ;;
  esac
done
echo "configured with $*"
"""

MAKE_SCRIPT = """#!/bin/sh
if [ "$1" = "install" ]; then
  prefix=$(cat .prefix)
  mkdir -p "$prefix/bin"
  cp hello "$prefix/bin/hello"
  chmod 755 "$prefix/bin/hello"
fi
echo "make $*"
"""

FAILING_MAKE_SCRIPT = """#!/bin/sh
echo "compiler exploded"
exit 2
"""


class FakeHttpClient:
    """HttpClientProtocol double serving local files for known URLs."""

    def __init__(self, responses: dict[str, Path] | None = None, head_ok: set[str] | None = None):
        self.responses = responses or {}
        self.head_ok = head_ok
        self.calls: list[tuple[str, str]] = []

    async def head(self, url: str) -> bool:
        self.calls.append(("head", url))
        if self.head_ok is not None:
            return url in self.head_ok
        return url in self.responses

    async def get(self, url: str, destination: Path) -> bool:
        self.calls.append(("get", url))
        source = self.responses.get(url)
        if source is None:
            return False
        shutil.copyfile(source, destination)
        return True

    @property
    def downloads(self) -> list[str]:
        return [url for method, url in self.calls if method == "get"]


def sha256_of(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def write_tarball(path: Path, package_name: str, files: dict[str, tuple[str, int]]) -> Path:
    """Write a .tar.gz with files under `<package_name>/`.

    Args:
        path: Archive to create
        package_name: Top-level directory inside the archive
        files: Relative name -> (content, mode)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        directory = tarfile.TarInfo(package_name)
        directory.type = tarfile.DIRTYPE
        directory.mode = 0o755
        tar.addfile(directory)
        for name, (content, mode) in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"{package_name}/{name}")
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
    return path


def write_script(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(0o755)
    return path


@pytest.fixture
def foo_tarball(tmp_path) -> Path:
    """A configure/make style source tarball for foo-1.0."""
    return write_tarball(
        tmp_path / "upstream" / "foo-1.0.tar.gz",
        "foo-1.0",
        {
            "configure": (CONFIGURE_SCRIPT, 0o755),
            "hello": ("#!/bin/sh\necho hello\n", 0o755),
        },
    )


@pytest.fixture
def fake_make(tmp_path) -> Path:
    return write_script(tmp_path / "tools" / "make", MAKE_SCRIPT)


@pytest.fixture
def failing_make(tmp_path) -> Path:
    return write_script(tmp_path / "tools" / "failing-make", FAILING_MAKE_SCRIPT)


@pytest.fixture
def settings(tmp_path, fake_make) -> InstallerSettings:
    """Settings isolated to tmp_path, using the fake make."""
    return InstallerSettings(make=str(fake_make), make_opts="", build_root=tmp_path / "tmp")


@pytest.fixture
def http_client_factory():
    return FakeHttpClient


def make_git_repo(path: Path, files: dict[str, str], branch: str = "main") -> Path:
    """Create a one-commit git repository at path on the given branch."""
    path.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        (path / name).parent.mkdir(parents=True, exist_ok=True)
        (path / name).write_text(content)
    git = ["git", "-c", "user.name=Test", "-c", "user.email=test@example.org", "-c", "commit.gpgsign=false"]
    subprocess.run([*git, "init", "-q"], cwd=path, check=True)
    subprocess.run([*git, "add", "."], cwd=path, check=True)
    subprocess.run([*git, "commit", "-q", "-m", "initial"], cwd=path, check=True)
    subprocess.run([*git, "branch", "-M", branch], cwd=path, check=True)
    return path
