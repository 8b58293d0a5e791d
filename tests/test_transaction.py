"""Tests for the installation transaction."""

import io
import os
import stat
from pathlib import Path

import pytest
from source_build import BuildError
from source_build import BuildStepFailed
from source_build import InstallationContext
from source_build import InstallationTransaction
from source_build import TransactionState
from source_build import __version__
from source_build import transaction as transaction_module
from source_build.transaction import fix_directory_permissions


@pytest.fixture
def context(tmp_path, settings) -> InstallationContext:
    return InstallationContext.create(tmp_path / "prefix", settings, version_name="foo-1.0", seed="test")


def test_create_allocates_unique_paths(tmp_path, settings):
    """Test paths are derived from the build root and seed but not created."""
    context = InstallationContext.create(tmp_path / "prefix", settings, seed="20250101000000.42")

    assert context.build_path == tmp_path / "tmp" / "source-build.20250101000000.42"
    assert context.log_path == tmp_path / "tmp" / "source-build.20250101000000.42.log"
    assert context.version_name == "prefix"
    assert not context.build_path.exists()
    assert not context.log_path.exists()


def test_create_normalizes_cache_path(tmp_path, settings):
    cache_root = tmp_path / "cache"
    cache_root.mkdir()

    settings.cache_path = cache_root
    assert InstallationContext.create(tmp_path / "prefix", settings).cache_path == cache_root

    settings.cache_path = tmp_path / "no-such-cache"
    assert InstallationContext.create(tmp_path / "prefix", settings).cache_path is None


def test_start_requires_fresh_workspace(context):
    context.build_path.mkdir(parents=True)

    with pytest.raises(FileExistsError):
        InstallationTransaction(context).start()


@pytest.mark.asyncio
async def test_commit_removes_workspace_and_log(context):
    transaction = InstallationTransaction(context)

    async with transaction:
        assert transaction.state == TransactionState.RUNNING
        assert context.build_path.is_dir()
        assert context.log_path.exists()
        (context.build_path / "foo-1.0").mkdir()

    assert transaction.state == TransactionState.COMMITTED
    assert not context.build_path.exists()
    assert not context.log_path.exists()


@pytest.mark.asyncio
async def test_commit_keeps_workspace_when_requested(context):
    context.keep_build_tree = True

    async with InstallationTransaction(context):
        (context.build_path / "foo-1.0").mkdir()

    assert (context.build_path / "foo-1.0").is_dir()
    assert context.log_path.exists()


@pytest.mark.asyncio
async def test_failure_preserves_non_empty_workspace(context):
    """Test a failed run keeps its workspace and prints a summary with the log tail."""
    stream = io.StringIO()
    transaction = InstallationTransaction(context, stream=stream)

    with pytest.raises(BuildStepFailed):
        async with transaction:
            (context.build_path / "foo-1.0").mkdir()
            context.log.write("compiler exploded")
            raise BuildStepFailed("foo-1.0", "make", 2, context.log.tail())

    assert transaction.state == TransactionState.FAILED
    assert (context.build_path / "foo-1.0").is_dir()
    assert context.log_path.exists()

    summary = stream.getvalue()
    assert "BUILD FAILED" in summary
    assert f"using source-build {__version__}" in summary
    assert f"Inspect or clean up the working tree at {context.build_path}" in summary
    assert f"Results logged to {context.log_path}" in summary
    assert "compiler exploded" in summary
    assert "error: make failed for foo-1.0" in context.log_path.read_text()


@pytest.mark.asyncio
async def test_failure_removes_empty_workspace(context):
    stream = io.StringIO()

    with pytest.raises(RuntimeError):
        async with InstallationTransaction(context, stream=stream):
            raise RuntimeError("boom")

    assert not context.build_path.exists()
    assert context.log_path.exists()
    assert "Inspect or clean up" not in stream.getvalue()
    assert "Results logged to" in stream.getvalue()


@pytest.mark.asyncio
async def test_failed_run_leaves_prefix_permissions_alone(context):
    context.prefix_path.mkdir()
    os.chmod(context.prefix_path, 0o777)

    with pytest.raises(RuntimeError):
        async with InstallationTransaction(context, stream=io.StringIO()):
            raise RuntimeError("boom")

    assert stat.S_IMODE(context.prefix_path.stat().st_mode) == 0o777


@pytest.mark.asyncio
async def test_missing_log_follower_does_not_affect_run(context):
    """Test the optional log follower failing to start is ignored."""
    context.verbose = True
    transaction = InstallationTransaction(context)
    transaction.follow_command = ("no-such-tail-command",)

    async with transaction:
        (context.build_path / "foo-1.0").mkdir()

    assert transaction.state == TransactionState.COMMITTED


def test_fix_directory_permissions(tmp_path):
    """Test every directory loses group and world write bits; files are untouched."""
    prefix = tmp_path / "prefix"
    nested = prefix / "lib" / "pkgconfig"
    nested.mkdir(parents=True)
    for directory in (prefix, prefix / "lib", nested):
        os.chmod(directory, 0o777)
    script = prefix / "lib" / "tool"
    script.write_text("x")
    os.chmod(script, 0o666)

    fix_directory_permissions(prefix)

    for directory in (prefix, prefix / "lib", nested):
        mode = stat.S_IMODE(directory.stat().st_mode)
        assert mode & (stat.S_IWGRP | stat.S_IWOTH) == 0
        assert mode == 0o755
    assert stat.S_IMODE(script.stat().st_mode) == 0o666


def test_fix_directory_permissions_missing_prefix(tmp_path):
    fix_directory_permissions(tmp_path / "missing")


def test_create_makes_relative_build_root_absolute(monkeypatch, tmp_path, settings):
    monkeypatch.chdir(tmp_path)
    settings.build_root = Path("work")

    context = InstallationContext.create(tmp_path / "prefix", settings, seed="rel")

    assert context.build_path == tmp_path / "work" / "source-build.rel"
    assert context.log_path.is_absolute()


@pytest.mark.asyncio
async def test_commit_failure_is_reported(monkeypatch, context):
    """Test a permission error while hardening the prefix fails the run with a summary."""

    def refuse(root):
        raise PermissionError(f"Operation not permitted: '{root}'")

    monkeypatch.setattr(transaction_module, "fix_directory_permissions", refuse)
    stream = io.StringIO()
    transaction = InstallationTransaction(context, stream=stream)

    with pytest.raises(BuildError, match="Failed to fix permissions"):
        async with transaction:
            (context.build_path / "foo-1.0").mkdir()

    assert transaction.state == TransactionState.FAILED
    assert "BUILD FAILED" in stream.getvalue()
    assert (context.build_path / "foo-1.0").is_dir()
