"""Tests for the source-build command line."""

import pytest
from click.testing import CliRunner
from source_build import __version__
from source_build.cli import main

COPY_DEFINITION = """
[[package]]
name = "tool-dev"
kind = "copy"
url = "{source}"
build = "copy"
"""


@pytest.fixture
def runner(tmp_path) -> CliRunner:
    return CliRunner(
        env={
            "SOURCE_BUILD_BUILD_PATH": str(tmp_path / "tmp"),
            "SOURCE_BUILD_DEFINITIONS": None,
            "SOURCE_BUILD_HOOK_PATH": None,
            "SOURCE_BUILD_CACHE_PATH": None,
            "SOURCE_BUILD_KEEP": None,
            "SOURCE_BUILD_VERBOSE": None,
        }
    )


@pytest.fixture
def copy_definition(tmp_path):
    source = tmp_path / "checkout"
    (source / "bin").mkdir(parents=True)
    (source / "bin" / "tool").write_text("#!/bin/sh\necho tool\n")
    path = tmp_path / "tool-dev.toml"
    path.write_text(COPY_DEFINITION.format(source=source))
    return path


def test_missing_arguments_prints_usage(runner):
    result = runner.invoke(main, [])

    assert result.exit_code == 1
    assert "usage: source-build" in result.output


def test_missing_prefix_prints_usage(runner):
    result = runner.invoke(main, ["ruby-dev"])

    assert result.exit_code == 1
    assert "usage: source-build" in result.output


def test_version(runner):
    result = runner.invoke(main, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_list_definitions(runner):
    result = runner.invoke(main, ["--definitions"])

    assert result.exit_code == 0
    assert "ruby-dev" in result.output.splitlines()
    assert "ruby-3.4-dev" in result.output.splitlines()


def test_unknown_definition(runner, tmp_path):
    result = runner.invoke(main, ["no-such-version", str(tmp_path / "prefix")])

    assert result.exit_code == 1
    assert "source-build: definition not found: no-such-version" in result.output


def test_install_copy_definition(runner, tmp_path, copy_definition):
    prefix = tmp_path / "versions" / "tool-dev"

    result = runner.invoke(main, [str(copy_definition), str(prefix)])

    assert result.exit_code == 0, result.output
    assert (prefix / "bin" / "tool").exists()
    assert list((tmp_path / "tmp").iterdir()) == []


def test_existing_prefix_declined(runner, tmp_path, copy_definition):
    prefix = tmp_path / "prefix"
    prefix.mkdir()

    result = runner.invoke(main, [str(copy_definition), str(prefix)], input="n\n")

    assert result.exit_code == 1
    assert "already exists" in result.output
    assert not (prefix / "bin").exists()


def test_existing_prefix_forced(runner, tmp_path, copy_definition):
    prefix = tmp_path / "prefix"
    prefix.mkdir()

    result = runner.invoke(main, ["--force", str(copy_definition), str(prefix)])

    assert result.exit_code == 0, result.output
    assert (prefix / "bin" / "tool").exists()


def test_broken_hook_script_reported(runner, tmp_path, copy_definition):
    hooks = tmp_path / "hooks"
    (hooks / "install").mkdir(parents=True)
    (hooks / "install" / "broken.py").write_text("def register(registry):\n    raise RuntimeError('bad register')\n")
    runner.env["SOURCE_BUILD_HOOK_PATH"] = str(hooks)

    result = runner.invoke(main, [str(copy_definition), str(tmp_path / "prefix")])

    assert result.exit_code == 1
    assert "source-build: Hook script" in result.output
    assert "bad register" in result.output
    assert not isinstance(result.exception, RuntimeError)
