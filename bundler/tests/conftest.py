#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path
from textwrap import dedent

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tsb_context import BuildContext
from tsb_driver import Bundler
from tsb_paths import ModuleResolver


def node_available() -> bool:
    return shutil.which("node") is not None


requires_node = pytest.mark.skipif(not node_available(), reason="node not available")


@pytest.fixture
def temp_project(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def write_source(temp_project: Path):
    """Write a source file relative to the temporary project root.

    Usage:
        def test_something(write_source):
            main = write_source("src/main.ts", '''
                import { x } from "./lib";
            ''')
    """

    def _write(relpath: str, content: str = "") -> Path:
        file_path = temp_project / relpath
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(dedent(content))
        return file_path

    return _write


@pytest.fixture
def context() -> BuildContext:
    return BuildContext.default()


@pytest.fixture
def js_context() -> BuildContext:
    """Context for projects written in plain JavaScript."""
    return BuildContext(source_exts=[".js"])


@pytest.fixture
def resolver(context: BuildContext, temp_project: Path) -> ModuleResolver:
    return ModuleResolver(context=context, cwd=temp_project)


@pytest.fixture
def bundle_js(js_context: BuildContext, temp_project: Path):
    """Bundle a JavaScript project with the built-in transpiler.

    Returns the BundleResult.
    """

    def _bundle(entry: str):
        bundler = Bundler(context=js_context, resolver=ModuleResolver(context=js_context, cwd=temp_project))
        return bundler.bundle(entry)

    return _bundle


@pytest.fixture
def run_bundle(tmp_path: Path):
    """Execute bundle text with node; returns (returncode, stdout, stderr)."""

    def _run(code: str) -> tuple[int, str, str]:
        bundle_file = tmp_path / "bundle.out.js"
        bundle_file.write_text(code)
        result = subprocess.run(
            ["node", str(bundle_file)],
            capture_output=True,
            text=True,
            timeout=30,
        )
        return result.returncode, result.stdout, result.stderr

    return _run
