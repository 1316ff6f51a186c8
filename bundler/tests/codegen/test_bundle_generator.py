#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from pathlib import Path

import pytest

from tsb_codegen import (
    BUNDLE_CLOSE,
    BUNDLE_OPEN,
    FACTORY_OPEN,
    RUNTIME_PRELUDE,
    TABLE_OPEN,
    BundleGenerator,
)
from tsb_errors import InternalBundlerError
from tsb_module import Module

ROOT = Path("/project/src")


def _module(identity, name, body, deps=None):
    return Module(identity=identity, path=ROOT / name, dependencies=deps or {}, body=body)


def _two_modules():
    return [
        _module(0, "main.ts", 'var b = require("./b");', {"./b": 1}),
        _module(1, "b.ts", "exports.y = 2;"),
    ]


def test_bundle_layout():
    code = BundleGenerator().generate(_two_modules())

    expected = "\n".join([
        BUNDLE_OPEN,
        RUNTIME_PRELUDE,
        TABLE_OPEN,
        "/* main.ts */",
        "0: [",
        FACTORY_OPEN,
        'var b = require("./b");',
        "}, {",
        '"./b": 1,',
        "}",
        "],",
        "/* b.ts */",
        "1: [",
        FACTORY_OPEN,
        "exports.y = 2;",
        "}, {",
        "}",
        "],",
        BUNDLE_CLOSE,
    ]) + "\n"
    assert code == expected


def test_prelude_caches_before_running_factory():
    cache = RUNTIME_PRELUDE.index("executedModules[id] = module;")
    call = RUNTIME_PRELUDE.index("mod[0].call(")
    assert cache < call
    assert RUNTIME_PRELUDE.rstrip().endswith("executeModule(0);")
    assert "Cannot find module" in RUNTIME_PRELUDE


def test_generation_is_deterministic():
    first = BundleGenerator().generate(_two_modules())
    second = BundleGenerator().generate(_two_modules())
    assert first == second


def test_specifiers_are_escaped():
    modules = [
        _module(0, "main.ts", "", {'./we"ird\\name': 1, "./café": 1}),
        _module(1, "x.ts", ""),
    ]
    code = BundleGenerator().generate(modules)
    assert '"./we\\"ird\\\\name": 1,' in code
    assert '"./caf\\u00e9": 1,' in code


def test_paths_are_shown_relative_to_root():
    modules = [
        _module(0, "main.ts", ""),
        Module(identity=1, path=Path("/project/node_modules/pkg/index.js"), body=""),
    ]
    code = BundleGenerator(root=Path("/project")).generate(modules)
    assert "/* src/main.ts */" in code
    assert "/* node_modules/pkg/index.js */" in code


def test_comment_terminator_in_path_is_escaped():
    modules = [_module(0, "a*/b.ts", "")]
    code = BundleGenerator(root=ROOT).generate(modules)
    assert "/* a*\\/b.ts */" in code


def test_missing_body_is_internal_error():
    modules = _two_modules()
    modules[1].body = None
    with pytest.raises(InternalBundlerError) as excinfo:
        BundleGenerator().generate(modules)
    assert "[ICE-0022]" in excinfo.value.format()


def test_empty_module_list_is_internal_error():
    with pytest.raises(InternalBundlerError) as excinfo:
        BundleGenerator().generate([])
    assert "[ICE-0020]" in excinfo.value.message


def test_dangling_dependency_is_internal_error():
    modules = [_module(0, "main.ts", "", {"./gone": 5})]
    with pytest.raises(InternalBundlerError) as excinfo:
        BundleGenerator().generate(modules)
    assert "[ICE-0023]" in excinfo.value.message
