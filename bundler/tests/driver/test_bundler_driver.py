#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from pathlib import Path

import pytest

from tsb_context import BuildContext, LogLevel
from tsb_diagnostics import Diagnostic
from tsb_driver import Bundler
from tsb_errors import ModuleNotFoundError, TranspileError, TypeCheckError
from tsb_paths import ModuleResolver


class RecordingChecker:
    def __init__(self, diagnostics=None):
        self.diagnostics = diagnostics or []
        self.checked = []

    def check(self, entry_file):
        self.checked.append(entry_file)
        return list(self.diagnostics)


class RecordingTranspiler:
    def __init__(self):
        self.calls = []

    def transpile(self, source, filename):
        self.calls.append(filename)
        return f"/* {len(source)} chars */"


@pytest.fixture
def make_bundler(js_context, temp_project):
    def _make(**kwargs):
        return Bundler(context=js_context, resolver=ModuleResolver(context=js_context, cwd=temp_project), **kwargs)

    return _make


def test_bundle_returns_graph_and_code(write_source, bundle_js):
    write_source("main.js", 'import { y } from "./b";\nexport const x = 1;\n')
    write_source("b.js", "export const y = 2;\n")

    result = bundle_js("main.js")

    assert len(result.graph) == 2
    assert result.entry_path.name == "main.js"
    assert result.code.startswith(";(function (modules) {")
    assert '"./b": 1,' in result.code


def test_modules_are_transpiled_in_identity_order(write_source, make_bundler):
    write_source("main.js", 'import "./b";\nimport "./c";\n')
    write_source("b.js", "")
    write_source("c.js", "")
    transpiler = RecordingTranspiler()

    result = make_bundler(transpiler=transpiler).bundle("main.js")

    assert [Path(f).name for f in transpiler.calls] == ["main.js", "b.js", "c.js"]
    assert [m.body for m in result.graph] == ["/* 28 chars */", "/* 0 chars */", "/* 0 chars */"]


def test_checker_receives_resolved_entry(write_source, make_bundler):
    entry = write_source("src/main.js", "")
    checker = RecordingChecker()

    make_bundler(checker=checker).bundle("src/main")

    assert checker.checked == [entry]


def test_type_errors_abort_before_traversal(write_source, make_bundler):
    write_source("main.js", 'import "./missing";\n')
    diags = [
        Diagnostic(kind="error", message="first", code="TS1"),
        Diagnostic(kind="error", message="second", code="TS2"),
    ]
    transpiler = RecordingTranspiler()

    with pytest.raises(TypeCheckError) as excinfo:
        make_bundler(checker=RecordingChecker(diags), transpiler=transpiler).bundle("main.js")

    err = excinfo.value
    assert "[CHK-0010]" in err.message
    assert err.diagnostics == diags
    assert transpiler.calls == []


def test_missing_entry(make_bundler):
    with pytest.raises(ModuleNotFoundError):
        make_bundler().bundle("nope.js")


def test_build_graph_skips_check_and_transpile(write_source, make_bundler):
    write_source("main.js", 'import "./b";\n')
    write_source("b.js", "")
    checker = RecordingChecker([Diagnostic(kind="error", message="ignored")])

    graph = make_bundler(checker=checker).build_graph("main.js")

    assert len(graph) == 2
    assert checker.checked == []
    assert all(m.body is None for m in graph)


def test_stage_logging(write_source, temp_project, capsys):
    write_source("main.ts", "")
    context = BuildContext(log_level=LogLevel.INFO)

    Bundler(context=context, resolver=ModuleResolver(context=context, cwd=temp_project)).bundle("main.ts")

    err = capsys.readouterr().err
    assert "Type checking" in err
    assert "Building module graph..." in err
    assert "Bundle complete: 1 module(s)" in err


def test_typed_module_fails_in_default_configuration(write_source, temp_project):
    write_source("main.ts", 'import { x } from "./b";\nconsole.log(x);\n')
    typed = write_source("b.ts", "export const x: number = 1;\n")
    bundler = Bundler(context=BuildContext.default(), resolver=ModuleResolver(cwd=temp_project))

    with pytest.raises(TranspileError) as excinfo:
        bundler.bundle("main.ts")

    err = excinfo.value
    assert "[TRN-0030]" in err.message
    assert (err.filename, err.line, err.column) == (str(typed), 1, 15)
