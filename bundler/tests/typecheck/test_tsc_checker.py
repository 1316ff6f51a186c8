#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import sys

from tsb_typecheck import TSC_DEFAULT_ARGS, CommandTypeChecker, NullTypeChecker, parse_tsc_output


def test_parse_located_diagnostic():
    diags = parse_tsc_output("src/a.ts(3,7): error TS2322: Type 'string' is not assignable to type 'number'.\n")
    assert len(diags) == 1
    d = diags[0]
    assert (d.filename, d.line, d.column) == ("src/a.ts", 3, 7)
    assert d.kind == "error"
    assert d.code == "TS2322"
    assert d.message == "Type 'string' is not assignable to type 'number'."


def test_parse_global_and_continuation_lines():
    output = "\n".join([
        "error TS5023: Unknown compiler option 'foo'.",
        "src/b.ts(1,1): error TS2345: Argument of type 'A' is not assignable.",
        "  Property 'x' is missing in type 'A'.",
        "",
        "Found 2 errors.",
    ])
    diags = parse_tsc_output(output)
    assert [d.code for d in diags] == ["TS5023", "TS2345", None]
    assert diags[0].filename is None
    assert diags[1].message.endswith("\n  Property 'x' is missing in type 'A'.")
    assert diags[2].message == "Found 2 errors."
    assert diags[2].kind == "error"


def test_parse_windows_style_path():
    diags = parse_tsc_output(r"C:\work\src\a (copy).ts(10,2): warning TS6133: 'x' is declared but never used.")
    assert diags[0].filename == r"C:\work\src\a (copy).ts"
    assert diags[0].kind == "warning"
    assert (diags[0].line, diags[0].column) == (10, 2)


def test_diagnostic_format(tmp_path):
    diag = parse_tsc_output(f"{tmp_path}/a.ts(2,5): error TS1005: ';' expected.")[0]
    assert diag.format() == f"{tmp_path}/a.ts:2:5: error: TS1005: ';' expected."


def test_null_checker_accepts_everything(tmp_path):
    assert NullTypeChecker().check(tmp_path / "main.ts") == []


def _checker(script):
    return CommandTypeChecker(command=[sys.executable, "-c", script], args=[])


def test_command_checker_clean_run(tmp_path):
    assert _checker("import sys; sys.exit(0)").check(tmp_path / "main.ts") == []


def test_command_checker_passes_entry_file(tmp_path):
    entry = tmp_path / "main.ts"
    checker = _checker("import sys; print(sys.argv[-1] + '(1,1): error TS1: seen'); sys.exit(2)")

    diags = checker.check(entry)

    assert len(diags) == 1
    assert diags[0].filename == str(entry)
    assert diags[0].message == "seen"


def test_command_checker_reads_stderr_too(tmp_path):
    checker = _checker("import sys; sys.stderr.write('error TS6053: File not found.\\n'); sys.exit(1)")
    diags = checker.check(tmp_path / "main.ts")
    assert [d.code for d in diags] == ["TS6053"]


def test_command_checker_failure_without_output(tmp_path):
    diags = _checker("import sys; sys.exit(4)").check(tmp_path / "main.ts")
    assert len(diags) == 1
    assert "status 4" in diags[0].message


def test_command_checker_missing_executable(tmp_path):
    checker = CommandTypeChecker(command=[str(tmp_path / "no-tsc")])
    diags = checker.check(tmp_path / "main.ts")
    assert len(diags) == 1
    assert "cannot run type checker" in diags[0].message


def test_command_checker_from_string_uses_default_args():
    checker = CommandTypeChecker.from_string("npx tsc")
    assert checker.command == ["npx", "tsc"]
    assert checker.args == TSC_DEFAULT_ARGS
    assert "--noEmit" in checker.args
