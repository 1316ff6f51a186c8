#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import argparse
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from tsb_context import BuildContext, LogLevel
from tsb_diagnostics import Diagnostic
from tsb_driver import BundleResult, Bundler
from tsb_errors import BundleError, InternalBundlerError, TypeCheckError
from tsb_logger import log_error, log_info
from tsb_module import ModuleGraph
from tsb_paths import ModuleResolver
from tsb_transpile import CommandTranspiler, EsmTranspiler, Transpiler
from tsb_typecheck import CommandTypeChecker, NullTypeChecker, TypeChecker


def _load_file_lines(path: str, cache: Dict[str, List[str]]) -> List[str]:
    if path not in cache:
        text = Path(path).read_text(encoding="utf-8")
        cache[path] = text.splitlines()
    return cache[path]


def print_diagnostics(diagnostics: List[Diagnostic], context: BuildContext) -> None:
    file_cache: Dict[str, List[str]] = {}

    for diag in diagnostics:
        print_diagnostic_with_snippet(diag, file_cache, context)


def print_diagnostic_with_snippet(diag: Diagnostic, file_cache: Dict[str, List[str]],
                                  context: BuildContext) -> None:
    # First line: header
    log_error(context, diag.format())

    if not diag.filename or diag.line is None:
        return

    try:
        lines = _load_file_lines(diag.filename, file_cache)
    except (OSError, UnicodeDecodeError):
        # Can't read file; fall back to header only
        return

    line_idx = diag.line - 1
    if not (0 <= line_idx < len(lines)):
        return

    src_line = lines[line_idx]

    # Pretty "N | ..." formatting (calculate width so multi-digit line numbers align)
    width = max(5, len(str(diag.line)))
    gutter = f"{diag.line:>{width}} | "

    log_error(context, gutter + src_line)

    if diag.column is None:
        return

    caret_prefix = " " * width + " | " + " " * (max(1, diag.column) - 1)
    log_error(context, caret_prefix + "^")


def build_context(args: argparse.Namespace) -> BuildContext:
    """Build a BuildContext from command-line arguments."""
    verbosity = getattr(args, 'verbosity', 0)
    if verbosity >= 3:
        log_level = LogLevel.DEBUG
    elif verbosity >= 1:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.ERROR

    exts = [ext if ext.startswith(".") else f".{ext}" for ext in (getattr(args, 'ext', None) or [".ts"])]

    return BuildContext(
        source_exts=exts,
        log_rich_format=getattr(args, 'log', False),
        log_level=log_level,
    )


def build_transpiler(context: BuildContext, args: argparse.Namespace) -> Transpiler:
    command = args.transpile_cmd or os.getenv("TSB_TRANSPILE_CMD")
    if command:
        log_info(context, f"Transpiler: {command}")
        return CommandTranspiler.from_string(command, context)
    log_info(context, "Transpiler: built-in ES module lowering")
    return EsmTranspiler(context)


def build_checker(context: BuildContext, args: argparse.Namespace) -> TypeChecker:
    if args.no_check:
        log_info(context, "Type checking disabled")
        return NullTypeChecker()
    command = args.check_cmd or os.getenv("TSB_CHECK_CMD") or "tsc"
    log_info(context, f"Type checker: {command}")
    return CommandTypeChecker.from_string(command, context)


def build_bundler(args: argparse.Namespace) -> Bundler:
    context = build_context(args)
    return Bundler(
        context=context,
        resolver=ModuleResolver(context=context),
        transpiler=build_transpiler(context, args),
        checker=build_checker(context, args),
    )


def _run_bundle(bundler: Bundler, entry: str) -> Optional[BundleResult]:
    """Run the pipeline, reporting any failure. Returns None if the build failed."""
    context = bundler.context
    try:
        return bundler.bundle(entry)
    except TypeCheckError as e:
        print_diagnostics(e.diagnostics, context)
        log_error(context, e.format())
    except BundleError as e:
        log_error(context, e.format())
    except InternalBundlerError as e:
        log_error(context, e.format())
    return None


def cmd_build(args: argparse.Namespace) -> int:
    """Bundle the entry file into the output file."""
    bundler = build_bundler(args)
    context = bundler.context

    result = _run_bundle(bundler, args.entry)
    if result is None:
        return 1

    if not args.output:
        log_error(context, "error: [TSB-0020] no output file given (use -o <file>)")
        return 1

    try:
        Path(args.output).write_text(result.code, encoding="utf-8")
    except OSError as e:
        log_error(context, f"error: [TSB-0030] cannot write {args.output}: {e}")
        return 1

    log_info(context, f"Wrote bundle: {args.output}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Bundle the entry file and run the result with node."""
    bundler = build_bundler(args)
    context = bundler.context

    result = _run_bundle(bundler, args.entry)
    if result is None:
        return 1

    with tempfile.NamedTemporaryFile(mode="w", suffix=".js", delete=False, encoding="utf-8") as f:
        f.write(result.code)
        temp_bundle = f.name

    try:
        node = os.getenv("TSB_NODE") or "node"
        cmd = [node, temp_bundle] + args.args
        log_info(context, f"Running: {' '.join(cmd)}")
        try:
            run_result = subprocess.run(cmd)
        except OSError as e:
            log_error(context, f"error: [TSB-0040] cannot run '{node}': {e}")
            return 1
        return run_result.returncode

    # Handle Ctrl-C gracefully
    except KeyboardInterrupt:
        return 130
    finally:
        Path(temp_bundle).unlink(missing_ok=True)


def format_graph(graph: ModuleGraph) -> str:
    lines = []
    for mod in graph:
        lines.append(f"{mod.identity}: {mod.path}")
        if mod.dependencies:
            for specifier, identity in mod.dependencies.items():
                lines.append(f"    {specifier!r} -> {identity}")
        else:
            lines.append("    <no dependencies>")
    return "\n".join(lines)


def cmd_graph(args: argparse.Namespace) -> int:
    """Print the module table: identity, path and dependency table of every module."""
    bundler = build_bundler(args)
    context = bundler.context
    try:
        graph = bundler.build_graph(args.entry)
    except (BundleError, InternalBundlerError) as e:
        log_error(context, e.format())
        return 1
    print(format_graph(graph))
    return 0


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="tsbc",
        description="Bundle a module tree into a single self-contained script",
    )
    parser.add_argument("entry", help="Entry file (e.g. 'src/main.ts')")
    parser.add_argument("--output", "-o", help="Output bundle path")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--graph", "-g", dest="mode", action="store_const", const="graph",
                      help="Print the module graph instead of writing a bundle")
    mode.add_argument("--run", "-r", dest="mode", action="store_const", const="run",
                      help="Bundle and run with node; program arguments go after '--'")

    parser.add_argument("-v", "--verbose",
                        action='count',
                        default=0,
                        dest='verbosity',
                        help="Increase verbosity: -v=INFO, -vvv=DEBUG")
    parser.add_argument("-l", "--log",
                        action='store_true',
                        default=False,
                        help="Enable rich log formatting (timestamps, levels)")
    parser.add_argument("--ext",
                        action="append",
                        default=[],
                        help="Source extension implied for relative imports "
                             "(can be passed multiple times; default: .ts)")
    parser.add_argument("--no-check",
                        action="store_true",
                        help="Skip type checking")
    parser.add_argument("--check-cmd",
                        help="Type checker command (default: $TSB_CHECK_CMD or tsc)")
    parser.add_argument("--transpile-cmd",
                        help="Transpiler command reading stdin and writing stdout "
                             "(default: $TSB_TRANSPILE_CMD or the built-in ES module lowering)")

    argv = list(argv) if argv is not None else sys.argv[1:]
    program_args: List[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, program_args = argv[:split], argv[split + 1:]

    args = parser.parse_args(argv)
    args.args = program_args
    args.mode = args.mode or "build"

    if program_args and args.mode != "run":
        parser.error("program arguments after '--' require --run")

    handlers = {
        "build": cmd_build,
        "run": cmd_run,
        "graph": cmd_graph,
    }
    rc = handlers[args.mode](args)
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
