#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

"""
Type-check collaborators.

A checker looks at the whole program reachable from the entry file and
returns its diagnostics; an empty list means the program may be bundled.
"""

import re
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Protocol

from tsb_context import BuildContext
from tsb_diagnostics import Diagnostic
from tsb_logger import log_debug, log_info

# tsc --pretty false:  src/a.ts(3,7): error TS2322: Type 'string' is not assignable ...
_TSC_LINE_RE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<col>\d+)\): (?P<kind>error|warning) (?P<code>TS\d+): (?P<msg>.*)$"
)
# Global diagnostics without a location:  error TS5023: Unknown compiler option ...
_TSC_GLOBAL_RE = re.compile(r"^(?P<kind>error|warning) (?P<code>TS\d+): (?P<msg>.*)$")

TSC_DEFAULT_ARGS = [
    "--noEmit",
    "--pretty", "false",
    "--strict",
    "--target", "esnext",
    "--moduleResolution", "node",
]


class TypeChecker(Protocol):
    def check(self, entry_file: Path) -> List[Diagnostic]:
        ...


class NullTypeChecker:
    """Accepts every program (--no-check)."""

    def check(self, entry_file: Path) -> List[Diagnostic]:
        return []


def parse_tsc_output(output: str) -> List[Diagnostic]:
    """
    Turn tsc's plain-text report into diagnostics. Continuation lines
    (indented elaborations) are appended to the previous message; any other
    unrecognised line becomes a location-less error.
    """
    diagnostics: List[Diagnostic] = []
    for raw in output.splitlines():
        if not raw.strip():
            continue
        m = _TSC_LINE_RE.match(raw)
        if m:
            diagnostics.append(Diagnostic(
                kind=m.group("kind"),
                message=m.group("msg"),
                filename=m.group("file"),
                code=m.group("code"),
                line=int(m.group("line")),
                column=int(m.group("col")),
            ))
            continue
        m = _TSC_GLOBAL_RE.match(raw)
        if m:
            diagnostics.append(Diagnostic(kind=m.group("kind"), message=m.group("msg"), code=m.group("code")))
            continue
        if raw[:1].isspace() and diagnostics:
            diagnostics[-1].message += "\n" + raw.rstrip()
            continue
        diagnostics.append(Diagnostic(kind="error", message=raw.rstrip()))
    return diagnostics


@dataclass
class CommandTypeChecker:
    """
    Run an external checker (tsc by default) on the entry file and parse
    its report.
    """
    command: List[str] = field(default_factory=lambda: ["tsc"])
    args: List[str] = field(default_factory=lambda: list(TSC_DEFAULT_ARGS))
    context: BuildContext = field(default_factory=BuildContext.default)

    @classmethod
    def from_string(cls, command: str, context: BuildContext | None = None) -> "CommandTypeChecker":
        return cls(command=shlex.split(command), context=context or BuildContext.default())

    def check(self, entry_file: Path) -> List[Diagnostic]:
        cmd = [*self.command, *self.args, str(entry_file)]
        log_info(self.context, f"Type checking: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            return [Diagnostic(kind="error", message=f"cannot run type checker '{cmd[0]}': {e}")]

        output = "\n".join(part for part in (result.stdout, result.stderr) if part)
        diagnostics = parse_tsc_output(output)
        log_debug(self.context, f"Type checker exited with status {result.returncode}, "
                                f"{len(diagnostics)} diagnostic(s)")
        if result.returncode != 0 and not diagnostics:
            diagnostics.append(Diagnostic(
                kind="error",
                message=f"type checker '{cmd[0]}' exited with status {result.returncode}",
            ))
        return diagnostics
