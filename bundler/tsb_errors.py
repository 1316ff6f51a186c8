#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

"""
Build errors.

Every user-facing failure is a BundleError whose message carries a stable
"[FAM-NNNN]" code. None of them is recovered inside the pipeline: the CLI
reports the first one raised and exits non-zero.
"""

from __future__ import annotations

import builtins
from typing import List, Optional

from tsb_diagnostics import Diagnostic


class BundleError(Exception):
    """Base class for errors that abort a build."""

    def __init__(self, message: str, filename: Optional[str] = None,
                 line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.line = line
        self.column = column

    def __str__(self) -> str:
        return self.message

    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc = self.filename
            if self.line is not None:
                loc += f":{self.line}"
                if self.column is not None:
                    loc += f":{self.column}"
            loc += ": "
        return f"{loc}error: {self.message}"


class ModuleNotFoundError(BundleError, builtins.ModuleNotFoundError):
    """A specifier could not be resolved by either resolution strategy."""

    def __init__(self, message: str, specifier: str, filename: Optional[str] = None):
        super().__init__(message, filename=filename)
        self.specifier = specifier


class UnsupportedImportError(BundleError):
    """An import statement whose module specifier is not a string literal."""
    pass


class SourceReadError(BundleError, OSError):
    """A resolved file (source or package manifest) could not be read."""
    pass


class TranspileError(BundleError):
    """The transpile collaborator failed for a module."""
    pass


class TypeCheckError(BundleError):
    """The type-check collaborator reported one or more diagnostics."""

    def __init__(self, message: str, diagnostics: List[Diagnostic]):
        super().__init__(message)
        self.diagnostics = diagnostics


class InternalBundlerError(RuntimeError):
    """
    ICE = bundler bug / violated pipeline invariant.
    Not for user mistakes (those are BundleErrors).
    """

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.filename = filename

    def format(self) -> str:
        message = self.message
        if "[ICE-" not in message:
            message = f"[ICE-9999] {message}"
        if self.filename:
            return f"{self.filename}: internal bundler error: {message}"
        return f"internal bundler error: {message}"
