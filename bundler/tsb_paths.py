#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from tsb_context import BuildContext
from tsb_errors import ModuleNotFoundError, SourceReadError
from tsb_logger import log_warning


def is_relative_specifier(specifier: str) -> bool:
    """
    True if `specifier` is path-like ('./x', '../x', '.', '..', '/abs/x')
    rather than a bare package name.
    """
    if specifier in (".", ".."):
        return True
    return specifier.startswith(("./", "../")) or os.path.isabs(specifier)


def normalize_path(path: str | Path) -> Path:
    """Absolute path with '.' and '..' segments folded; symlinks are kept."""
    return Path(os.path.normpath(os.path.abspath(path)))


@dataclass
class ModuleResolver:
    """
    Map import specifiers to absolute file paths.

    Two strategies, picked by the specifier's syntax:

      - relative: './x', '../x' (and absolute paths), resolved against the
        directory of the importing file;
      - package: bare names, looked up in the nearest enclosing
        package directory ('node_modules').

    Raises ModuleNotFoundError if no candidate exists.
    """
    context: BuildContext = field(default_factory=BuildContext.default)
    cwd: Optional[Path] = None

    def resolve(self, specifier: str, from_file: str | Path | None = None) -> Path:
        if is_relative_specifier(specifier):
            return self.resolve_relative(specifier, from_file)
        return self.resolve_package(specifier, from_file)

    def resolve_entry(self, entry: str | Path) -> Path:
        """The entry file is always resolved relative to the working directory."""
        return self.resolve_relative(str(entry))

    def resolve_relative(self, specifier: str, from_file: str | Path | None = None) -> Path:
        """
        Try, in order:
          1. the path with a source extension appended (unless it already has one);
          2. '<path>/index<ext>' when the path names a directory.
        """
        abs_path = normalize_path(self._base_dir(from_file) / specifier)
        for candidate in self._relative_candidates(abs_path):
            if candidate.is_file():
                return candidate
        raise ModuleNotFoundError(
            f"[RES-0010] Cannot find module '{specifier}'",
            specifier,
            filename=str(from_file) if from_file is not None else None,
        )

    def resolve_package(self, specifier: str, from_file: str | Path | None = None) -> Path:
        """
        Locate the nearest '<package_dir>' above the importing file, then try:
          1. '<package_dir>/<name>.js';
          2. the 'module' (preferred) or 'main' entry of '<name>/package.json';
          3. '<name>/index.js'.
        """
        start = normalize_path(self._base_dir(from_file))
        packages_root = self._find_packages_root(start)
        if packages_root is None:
            raise ModuleNotFoundError(
                f"[RES-0030] Cannot find module '{specifier}': "
                f"no '{self.context.package_dir}' directory above {start}",
                specifier,
                filename=str(from_file) if from_file is not None else None,
            )

        pkg_root = normalize_path(packages_root / specifier)

        script = pkg_root.with_name(pkg_root.name + self.context.package_ext)
        if script.is_file():
            return script

        manifest = pkg_root / "package.json"
        if manifest.is_file():
            entry = self._manifest_entry(manifest)
            if entry:
                return normalize_path(pkg_root / entry)

        index = pkg_root / (self.context.index_name + self.context.package_ext)
        if index.is_file():
            return index

        raise ModuleNotFoundError(
            f"[RES-0020] Cannot find module '{specifier}'",
            specifier,
            filename=str(from_file) if from_file is not None else None,
        )

    # --- Internal helpers ---

    def _base_dir(self, from_file: str | Path | None) -> Path:
        if from_file is not None:
            return Path(from_file).parent
        return self.cwd if self.cwd is not None else Path.cwd()

    def _relative_candidates(self, abs_path: Path) -> Iterator[Path]:
        exts = self.context.source_exts
        if any(abs_path.name.endswith(ext) for ext in exts):
            yield abs_path
        elif abs_path.name:
            # The file-system root has no name to extend.
            for ext in exts:
                yield abs_path.with_name(abs_path.name + ext)
        if abs_path.is_dir():
            for ext in exts:
                yield abs_path / (self.context.index_name + ext)

    def _find_packages_root(self, start: Path) -> Optional[Path]:
        for directory in (start, *start.parents):
            candidate = directory / self.context.package_dir
            if candidate.is_dir():
                return candidate
        return None

    def _manifest_entry(self, manifest: Path) -> Optional[str]:
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except OSError as e:
            raise SourceReadError(f"[IO-0020] cannot read {manifest}: {e}", filename=str(manifest)) from e
        except ValueError as e:
            raise SourceReadError(f"[IO-0021] malformed package manifest {manifest}: {e}",
                                  filename=str(manifest)) from e
        if not isinstance(data, dict):
            raise SourceReadError(f"[IO-0021] malformed package manifest {manifest}: expected an object",
                                  filename=str(manifest))
        entry = data.get("module") or data.get("main")
        if entry is not None and not isinstance(entry, str):
            log_warning(self.context, f"{manifest}: ignoring non-string package entry {entry!r}")
            return None
        return entry
