#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import os
from pathlib import Path
from typing import Iterator, Optional, Sequence

from tsb_context import BuildContext
from tsb_errors import InternalBundlerError
from tsb_logger import log_debug
from tsb_module import Module
from tsb_string_escape import encode_string_literal

# Loader executed when the bundle is loaded. `modules` maps identity to
# [factory, dependency table]. A module's record goes into the cache before
# its factory runs, so a module reached again through an import cycle gets
# the exports object that is still being filled in.
RUNTIME_PRELUDE = """\
var executedModules = {};
function executeModule(id) {
  if (Object.prototype.hasOwnProperty.call(executedModules, id)) {
    return executedModules[id].exports;
  }
  var mod = modules[id];
  var localRequire = function (specifier) {
    if (!Object.prototype.hasOwnProperty.call(mod[1], specifier)) {
      throw new Error("Cannot find module '" + specifier + "'");
    }
    return executeModule(mod[1][specifier]);
  };
  var module = { exports: {} };
  executedModules[id] = module;
  mod[0].call(module.exports, localRequire, module, module.exports);
  return module.exports;
}
executeModule(0);"""

BUNDLE_OPEN = ";(function (modules) {"
TABLE_OPEN = "})({"
BUNDLE_CLOSE = "})"
FACTORY_OPEN = "function (require, module, exports) {"


class BundleGenerator:
    """
    Serialize a module graph into one self-contained script.

    Output layout (segments separated by newlines):

      1. the runtime prelude, inside a self-invoking function taking the
         module table;
      2. the module table: `id: [factory, { "specifier": id, ... }]` for
         every module in identity order;
      3. the closing of the self-invoking call.

    Output depends only on the modules passed in: identical graphs give
    byte-identical bundles.
    """

    def __init__(self, context: BuildContext | None = None, root: Optional[Path] = None):
        self.context = context or BuildContext.default()
        # Directory module paths are shown relative to in comments.
        self.root = root

    def generate(self, modules: Sequence[Module]) -> str:
        self._validate(modules)
        code = "".join(chunk + "\n" for chunk in self._emit(modules))
        log_debug(self.context, f"Generated bundle: {len(modules)} module(s), {len(code)} character(s)")
        return code

    def _emit(self, modules: Sequence[Module]) -> Iterator[str]:
        root = self.root
        if root is None and modules:
            root = modules[0].path.parent

        yield BUNDLE_OPEN
        yield RUNTIME_PRELUDE
        yield TABLE_OPEN

        for mod in modules:
            yield f"/* {self._display_path(mod.path, root)} */"
            yield f"{mod.identity}: ["
            yield FACTORY_OPEN
            yield mod.body
            yield "}, {"
            for specifier, identity in mod.dependencies.items():
                yield f"{encode_string_literal(specifier)}: {identity},"
            yield "}"
            yield "],"

        yield BUNDLE_CLOSE

    @staticmethod
    def _display_path(path: Path, root: Optional[Path]) -> str:
        shown = str(path)
        if root is not None:
            try:
                shown = os.path.relpath(path, root)
            except ValueError:
                # different drive on Windows
                pass
        return shown.replace(os.sep, "/").replace("*/", "*\\/")

    @staticmethod
    def _validate(modules: Sequence[Module]) -> None:
        if not modules:
            raise InternalBundlerError("[ICE-0020] cannot generate a bundle without modules")
        for index, mod in enumerate(modules):
            if mod.identity != index:
                raise InternalBundlerError(
                    f"[ICE-0021] module {mod.path} has identity {mod.identity} at position {index}",
                    filename=str(mod.path),
                )
            if mod.body is None:
                raise InternalBundlerError(f"[ICE-0022] module {mod.path} was not transpiled",
                                           filename=str(mod.path))
            for specifier, identity in mod.dependencies.items():
                if not 0 <= identity < len(modules):
                    raise InternalBundlerError(
                        f"[ICE-0023] '{specifier}' in {mod.path} refers to unknown module {identity}",
                        filename=str(mod.path),
                    )
