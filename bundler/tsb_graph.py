#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from collections import deque
from pathlib import Path
from typing import Deque

from tsb_context import BuildContext
from tsb_errors import SourceReadError
from tsb_imports import scan_imports
from tsb_logger import log_debug
from tsb_module import Module, ModuleGraph, ModuleRegistry
from tsb_paths import ModuleResolver, normalize_path


class GraphBuilder:
    """
    Discover every module reachable from an entry file.

    Traversal is breadth-first over an explicit worklist: each file is read,
    its top-level imports are scanned and resolved, and files seen for the
    first time get the next identity and join the queue. A file already in
    the registry is never queued again, so import cycles need no special case.

    Registry and worklist live only for the duration of one build() call.
    """

    def __init__(
        self,
        resolver: ModuleResolver | None = None,
        context: BuildContext | None = None,
    ):
        self.context = context or BuildContext.default()
        self.resolver = resolver or ModuleResolver(context=self.context)

    def build(self, entry_path: str | Path) -> ModuleGraph:
        """
        Build the module graph for an entry file (already resolved, or a path
        that exists as given).
        """
        registry = ModuleRegistry()
        entry, _ = registry.register(normalize_path(entry_path))
        worklist: Deque[Module] = deque([entry])

        while worklist:
            module = worklist.popleft()
            self._process(module, registry, worklist)

        graph = ModuleGraph(registry.modules())
        log_debug(self.context, f"Module graph contains {len(graph)} module(s)")
        return graph

    def _process(self, module: Module, registry: ModuleRegistry, worklist: Deque[Module]) -> None:
        log_debug(self.context, f"Scanning module {module.identity}: {module.path}")
        module.source = self._read(module.path)

        for stmt in scan_imports(module.source, filename=str(module.path)):
            dep_path = self.resolver.resolve(stmt.specifier, module.path)
            dep, is_new = registry.register(dep_path)
            if is_new:
                log_debug(self.context, f"Resolved '{stmt.specifier}' to {dep_path} (module {dep.identity})")
                worklist.append(dep)
            module.dependencies[stmt.specifier] = dep.identity

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceReadError(f"[IO-0010] cannot read {path}: {e}", filename=str(path)) from e
