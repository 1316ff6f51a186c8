#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass
from pathlib import Path

from tsb_codegen import BundleGenerator
from tsb_context import BuildContext
from tsb_errors import TypeCheckError
from tsb_graph import GraphBuilder
from tsb_logger import log_debug, log_info, log_stage
from tsb_module import ModuleGraph
from tsb_paths import ModuleResolver
from tsb_transpile import EsmTranspiler, Transpiler
from tsb_typecheck import NullTypeChecker, TypeChecker


@dataclass
class BundleResult:
    graph: ModuleGraph
    code: str

    @property
    def entry_path(self) -> Path:
        return self.graph.entry.path


class Bundler:
    """
    Bundle pipeline:

      1. resolve the entry file (relative to the working directory);
      2. type check the program (any diagnostic aborts the build);
      3. build the module graph;
      4. transpile every module, in identity order;
      5. generate the bundle text.

    Every failure is raised as a BundleError and ends the build; nothing is
    written here. Entry points:
      - bundle(entry): the full pipeline.
      - build_graph(entry): stages 1 and 3 only, for inspection.
    """

    def __init__(
        self,
        context: BuildContext | None = None,
        resolver: ModuleResolver | None = None,
        transpiler: Transpiler | None = None,
        checker: TypeChecker | None = None,
    ):
        self.context = context or BuildContext.default()
        self.resolver = resolver or ModuleResolver(context=self.context)
        self.transpiler = transpiler or EsmTranspiler(context=self.context)
        self.checker = checker or NullTypeChecker()

    def bundle(self, entry: str | Path) -> BundleResult:
        log_info(self.context, f"Starting bundle for entry '{entry}'")

        log_stage(self.context, "Resolving entry", str(entry))
        entry_path = self.resolver.resolve_entry(entry)
        log_debug(self.context, f"Entry resolved to {entry_path}")

        log_stage(self.context, "Type checking", str(entry_path))
        diagnostics = self.checker.check(entry_path)
        if diagnostics:
            raise TypeCheckError(f"[CHK-0010] type check failed with {len(diagnostics)} diagnostic(s)",
                                 diagnostics)

        log_stage(self.context, "Building module graph")
        graph = GraphBuilder(resolver=self.resolver, context=self.context).build(entry_path)
        log_info(self.context, f"Module graph contains {len(graph)} module(s)")

        log_stage(self.context, "Transpiling modules")
        for module in graph:
            log_debug(self.context, f"Transpiling module {module.identity}: {module.path}")
            module.body = self.transpiler.transpile(module.source, str(module.path))

        log_stage(self.context, "Generating bundle")
        code = BundleGenerator(context=self.context).generate(graph.modules)

        log_info(self.context, f"Bundle complete: {len(graph)} module(s)")
        return BundleResult(graph=graph, code=code)

    def build_graph(self, entry: str | Path) -> ModuleGraph:
        entry_path = self.resolver.resolve_entry(entry)
        return GraphBuilder(resolver=self.resolver, context=self.context).build(entry_path)
