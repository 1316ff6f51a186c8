#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from tsb_errors import InternalBundlerError


@dataclass
class Module:
    """
    One discovered source file.

    - identity: position in discovery order; 0 is the entry module
    - path: absolute, normalized file path (the deduplication key)
    - dependencies: specifier as written -> identity of the module it resolves to,
      in the order the specifiers appear in the source
    - source: raw text read during traversal
    - body: transpiled text, filled in after traversal
    """
    identity: int
    path: Path
    dependencies: Dict[str, int] = field(default_factory=dict)
    source: Optional[str] = None
    body: Optional[str] = None


class ModuleRegistry:
    """
    Bijection between absolute paths and identities for one build.

    Identities are handed out sequentially from 0 and never reused.
    """

    def __init__(self) -> None:
        self._by_path: Dict[Path, Module] = {}
        self._modules: List[Module] = []

    def register(self, path: Path) -> Tuple[Module, bool]:
        """
        Return the module for `path`, creating it if needed.
        The flag is True if the module was created by this call.
        """
        existing = self._by_path.get(path)
        if existing is not None:
            return existing, False
        module = Module(identity=len(self._modules), path=path)
        self._by_path[path] = module
        self._modules.append(module)
        return module, True

    def lookup(self, path: Path) -> Optional[Module]:
        return self._by_path.get(path)

    def modules(self) -> List[Module]:
        return list(self._modules)

    def __contains__(self, path: Path) -> bool:
        return path in self._by_path

    def __len__(self) -> int:
        return len(self._modules)


@dataclass
class ModuleGraph:
    """
    The closed set of modules reachable from an entry file.

    `modules[i].identity == i` for every i; modules[0] is the entry.
    """
    modules: List[Module]

    def __post_init__(self) -> None:
        for index, module in enumerate(self.modules):
            if module.identity != index:
                raise InternalBundlerError(
                    f"[ICE-0010] module {module.path} has identity {module.identity} at position {index}",
                    filename=str(module.path),
                )

    @property
    def entry(self) -> Module:
        return self.modules[0]

    def by_path(self, path: Path) -> Optional[Module]:
        for module in self.modules:
            if module.path == path:
                return module
        return None

    def __contains__(self, path: Path) -> bool:
        return self.by_path(path) is not None

    def __iter__(self) -> Iterator[Module]:
        return iter(self.modules)

    def __len__(self) -> int:
        return len(self.modules)
