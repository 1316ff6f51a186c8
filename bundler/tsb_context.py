"""
Build context for cross-cutting bundler options.

This module defines the BuildContext dataclass which holds options that affect
multiple stages of a build (resolution, logging, code generation).
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List


class LogLevel(IntEnum):
    """Hierarchical logging levels for the bundler."""
    SILENT = 0      # No logging
    ERROR = 3       # Error messages only
    WARNING = 6     # Warning messages (default)
    INFO = 10       # General progress messages (-v)
    DEBUG = 30      # Detailed diagnostic information (-vvv)


@dataclass
class BuildContext:
    """
    Holds cross-cutting options that affect multiple build stages.

    Attributes:
        source_exts:        Extensions implied for relative specifiers, tried in order.
        index_name:         Stem of the file looked up inside a directory specifier.
        package_dir:        Name of the directory holding third-party packages.
        package_ext:        Extension of a package's sibling script and index file.
        log_rich_format:    If True, emit logs in rich format: may include log level, timestamps, etc.
        log_level:          Current logging level.
    """
    source_exts: List[str] = field(default_factory=lambda: [".ts"])
    index_name: str = "index"
    package_dir: str = "node_modules"
    package_ext: str = ".js"
    log_rich_format: bool = False
    log_level: LogLevel = LogLevel.WARNING

    @staticmethod
    def default() -> 'BuildContext':
        """Create a BuildContext with default settings."""
        return BuildContext(log_level=LogLevel.WARNING)
