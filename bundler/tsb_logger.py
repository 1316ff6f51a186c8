"""
Logging utilities for the bundler.

This module provides logging functions that respect the BuildContext
log level and format flags.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import sys
import time
from typing import Optional

from tsb_context import BuildContext, LogLevel


def log(context: BuildContext, log_level: LogLevel, message: str) -> None:
    """
    Log a message if the context's level admits it.

    Args:
        context:    The build context containing the logging level.
        log_level:  The level of the message to log.
        message:    The message to log.
    """
    prefix = ""
    if context.log_rich_format:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        prefix = {
            LogLevel.ERROR: f"{timestamp} [ERROR] ",
            LogLevel.WARNING: f"{timestamp} [WARNING] ",
            LogLevel.INFO: f"{timestamp} [INFO] ",
            LogLevel.DEBUG: f"{timestamp} [DEBUG] ",
        }.get(log_level, "")
    if context.log_level >= log_level:
        print(f"{prefix}{message}", file=sys.stderr)


def log_error(context: BuildContext, message: str) -> None:
    """Log an error-level message."""
    log(context, LogLevel.ERROR, message)


def log_warning(context: BuildContext, message: str) -> None:
    """Log a warning-level message."""
    log(context, LogLevel.WARNING, message)


def log_info(context: BuildContext, message: str) -> None:
    """Log an info-level message (shown with -v)."""
    log(context, LogLevel.INFO, message)


def log_debug(context: BuildContext, message: str) -> None:
    """Log a debug-level message (shown with -vvv)."""
    log(context, LogLevel.DEBUG, message)


def log_stage(context: BuildContext, stage: str, subject: Optional[str] = None) -> None:
    """
    Log the start of a build stage.

    Args:
        context: The build context containing logging flags.
        stage:   The name of the stage (e.g., "Type checking", "Transpiling").
        subject: Optional file or module the stage applies to.
    """
    if subject:
        log(context, LogLevel.INFO, f"{stage} '{subject}'")
    else:
        log(context, LogLevel.INFO, f"{stage}...")
