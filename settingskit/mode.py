"""Execution mode detection.

The mode is stamped into every blueprint and takes part in the schema id, so
a schema compiled under pytest never shares a cache key with a production
build of the same descriptor.
"""

from __future__ import annotations

import os
import sys
from enum import Enum

from . import config as _config


class ExecutionMode(Enum):
    UNKNOWN = "unknown"
    PRODUCTION = "production"
    DEVEL = "devel"
    TESTING = "testing"


def detect_execution_mode() -> ExecutionMode:
    """Return the configured mode, or guess it from the interpreter state."""
    configured = _config.engine_config.EXECUTION_MODE
    if configured != "auto":
        return ExecutionMode(configured)

    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return ExecutionMode.TESTING
    if sys.flags.dev_mode:
        return ExecutionMode.DEVEL
    return ExecutionMode.PRODUCTION
