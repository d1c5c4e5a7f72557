"""
Executor settings schema.

``ExecutorSettings`` is the typed form of the YAML settings file.  The
loader parses YAML into it; the services layer reads it.  Defaults apply
when no file is given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from relational_kernel.domain.actions import LockMode


@dataclass(frozen=True)
class ExecutorSettings:
    """Settings for writing and executing aggregate delete actions."""

    acquire_locks: bool = True  # lock the root before cascading deletes
    lock_mode: LockMode = LockMode.PESSIMISTIC_WRITE
    verify_batch_rowcounts: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not isinstance(self.lock_mode, LockMode):
            object.__setattr__(self, "lock_mode", LockMode(self.lock_mode))
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {self.log_level!r}")
        object.__setattr__(self, "log_level", self.log_level.upper())
