"""
relational_config -- single public entrypoint for executor settings.

Responsibility:
    Provides the one way to obtain ``ExecutorSettings`` at runtime through
    ``get_executor_settings()``.  Services receive the settings object;
    they never read files themselves.

Failure modes:
    - ``FileNotFoundError`` -- the given settings file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- unknown keys or invalid values.

Every successful call emits a ``RELATIONAL_CONFIG_TRACE`` log entry with
the source and checksum of the settings in force.
"""

from __future__ import annotations

from pathlib import Path

from relational_config.loader import compute_checksum, load_settings
from relational_config.schema import ExecutorSettings
from relational_kernel.logging_config import get_logger

_logger = get_logger("config")

__all__ = ["ExecutorSettings", "get_executor_settings"]


def get_executor_settings(config_path: Path | None = None) -> ExecutorSettings:
    """Load settings from ``config_path``, or return the defaults when None."""
    if config_path is None:
        settings = ExecutorSettings()
        source = "defaults"
    else:
        settings = load_settings(Path(config_path))
        source = str(config_path)

    _logger.info(
        "RELATIONAL_CONFIG_TRACE",
        extra={
            "trace_type": "RELATIONAL_CONFIG_TRACE",
            "source": source,
            "checksum": compute_checksum(settings),
            "acquire_locks": settings.acquire_locks,
            "lock_mode": settings.lock_mode.value,
        },
    )
    return settings
