"""
Settings loader (``relational_config.loader``).

Responsibility
--------------
Loads the executor settings YAML file and parses it into the frozen
``ExecutorSettings`` dataclass.  Callers go through
``relational_config.get_executor_settings()``.

Expected layout::

    executor:
      acquire_locks: true
      lock_mode: pessimistic_write
      verify_batch_rowcounts: true
      log_level: INFO

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, wrong types or bad enum values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from relational_config.schema import ExecutorSettings

_BOOL_FIELDS = ("acquire_locks", "verify_batch_rowcounts")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def parse_settings(data: dict[str, Any]) -> ExecutorSettings:
    """
    Parse ``ExecutorSettings`` from the ``executor`` section of a dict.

    A missing section yields the defaults.
    """
    section = data.get("executor") or {}
    if not isinstance(section, dict):
        raise ValueError("'executor' section must be a mapping")

    known = {f.name for f in fields(ExecutorSettings)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown executor settings: {unknown}")

    for name in _BOOL_FIELDS:
        if name in section and not isinstance(section[name], bool):
            raise ValueError(f"'{name}' must be a boolean, got {section[name]!r}")

    if "log_level" in section and not isinstance(section["log_level"], str):
        raise ValueError(f"'log_level' must be a string, got {section['log_level']!r}")

    return ExecutorSettings(**section)


def load_settings(path: Path) -> ExecutorSettings:
    return parse_settings(load_yaml_file(path))


def compute_checksum(settings: ExecutorSettings) -> str:
    """Deterministic SHA-256 of the settings values, for change detection."""
    payload = {
        f.name: getattr(settings, f.name) for f in fields(ExecutorSettings)
    }
    canonical = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
