"""
RelationalEntityDeleteWriter -- builds per-aggregate delete changes.

Responsibility:
    Turns "delete aggregate X" (or "delete every aggregate of type T")
    into a ``DeleteAggregateChange`` whose actions an executor can run in
    order: optional root lock, nested deletes deepest path first, root
    delete last.

Architecture position:
    Services > Writers.  Reads ``AggregateMapping`` metadata; produces
    pure domain objects.  Performs no I/O.

Invariants enforced:
    - A root lock is requested only when the aggregate has nested paths
      (a lone root delete is a single statement) and locking is enabled.
    - Nested deletes are emitted deepest first, so a single change is
      already safe to execute without the batching accumulator.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Any

from relational_config.schema import ExecutorSettings
from relational_kernel.domain.actions import (
    AcquireLockAllRoot,
    AcquireLockRoot,
    Delete,
    DeleteAll,
    DeleteAllRoot,
    DeleteRoot,
)
from relational_kernel.domain.aggregate_change import DeleteAggregateChange
from relational_kernel.domain.property_path import PropertyPath
from relational_services.mapping import AggregateMapping, MappingContext


class RelationalEntityDeleteWriter:
    """Writes delete actions for aggregates known to a ``MappingContext``."""

    def __init__(
        self,
        mapping_context: MappingContext,
        settings: ExecutorSettings | None = None,
    ):
        self._mapping_context = mapping_context
        self._settings = settings or ExecutorSettings()

    def write(
        self,
        entity_type: type,
        root_id: Any,
        previous_version: Hashable | None = None,
    ) -> DeleteAggregateChange:
        """Actions deleting the aggregate ``root_id`` and everything below it."""
        mapping = self._mapping_context.mapping_for(entity_type)
        change = DeleteAggregateChange(entity_type, previous_version)

        paths = self._deepest_first(mapping)
        if paths and self._settings.acquire_locks:
            change.add_action(
                AcquireLockRoot(root_id, entity_type, self._settings.lock_mode)
            )
        for path in paths:
            change.add_action(Delete(root_id, path, entity_type))

        version = previous_version if mapping.is_versioned else None
        change.add_action(DeleteRoot(root_id, entity_type, version))
        return change

    def write_all(self, entity_type: type) -> DeleteAggregateChange:
        """Actions deleting every aggregate of ``entity_type``."""
        mapping = self._mapping_context.mapping_for(entity_type)
        change = DeleteAggregateChange(entity_type)

        paths = self._deepest_first(mapping)
        if paths and self._settings.acquire_locks:
            change.add_action(
                AcquireLockAllRoot(entity_type, self._settings.lock_mode)
            )
        for path in paths:
            change.add_action(DeleteAll(path, entity_type))

        change.add_action(DeleteAllRoot(entity_type))
        return change

    @staticmethod
    def _deepest_first(mapping: AggregateMapping) -> list[PropertyPath]:
        return sorted(mapping.paths, key=lambda p: p.depth, reverse=True)
