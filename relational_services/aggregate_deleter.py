"""
AggregateDeleter -- delete whole aggregates by id or by type.

Responsibility:
    Entry point for deleting aggregates.  Writes one delete change per
    aggregate root, merges many roots through the batching accumulator,
    and executes the resulting action stream on the caller's session.

Architecture position:
    Services -- orchestration over writer, accumulator and executor.

Failure modes:
    - OptimisticLockError when a versioned root was modified concurrently.
    - UnmappedEntityError for an entity type with no mapping.
    - SQLAlchemy errors propagate; the caller's transaction decides what
      to roll back.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.

Usage:
    with session.begin():
        deleter = AggregateDeleter(session, mapping_context)
        deleter.delete_all_by_id(Customer, [VersionedId(1, 3), VersionedId(2, 3), 7])
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable
from typing import Any, NamedTuple
from uuid import uuid4

from sqlalchemy.orm import Session

from relational_config.schema import ExecutorSettings
from relational_kernel.domain.actions import type_name
from relational_kernel.domain.batching import DeleteBatchingAggregateChange
from relational_kernel.logging_config import LogContext, get_logger, set_log_level
from relational_kernel.tracer import traced_operation
from relational_services.action_executor import SqlActionExecutor
from relational_services.delete_writer import RelationalEntityDeleteWriter
from relational_services.mapping import MappingContext

logger = get_logger("services.aggregate_deleter")


class VersionedId(NamedTuple):
    """A root id with the version the caller last read."""

    root_id: Any
    previous_version: Hashable | None


class AggregateDeleter:
    """
    Deletes aggregates through writer, batching accumulator and executor.

    Contract:
        Each call is one unit of work: a fresh accumulator is built,
        filled and replayed exactly once.
    Guarantees:
        - Locks, then nested rows deepest first, then roots.
        - Same-path and same-version deletes run as batches.
    """

    def __init__(
        self,
        session: Session,
        mapping_context: MappingContext,
        settings: ExecutorSettings | None = None,
    ):
        self._settings = settings or ExecutorSettings()
        self._mapping_context = mapping_context
        self._writer = RelationalEntityDeleteWriter(mapping_context, self._settings)
        self._executor = SqlActionExecutor(session, mapping_context, self._settings)
        set_log_level(self._settings.log_level)

    @property
    def executor(self) -> SqlActionExecutor:
        return self._executor

    @traced_operation("aggregate_delete", "1.0", fingerprint_fields=("entity_type",))
    def delete_by_id(
        self,
        entity_type: type,
        root_id: Any,
        previous_version: Hashable | None = None,
    ) -> None:
        """Delete one aggregate, checking ``previous_version`` when the root is versioned."""
        change = self._writer.write(entity_type, root_id, previous_version)
        with LogContext.bind(
            entity_type=type_name(entity_type), unit_of_work_id=str(uuid4())
        ):
            self._executor.execute_change(change)
            logger.info("aggregate_deleted", extra={
                "root_id": root_id,
                "action_count": len(change),
            })

    @traced_operation("aggregate_delete_batch", "1.0", fingerprint_fields=("entity_type",))
    def delete_all_by_id(
        self,
        entity_type: type,
        ids: Iterable[Any],
    ) -> int:
        """
        Delete many aggregates of one type in a single batched pass.

        ``ids`` holds ``VersionedId`` entries or plain root ids.  Any other
        value, tuples included, is taken as the root id itself, so
        composite ids pass through unchanged.  Returns the number of
        aggregates deleted.
        """
        batch = DeleteBatchingAggregateChange(entity_type)
        count = 0
        for entry in ids:
            root_id, previous_version = _split_id(entry)
            batch.add(self._writer.write(entity_type, root_id, previous_version))
            count += 1

        with LogContext.bind(
            entity_type=type_name(entity_type), unit_of_work_id=str(uuid4())
        ):
            statements_before = self._executor.statement_count
            self._executor.execute_change(batch)
            logger.info("aggregates_deleted", extra={
                "aggregate_count": count,
                "statement_count": self._executor.statement_count - statements_before,
            })
        return count

    @traced_operation("aggregate_delete_all", "1.0", fingerprint_fields=("entity_type",))
    def delete_all(self, entity_type: type) -> None:
        """Delete every aggregate of ``entity_type``."""
        change = self._writer.write_all(entity_type)
        with LogContext.bind(entity_type=type_name(entity_type)):
            self._executor.execute_change(change)
            logger.info("aggregate_type_cleared", extra={
                "action_count": len(change),
            })


def _split_id(entry: Any) -> tuple[Any, Hashable | None]:
    if isinstance(entry, VersionedId):
        return entry.root_id, entry.previous_version
    return entry, None
