"""
SqlActionExecutor -- runs delete actions as SQLAlchemy Core statements.

Responsibility:
    Translates each ``DbAction`` into one SQL statement and executes it on
    the caller's ``Session``.  Batch actions execute one parameterized
    statement once, with one parameter set per wrapped action
    (executemany), instead of one statement per row.

Architecture position:
    Services > Executors -- imperative shell.  Consumes the ordered output
    of ``DeleteBatchingAggregateChange.replay`` or of a single
    ``DeleteAggregateChange``.

Invariants enforced:
    - Versioned root deletes include a version equality predicate; a
      versioned delete that matches fewer rows than requested raises
      ``OptimisticLockError``.
    - Nested rows are located through their parent chain up to the root
      id, so no nested table needs a direct root reference.

Failure modes:
    - OptimisticLockError on a versioned delete row count mismatch.
    - UnsupportedActionError for an action kind with no statement.
    - UnmappedEntityError / UnmappedPathError for unknown mapping keys.
    - SQLAlchemy errors (IntegrityError, OperationalError) propagate.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
    - Does NOT reorder actions; ordering is the accumulator's job.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import bindparam, delete, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from relational_config.schema import ExecutorSettings
from relational_kernel.domain.actions import (
    ActionKind,
    DbAction,
    DeleteRoot,
    LockMode,
    type_name,
)
from relational_kernel.domain.aggregate_change import DeleteAggregateChange
from relational_kernel.domain.batching import BatchingAggregateChange
from relational_kernel.domain.property_path import PropertyPath
from relational_kernel.exceptions import OptimisticLockError, UnsupportedActionError
from relational_kernel.logging_config import get_logger
from relational_services.mapping import AggregateMapping, MappingContext

logger = get_logger("services.action_executor")


class SqlActionExecutor:
    """
    Executes delete actions against a relational store.

    Contract:
        ``execute`` runs exactly one statement per action, batch actions
        included.
    Guarantees:
        - ``statement_count`` counts statements issued by this executor.
    Non-goals:
        - Does not commit or roll back.

    Usage:
        executor = SqlActionExecutor(session, mapping_context)
        batch.replay(executor.execute)
    """

    def __init__(
        self,
        session: Session,
        mapping_context: MappingContext,
        settings: ExecutorSettings | None = None,
    ):
        self._session = session
        self._mapping_context = mapping_context
        self._settings = settings or ExecutorSettings()
        self._statement_count = 0

    @property
    def statement_count(self) -> int:
        return self._statement_count

    def execute_change(
        self, change: DeleteAggregateChange | BatchingAggregateChange
    ) -> None:
        """Execute every action of a per-aggregate or batching change, in order."""
        if isinstance(change, BatchingAggregateChange):
            change.replay(self.execute)
        else:
            change.for_each_action(self.execute)

    def execute(self, action: DbAction) -> None:
        match action.kind:
            case ActionKind.ACQUIRE_LOCK_ROOT:
                self._lock_root(action.entity_type, action.lock_mode, action.id)
            case ActionKind.ACQUIRE_LOCK_ALL_ROOT:
                self._lock_root(action.entity_type, action.lock_mode)
            case ActionKind.DELETE:
                self._delete_nested(
                    action.entity_type, action.property_path, [action.root_id]
                )
            case ActionKind.BATCH_DELETE:
                self._delete_nested(
                    action.entity_type,
                    action.property_path,
                    [a.root_id for a in action.actions],
                )
            case ActionKind.DELETE_ROOT:
                self._delete_roots(action.entity_type, [action], action.previous_version)
            case ActionKind.BATCH_DELETE_ROOT:
                self._delete_roots(action.entity_type, list(action.actions), None)
            case ActionKind.BATCH_DELETE_ROOT_WITH_VERSION:
                self._delete_roots(
                    action.entity_type, list(action.actions), action.previous_version
                )
            case ActionKind.DELETE_ALL:
                self._delete_all_nested(action.entity_type, action.property_path)
            case ActionKind.DELETE_ALL_ROOT:
                mapping = self._mapping_context.mapping_for(action.entity_type)
                self._run(action, delete(mapping.table))
            case _:
                raise UnsupportedActionError(str(action.kind))

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _lock_root(
        self, entity_type: type, lock_mode: LockMode, root_id: Any = None
    ) -> None:
        mapping = self._mapping_context.mapping_for(entity_type)
        stmt = select(mapping.id).with_for_update(
            read=lock_mode is LockMode.PESSIMISTIC_READ
        )
        if root_id is None:
            self._run_select(entity_type, stmt, None)
        else:
            stmt = stmt.where(mapping.id == bindparam("id"))
            self._run_select(entity_type, stmt, {"id": root_id})

    def _delete_nested(
        self, entity_type: type, path: PropertyPath, root_ids: list[Any]
    ) -> None:
        mapping = self._mapping_context.mapping_for(entity_type)
        nested = mapping.nested_for(path)
        stmt = delete(nested.table).where(self._belongs_to_root(mapping, path))
        params = [{"root_id": root_id} for root_id in root_ids]
        self._run_many(entity_type, str(path), stmt, params)

    def _delete_all_nested(self, entity_type: type, path: PropertyPath) -> None:
        mapping = self._mapping_context.mapping_for(entity_type)
        nested = mapping.nested_for(path)
        self._run_many(entity_type, str(path), delete(nested.table), None)

    def _delete_roots(
        self,
        entity_type: type,
        actions: list[DeleteRoot],
        previous_version: Any,
    ) -> None:
        mapping = self._mapping_context.mapping_for(entity_type)
        versioned = previous_version is not None and mapping.is_versioned

        stmt = delete(mapping.table).where(mapping.id == bindparam("id"))
        if versioned:
            stmt = stmt.where(mapping.version == bindparam("version"))
            params = [{"id": a.id, "version": previous_version} for a in actions]
        else:
            params = [{"id": a.id} for a in actions]

        rowcount = self._run_many(entity_type, None, stmt, params)

        if versioned and rowcount < len(actions) and self._rowcount_reliable(len(actions)):
            logger.warning("optimistic_lock_conflict", extra={
                "entity_type": type_name(entity_type),
                "entity_ids": [a.id for a in actions],
                "expected_version": previous_version,
                "expected_rows": len(actions),
                "actual_rows": rowcount,
            })
            raise OptimisticLockError(
                type_name(entity_type),
                [a.id for a in actions],
                previous_version,
                expected_rows=len(actions),
                actual_rows=rowcount,
            )

    def _belongs_to_root(
        self, mapping: AggregateMapping, path: PropertyPath
    ) -> ColumnElement[bool]:
        """Filter selecting the rows at ``path`` owned by the ``:root_id`` aggregate."""
        nested = mapping.nested_for(path)
        parent_path = path.parent
        if parent_path is None:
            return nested.parent == bindparam("root_id")
        parent = mapping.nested_for(parent_path)
        owners = select(parent.key).where(self._belongs_to_root(mapping, parent_path))
        return nested.parent.in_(owners)

    def _rowcount_reliable(self, row_count: int) -> bool:
        if row_count == 1:
            return True
        if not self._settings.verify_batch_rowcounts:
            return False
        return self._session.get_bind().dialect.supports_sane_multi_rowcount

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    def _run(self, action: DbAction, stmt: Any) -> None:
        self._run_many(action.entity_type, None, stmt, None)

    def _run_select(
        self, entity_type: type, stmt: Any, params: dict[str, Any] | None
    ) -> None:
        self._session.execute(stmt, params)
        self._statement_count += 1
        logger.debug("action_executed", extra={
            "statement": "lock",
            "entity_type": type_name(entity_type),
        })

    def _run_many(
        self,
        entity_type: type,
        path: str | None,
        stmt: Any,
        params: list[dict[str, Any]] | None,
    ) -> int:
        if params is not None and len(params) == 1:
            result = self._session.execute(stmt, params[0])
        else:
            result = self._session.execute(stmt, params)
        self._statement_count += 1
        rowcount = result.rowcount
        logger.debug("action_executed", extra={
            "statement": "delete",
            "entity_type": type_name(entity_type),
            "property_path": path,
            "parameter_sets": len(params) if params is not None else 0,
            "rowcount": rowcount,
        })
        return rowcount
