"""
Module: relational_kernel.domain.batching
Responsibility:
    Accumulate the delete actions of many aggregate instances and replay
    them in an order that a relational store can execute safely, merging
    same-shape actions into batch actions.

Architecture position:
    Kernel > Domain -- pure accumulation, zero I/O.
    Fed by per-aggregate ``DeleteAggregateChange`` objects; consumed by an
    executor through ``replay``.

Invariants enforced:
    - Every lock action is replayed, unmerged and in arrival order, before
      any delete.
    - Nested deletes are bucketed by property path and replayed deepest
      path first, so child rows go before the rows they reference.
    - Root deletes are bucketed by previous version and replayed after all
      nested deletes.  Buckets never merge across versions.
    - A bucket of one action replays that action unwrapped; a bucket of two
      or more replays as a single batch action wrapping the bucket in
      insertion order.
    - Replay does not consume state: replaying twice yields the same
      sequence.

Failure modes:
    - None of its own.  A ``None`` change or action fails at the call site
      with ``AttributeError``; exceptions raised by the replay consumer
      propagate unchanged.

Ordering notes:
    Buckets of equal depth, and root buckets, replay in the order their
    keys were first seen (insertion-ordered dict plus a stable sort).
    This keeps runs reproducible; callers must not rely on it.

Usage:
    batch = DeleteBatchingAggregateChange(Customer)
    for change in changes:
        batch.add(change)
    batch.replay(executor.execute)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable

from relational_kernel.domain.actions import (
    AcquireLockRoot,
    ActionKind,
    BatchDelete,
    BatchDeleteRoot,
    BatchDeleteRootWithVersion,
    DbAction,
    Delete,
    DeleteRoot,
    type_name,
)
from relational_kernel.domain.aggregate_change import (
    AggregateChangeKind,
    DeleteAggregateChange,
)
from relational_kernel.domain.property_path import PropertyPath
from relational_kernel.logging_config import get_logger

logger = get_logger("domain.batching")


class BatchingAggregateChange(ABC):
    """An aggregate change that merges several per-aggregate changes."""

    @property
    @abstractmethod
    def kind(self) -> AggregateChangeKind: ...

    @property
    @abstractmethod
    def entity_type(self) -> type: ...

    @abstractmethod
    def add(self, change: DeleteAggregateChange) -> None:
        """Merge the actions of one per-aggregate change."""

    @abstractmethod
    def replay(self, consumer: Callable[[DbAction], None]) -> None:
        """Hand every resulting action to ``consumer``, in execution order."""

    def replayed_actions(self) -> list[DbAction]:
        """The actions ``replay`` would emit, as a list."""
        collected: list[DbAction] = []
        self.replay(collected.append)
        return collected


class DeleteBatchingAggregateChange(BatchingAggregateChange):
    """
    Batching accumulator for delete changes.

    Contract:
        Built once per unit of work, filled through ``add``, then consumed
        through ``replay``.  Single writer, single reader; not thread-safe.
    Guarantees:
        - Replay order: locks, nested deletes deepest first, root deletes.
        - Batching is never applied to a one-action bucket.
    Non-goals:
        - Does not decide whether a row should be deleted.
        - Does not validate the actions it is given.
    """

    def __init__(self, entity_type: type):
        self._entity_type = entity_type
        self._lock_actions: list[AcquireLockRoot] = []
        self._delete_actions: dict[PropertyPath, list[Delete]] = {}
        self._root_actions: dict[Hashable | None, list[DeleteRoot]] = {}

    @property
    def kind(self) -> AggregateChangeKind:
        return AggregateChangeKind.DELETE

    @property
    def entity_type(self) -> type:
        return self._entity_type

    def add(self, change: DeleteAggregateChange) -> None:
        change.for_each_action(self._add_action)
        logger.debug("aggregate_change_added", extra={
            "entity_type": type_name(self._entity_type),
            "lock_count": len(self._lock_actions),
            "delete_buckets": len(self._delete_actions),
            "root_buckets": len(self._root_actions),
        })

    def _add_action(self, action: DbAction) -> None:
        match action.kind:
            case ActionKind.ACQUIRE_LOCK_ROOT:
                self._lock_actions.append(action)
            case ActionKind.DELETE_ROOT:
                self._root_actions.setdefault(action.previous_version, []).append(action)
            case ActionKind.DELETE:
                self._delete_actions.setdefault(action.property_path, []).append(action)
            case _:
                # Whole-type and batch actions are not merged here
                pass

    def replay(self, consumer: Callable[[DbAction], None]) -> None:
        for lock in self._lock_actions:
            consumer(lock)

        deepest_first = sorted(
            self._delete_actions.items(),
            key=lambda entry: entry[0].depth,
            reverse=True,
        )
        for _path, deletes in deepest_first:
            if len(deletes) > 1:
                consumer(BatchDelete(tuple(deletes)))
            else:
                consumer(deletes[0])

        for previous_version, delete_roots in self._root_actions.items():
            if len(delete_roots) > 1:
                if previous_version is not None:
                    consumer(BatchDeleteRootWithVersion(tuple(delete_roots)))
                else:
                    consumer(BatchDeleteRoot(tuple(delete_roots)))
            else:
                consumer(delete_roots[0])

        logger.debug("aggregate_change_replayed", extra={
            "entity_type": type_name(self._entity_type),
            "lock_count": len(self._lock_actions),
            "delete_buckets": len(self._delete_actions),
            "root_buckets": len(self._root_actions),
        })
