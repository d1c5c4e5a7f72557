"""
Database actions -- immutable descriptions of one unit of delete work.

Responsibility:
    Defines the closed set of actions that flow from a delete writer,
    through the batching accumulator, to an executor.  Each action is a
    frozen dataclass with an explicit ``kind`` discriminant so that
    consumers dispatch with ``match action.kind``.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - Batch actions wrap at least two actions, in insertion order.
    - ``BatchDelete`` members share one property path.
    - ``BatchDeleteRoot`` members carry no previous version;
      ``BatchDeleteRootWithVersion`` members share one non-None version.

Failure modes:
    - ValueError when a batch invariant is violated at construction.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from relational_kernel.domain.property_path import PropertyPath


class ActionKind(str, Enum):
    """Discriminant for every action variant."""

    DELETE = "delete"
    DELETE_ROOT = "delete_root"
    ACQUIRE_LOCK_ROOT = "acquire_lock_root"
    BATCH_DELETE = "batch_delete"
    BATCH_DELETE_ROOT = "batch_delete_root"
    BATCH_DELETE_ROOT_WITH_VERSION = "batch_delete_root_with_version"
    DELETE_ALL = "delete_all"
    DELETE_ALL_ROOT = "delete_all_root"
    ACQUIRE_LOCK_ALL_ROOT = "acquire_lock_all_root"


class LockMode(str, Enum):
    """Row lock strength requested before cascading deletes."""

    PESSIMISTIC_READ = "pessimistic_read"
    PESSIMISTIC_WRITE = "pessimistic_write"


def type_name(entity_type: Any) -> str:
    """Readable name of an entity type for logs and error messages."""
    return getattr(entity_type, "__qualname__", str(entity_type))


@dataclass(frozen=True)
class DbAction:
    """Base of all actions. Subclasses set ``kind``."""

    kind: ClassVar[ActionKind]


# ---------------------------------------------------------------------------
# Single-row actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Delete(DbAction):
    """
    Delete the nested rows at ``property_path`` of the aggregate ``root_id``.

    ``entity_type`` is the aggregate root type the path starts from.
    """

    kind: ClassVar[ActionKind] = ActionKind.DELETE

    root_id: Any
    property_path: PropertyPath
    entity_type: type

    @property
    def depth(self) -> int:
        return self.property_path.depth


@dataclass(frozen=True)
class DeleteRoot(DbAction):
    """
    Delete one aggregate root row.

    When ``previous_version`` is set the delete only succeeds if the
    stored version still equals it.
    """

    kind: ClassVar[ActionKind] = ActionKind.DELETE_ROOT

    id: Any
    entity_type: type
    previous_version: Hashable | None = None


@dataclass(frozen=True)
class AcquireLockRoot(DbAction):
    """Lock one aggregate root row before its nested rows are deleted."""

    kind: ClassVar[ActionKind] = ActionKind.ACQUIRE_LOCK_ROOT

    id: Any
    entity_type: type
    lock_mode: LockMode = LockMode.PESSIMISTIC_WRITE


# ---------------------------------------------------------------------------
# Whole-type actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeleteAll(DbAction):
    """Delete every nested row at ``property_path`` for all aggregates of a type."""

    kind: ClassVar[ActionKind] = ActionKind.DELETE_ALL

    property_path: PropertyPath
    entity_type: type


@dataclass(frozen=True)
class DeleteAllRoot(DbAction):
    """Delete every root row of a type."""

    kind: ClassVar[ActionKind] = ActionKind.DELETE_ALL_ROOT

    entity_type: type


@dataclass(frozen=True)
class AcquireLockAllRoot(DbAction):
    """Lock every root row of a type."""

    kind: ClassVar[ActionKind] = ActionKind.ACQUIRE_LOCK_ALL_ROOT

    entity_type: type
    lock_mode: LockMode = LockMode.PESSIMISTIC_WRITE


# ---------------------------------------------------------------------------
# Batch actions
# ---------------------------------------------------------------------------


def _freeze_batch(batch: DbAction, actions: Sequence[DbAction]) -> tuple:
    frozen = tuple(actions)
    if len(frozen) < 2:
        raise ValueError(
            f"{type(batch).__name__} requires at least two actions, got {len(frozen)}"
        )
    object.__setattr__(batch, "actions", frozen)
    return frozen


@dataclass(frozen=True)
class BatchDelete(DbAction):
    """Several ``Delete`` actions at one property path, executed as one batch."""

    kind: ClassVar[ActionKind] = ActionKind.BATCH_DELETE

    actions: tuple[Delete, ...]

    def __post_init__(self) -> None:
        actions = _freeze_batch(self, self.actions)
        paths = {a.property_path for a in actions}
        if len(paths) != 1:
            raise ValueError(
                f"BatchDelete actions must share one property path, got {sorted(map(str, paths))}"
            )

    @property
    def property_path(self) -> PropertyPath:
        return self.actions[0].property_path

    @property
    def entity_type(self) -> type:
        return self.actions[0].entity_type


@dataclass(frozen=True)
class BatchDeleteRoot(DbAction):
    """Several unversioned ``DeleteRoot`` actions executed as one batch."""

    kind: ClassVar[ActionKind] = ActionKind.BATCH_DELETE_ROOT

    actions: tuple[DeleteRoot, ...]

    def __post_init__(self) -> None:
        actions = _freeze_batch(self, self.actions)
        if any(a.previous_version is not None for a in actions):
            raise ValueError(
                "BatchDeleteRoot actions must not carry a previous version; "
                "use BatchDeleteRootWithVersion"
            )

    @property
    def entity_type(self) -> type:
        return self.actions[0].entity_type


@dataclass(frozen=True)
class BatchDeleteRootWithVersion(DbAction):
    """Several ``DeleteRoot`` actions sharing one expected version."""

    kind: ClassVar[ActionKind] = ActionKind.BATCH_DELETE_ROOT_WITH_VERSION

    actions: tuple[DeleteRoot, ...]

    def __post_init__(self) -> None:
        actions = _freeze_batch(self, self.actions)
        versions = {a.previous_version for a in actions}
        if len(versions) != 1 or None in versions:
            raise ValueError(
                "BatchDeleteRootWithVersion actions must share one non-None "
                f"previous version, got {versions}"
            )

    @property
    def previous_version(self) -> Hashable:
        return self.actions[0].previous_version

    @property
    def entity_type(self) -> type:
        return self.actions[0].entity_type
