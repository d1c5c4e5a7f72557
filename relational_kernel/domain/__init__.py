"""
Pure domain core: property paths, delete actions, per-aggregate changes
and the batching accumulator.  No I/O.
"""

from relational_kernel.domain.actions import (
    AcquireLockAllRoot,
    AcquireLockRoot,
    ActionKind,
    BatchDelete,
    BatchDeleteRoot,
    BatchDeleteRootWithVersion,
    DbAction,
    Delete,
    DeleteAll,
    DeleteAllRoot,
    DeleteRoot,
    LockMode,
)
from relational_kernel.domain.aggregate_change import (
    AggregateChangeKind,
    DeleteAggregateChange,
)
from relational_kernel.domain.batching import (
    BatchingAggregateChange,
    DeleteBatchingAggregateChange,
)
from relational_kernel.domain.property_path import PropertyPath

__all__ = [
    "AcquireLockAllRoot",
    "AcquireLockRoot",
    "ActionKind",
    "AggregateChangeKind",
    "BatchDelete",
    "BatchDeleteRoot",
    "BatchDeleteRootWithVersion",
    "BatchingAggregateChange",
    "DbAction",
    "Delete",
    "DeleteAggregateChange",
    "DeleteAll",
    "DeleteAllRoot",
    "DeleteBatchingAggregateChange",
    "DeleteRoot",
    "LockMode",
    "PropertyPath",
]
