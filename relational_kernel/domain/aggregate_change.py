"""
Per-aggregate changes -- the ordered actions for one aggregate instance.

A ``DeleteAggregateChange`` holds everything needed to delete a single
aggregate: an optional root lock, the deletes of its nested rows and
the delete of the root row.  Writers fill it; the batching accumulator
(``relational_kernel.domain.batching``) or an executor consumes it.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterator
from enum import Enum

from relational_kernel.domain.actions import DbAction


class AggregateChangeKind(str, Enum):
    """What an aggregate change does to its aggregates."""

    DELETE = "delete"


class DeleteAggregateChange:
    """
    Ordered delete actions for one aggregate root.

    Contract:
        Actions are visited in the order they were added.
    Non-goals:
        - Does not check that the actions are consistent with each other
          or with ``entity_type``; the writer is responsible for that.
    """

    def __init__(
        self,
        entity_type: type,
        previous_version: Hashable | None = None,
    ):
        self._entity_type = entity_type
        self._previous_version = previous_version
        self._actions: list[DbAction] = []

    @property
    def kind(self) -> AggregateChangeKind:
        return AggregateChangeKind.DELETE

    @property
    def entity_type(self) -> type:
        return self._entity_type

    @property
    def previous_version(self) -> Hashable | None:
        return self._previous_version

    @property
    def actions(self) -> tuple[DbAction, ...]:
        return tuple(self._actions)

    def add_action(self, action: DbAction) -> None:
        self._actions.append(action)

    def for_each_action(self, consumer: Callable[[DbAction], None]) -> None:
        for action in self._actions:
            consumer(action)

    def __iter__(self) -> Iterator[DbAction]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        return (
            f"DeleteAggregateChange(entity_type={self._entity_type!r}, "
            f"previous_version={self._previous_version!r}, "
            f"actions={len(self._actions)})"
        )
