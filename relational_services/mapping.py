"""
Module: relational_services.mapping
Responsibility:
    Tie aggregate entity types and their property paths to SQLAlchemy
    ``Table`` objects so that delete actions can be turned into SQL.

Architecture position:
    Services > Mapping.  Read by the delete writer (which paths exist)
    and the action executor (which tables and columns to touch).

Invariants enforced:
    - Every nested path deeper than one has its parent path mapped.
    - A parent path that has children declares a ``key_column`` that the
      children's ``parent_column`` references.
    - All referenced columns exist on their tables.

Failure modes:
    - ValueError on an inconsistent mapping at construction.
    - UnmappedEntityError / UnmappedPathError on lookup of unknown keys.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from sqlalchemy import Column, Table

from relational_kernel.domain.actions import type_name
from relational_kernel.domain.property_path import PropertyPath
from relational_kernel.exceptions import UnmappedEntityError, UnmappedPathError


def _require_column(table: Table, name: str) -> None:
    if name not in table.c:
        raise ValueError(f"Table '{table.name}' has no column '{name}'")


@dataclass(frozen=True)
class NestedTableMapping:
    """
    Table holding the rows found at one property path.

    ``parent_column`` references the parent path's ``key_column``, or the
    aggregate root id for paths of depth one.  ``key_column`` is needed
    only when deeper paths hang below this one.
    """

    table: Table
    parent_column: str
    key_column: str | None = None

    def __post_init__(self) -> None:
        _require_column(self.table, self.parent_column)
        if self.key_column is not None:
            _require_column(self.table, self.key_column)

    @property
    def parent(self) -> Column:
        return self.table.c[self.parent_column]

    @property
    def key(self) -> Column:
        if self.key_column is None:
            raise ValueError(f"Table '{self.table.name}' has no key column mapped")
        return self.table.c[self.key_column]


@dataclass(frozen=True)
class AggregateMapping:
    """
    Mapping of one aggregate: its root table and the tables of its nested paths.

    Contract:
        Frozen; ``nested`` is exposed read-only in declaration order.
    """

    entity_type: type
    table: Table
    id_column: str = "id"
    version_column: str | None = None
    nested: Mapping[PropertyPath, NestedTableMapping] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _require_column(self.table, self.id_column)
        if self.version_column is not None:
            _require_column(self.table, self.version_column)

        nested = dict(self.nested)
        for path in nested:
            parent = path.parent
            if parent is None:
                continue
            if parent not in nested:
                raise ValueError(
                    f"{type_name(self.entity_type)}: path '{path}' has unmapped parent '{parent}'"
                )
            if nested[parent].key_column is None:
                raise ValueError(
                    f"{type_name(self.entity_type)}: parent path '{parent}' of '{path}' "
                    "needs a key_column"
                )
        object.__setattr__(self, "nested", MappingProxyType(nested))

    @property
    def id(self) -> Column:
        return self.table.c[self.id_column]

    @property
    def version(self) -> Column | None:
        if self.version_column is None:
            return None
        return self.table.c[self.version_column]

    @property
    def is_versioned(self) -> bool:
        return self.version_column is not None

    @property
    def paths(self) -> tuple[PropertyPath, ...]:
        return tuple(self.nested)

    def nested_for(self, path: PropertyPath) -> NestedTableMapping:
        try:
            return self.nested[path]
        except KeyError:
            raise UnmappedPathError(type_name(self.entity_type), str(path)) from None


class MappingContext:
    """Registry of aggregate mappings keyed by entity type."""

    def __init__(self, mappings: list[AggregateMapping] | None = None):
        self._mappings: dict[type, AggregateMapping] = {}
        for mapping in mappings or []:
            self.register(mapping)

    def register(self, mapping: AggregateMapping) -> None:
        self._mappings[mapping.entity_type] = mapping

    def mapping_for(self, entity_type: type) -> AggregateMapping:
        try:
            return self._mappings[entity_type]
        except KeyError:
            raise UnmappedEntityError(type_name(entity_type)) from None

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._mappings
