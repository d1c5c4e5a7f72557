"""
relational_services -- SQLAlchemy-backed writing and execution of
aggregate delete actions.
"""

from relational_services.action_executor import SqlActionExecutor
from relational_services.aggregate_deleter import AggregateDeleter, VersionedId
from relational_services.delete_writer import RelationalEntityDeleteWriter
from relational_services.mapping import (
    AggregateMapping,
    MappingContext,
    NestedTableMapping,
)

__all__ = [
    "AggregateDeleter",
    "AggregateMapping",
    "MappingContext",
    "NestedTableMapping",
    "RelationalEntityDeleteWriter",
    "SqlActionExecutor",
    "VersionedId",
]
