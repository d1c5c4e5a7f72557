"""
Typed exception hierarchy for the relational kernel.

The batching core itself performs no fallible work: it never raises an
error of its own, and a ``None`` change or action surfaces as a plain
``AttributeError`` at the call site. The exceptions below belong to the
layers around it -- mapping lookup and statement execution.

Every exception carries a class-level ``code`` (machine-readable, stable
across message wording changes) and stores its context as attributes so
that the structured log formatter can emit it field by field.

    RelationalKernelError (base)
    |
    +-- MappingError
    |   +-- UnmappedEntityError
    |   +-- UnmappedPathError
    |
    +-- ActionError
    |   +-- UnsupportedActionError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Mapping         | UNMAPPED_ENTITY             | No aggregate mapping for an entity type
                | UNMAPPED_PATH               | Property path not mapped for the aggregate
----------------|-----------------------------|-----------------------------------------
Action          | UNSUPPORTED_ACTION          | Executor has no statement for an action kind
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Versioned root delete matched fewer rows

Database errors raised by SQLAlchemy (``IntegrityError``,
``OperationalError``) are not translated; they propagate to the caller
that owns the transaction.
"""

from typing import Any


class RelationalKernelError(Exception):
    """
    Base exception for all relational kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RELATIONAL_KERNEL_ERROR"


# Mapping-related exceptions


class MappingError(RelationalKernelError):
    """Base exception for mapping metadata errors."""

    code: str = "MAPPING_ERROR"


class UnmappedEntityError(MappingError):
    """No aggregate mapping is registered for the entity type."""

    code: str = "UNMAPPED_ENTITY"

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        super().__init__(f"No aggregate mapping registered for {entity_type}")


class UnmappedPathError(MappingError):
    """Property path is not part of the aggregate's mapping."""

    code: str = "UNMAPPED_PATH"

    def __init__(self, entity_type: str, property_path: str):
        self.entity_type = entity_type
        self.property_path = property_path
        super().__init__(
            f"Property path '{property_path}' is not mapped for {entity_type}"
        )


# Action-related exceptions


class ActionError(RelationalKernelError):
    """Base exception for action execution errors."""

    code: str = "ACTION_ERROR"


class UnsupportedActionError(ActionError):
    """The executor has no statement for this kind of action."""

    code: str = "UNSUPPORTED_ACTION"

    def __init__(self, action_kind: str):
        self.action_kind = action_kind
        super().__init__(f"Unsupported action kind: {action_kind}")


# Concurrency-related exceptions


class ConcurrencyError(RelationalKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """
    A versioned root delete matched fewer rows than expected.

    Either the row is gone or its stored version no longer equals the
    expected previous version: another transaction modified it.
    """

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_ids: list[Any],
        expected_version: Any,
        expected_rows: int | None = None,
        actual_rows: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_ids = entity_ids
        self.expected_version = expected_version
        self.expected_rows = expected_rows
        self.actual_rows = actual_rows
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_ids} "
            f"(expected version {expected_version}): "
            "entity was modified by another transaction"
        )
