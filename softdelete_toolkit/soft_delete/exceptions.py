"""Exceptions for soft delete operations."""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Kinds of problems a soft delete operation can report."""

    ENTITY_NOT_FOUND = "entity_not_found"
    ALREADY_SOFT_DELETED = "already_soft_deleted"
    NOT_DIRECTLY_SOFT_DELETED = "not_directly_soft_deleted"
    NOT_SOFT_DELETED = "not_soft_deleted"
    CASCADE_CYCLE_DETECTED = "cascade_cycle_detected"
    CONCURRENCY_CONFLICT = "concurrency_conflict"


class SoftDeleteError(Exception):
    """Base exception for soft delete operations."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        entity_id: Optional[Any] = None,
        entity_type: Optional[str] = None,
    ):
        self.entity_id = entity_id
        self.entity_type = entity_type
        super().__init__(message)


class EntityNotFoundError(SoftDeleteError):
    """Raised when a key does not resolve to an entity."""

    kind = ErrorKind.ENTITY_NOT_FOUND

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"Could not find {entity_type} with key {entity_id!r}",
            entity_id=entity_id,
            entity_type=entity_type,
        )


class AlreadySoftDeletedError(SoftDeleteError):
    """Raised when soft deleting an entity that is already soft deleted."""

    kind = ErrorKind.ALREADY_SOFT_DELETED

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} {entity_id!r} is already soft deleted",
            entity_id=entity_id,
            entity_type=entity_type,
        )


class NotDirectlySoftDeletedError(SoftDeleteError):
    """Raised when resetting an entity that was not the target of a delete."""

    kind = ErrorKind.NOT_DIRECTLY_SOFT_DELETED

    def __init__(self, entity_type: str, entity_id: Any, level: int):
        if level == 0:
            detail = "it is not soft deleted"
        else:
            detail = (
                f"it was soft deleted by a cascade (level {level}); "
                "reset the entity that was deleted directly instead"
            )
        super().__init__(
            f"Cannot reset {entity_type} {entity_id!r}: {detail}",
            entity_id=entity_id,
            entity_type=entity_type,
        )
        self.level = level


class NotSoftDeletedError(SoftDeleteError):
    """Raised when hard deleting an entity that is not soft deleted."""

    kind = ErrorKind.NOT_SOFT_DELETED

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} {entity_id!r} is not soft deleted and cannot be "
            "hard deleted",
            entity_id=entity_id,
            entity_type=entity_type,
        )


class CascadeCycleDetectedError(SoftDeleteError):
    """Raised when a cascade walk goes deeper than the configured maximum."""

    kind = ErrorKind.CASCADE_CYCLE_DETECTED

    def __init__(
        self,
        max_depth: int,
        entity_type: Optional[str] = None,
        entity_id: Optional[Any] = None,
    ):
        super().__init__(
            f"Cascade exceeded the maximum depth of {max_depth}; "
            "the relationship graph probably contains a cycle",
            entity_id=entity_id,
            entity_type=entity_type,
        )
        self.max_depth = max_depth


class ConcurrencyConflictError(SoftDeleteError):
    """Raised when the data store rejects a commit because of stale data."""

    kind = ErrorKind.CONCURRENCY_CONFLICT

    def __init__(self, message: str, entity_type: Optional[str] = None):
        super().__init__(message, entity_type=entity_type)


class RegistryConfigurationError(Exception):
    """Raised at startup when the cascade relationship table is invalid."""
