"""
Soft Delete Module - recoverable deletes with exact cascade reversal.

Provides mixins, the relationship registry, the traversal engine and the
services that soft delete, reset, hard delete and list entities.
"""

from .datastore import DataStore, QueryView, SQLAlchemyDataStore
from .exceptions import (
    AlreadySoftDeletedError,
    CascadeCycleDetectedError,
    ConcurrencyConflictError,
    EntityNotFoundError,
    ErrorKind,
    NotDirectlySoftDeletedError,
    NotSoftDeletedError,
    RegistryConfigurationError,
    SoftDeleteError,
)
from .mixins import CascadeSoftDeleteMixin, SoftDeleteMixin, register_hard_delete_guard
from .models import SoftDeleteAction, SoftDeleteProblem, SoftDeleteResult
from .registry import CascadeEdge, RelationshipRegistry
from .services import CascadeSoftDeleteService, SingleSoftDeleteService
from .traversal import CascadePlan, CascadeTraversal

__all__ = [
    # Mixins
    "SoftDeleteMixin",
    "CascadeSoftDeleteMixin",
    "register_hard_delete_guard",
    # Registry and traversal
    "RelationshipRegistry",
    "CascadeEdge",
    "CascadeTraversal",
    "CascadePlan",
    # Data store
    "DataStore",
    "SQLAlchemyDataStore",
    "QueryView",
    # Services
    "CascadeSoftDeleteService",
    "SingleSoftDeleteService",
    # Results
    "SoftDeleteAction",
    "SoftDeleteProblem",
    "SoftDeleteResult",
    # Exceptions
    "ErrorKind",
    "SoftDeleteError",
    "EntityNotFoundError",
    "AlreadySoftDeletedError",
    "NotDirectlySoftDeletedError",
    "NotSoftDeletedError",
    "CascadeCycleDetectedError",
    "ConcurrencyConflictError",
    "RegistryConfigurationError",
]
