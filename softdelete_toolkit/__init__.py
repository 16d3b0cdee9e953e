"""
Soft Delete Toolkit - recoverable deletes for SQLAlchemy models.

Marks rows as logically removed instead of deleting them, cascades that state
through configured relationships and reverses it exactly.

Key Features
------------
* **Soft delete levels**: every hidden row records how far it is from the row
  that was deleted directly
* **Exact reset**: a reset only brings back rows hidden by the same cascade,
  rows deleted independently stay hidden
* **Relationship registry**: cascades follow an explicit, validated table
* **Guarded hard delete**: rows must be soft deleted before they can be purged
* **Single soft delete**: a plain flag for models that never cascade

Quick Start
-----------
>>> from softdelete_toolkit import (
...     CascadeSoftDeleteService, RelationshipRegistry, SQLAlchemyDataStore
... )
>>>
>>> registry = RelationshipRegistry({Company: ["quotes"]})
>>> service = CascadeSoftDeleteService(SQLAlchemyDataStore(session), registry)
>>>
>>> result = await service.soft_delete(Company, company_id)
>>> result.message
'You have soft deleted an entity and its 2 dependents'
>>> result = await service.reset_soft_delete(Company, company_id)
"""

__version__ = "1.0.0"

from .config import SoftDeleteConfig
from .soft_delete import (
    CascadeSoftDeleteMixin,
    CascadeSoftDeleteService,
    ErrorKind,
    RelationshipRegistry,
    SingleSoftDeleteService,
    SoftDeleteError,
    SoftDeleteMixin,
    SoftDeleteResult,
    SQLAlchemyDataStore,
)

__all__ = [
    # Soft Delete
    "SoftDeleteMixin",
    "CascadeSoftDeleteMixin",
    "CascadeSoftDeleteService",
    "SingleSoftDeleteService",
    "RelationshipRegistry",
    "SQLAlchemyDataStore",
    # Results
    "SoftDeleteResult",
    "SoftDeleteError",
    "ErrorKind",
    # Configuration
    "SoftDeleteConfig",
]
