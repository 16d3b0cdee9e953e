"""
Result models for soft delete operations.

Every service operation returns a SoftDeleteResult. A successful result has an
empty error list, a failed one carries one SoftDeleteProblem per problem found.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import (
    AlreadySoftDeletedError,
    CascadeCycleDetectedError,
    ConcurrencyConflictError,
    EntityNotFoundError,
    ErrorKind,
    NotDirectlySoftDeletedError,
    NotSoftDeletedError,
    SoftDeleteError,
)


class SoftDeleteAction(str, Enum):
    """Operations reported in results and audit records."""

    SOFT_DELETE = "soft_delete"
    RESET = "reset_soft_delete"
    HARD_DELETE = "hard_delete"
    CHECK_SOFT_DELETE = "check_soft_delete"
    CHECK_RESET = "check_reset_soft_delete"


_PAST_TENSE = {
    SoftDeleteAction.SOFT_DELETE: "soft deleted",
    SoftDeleteAction.RESET: "recovered",
    SoftDeleteAction.HARD_DELETE: "hard deleted",
    SoftDeleteAction.CHECK_SOFT_DELETE: "soft delete",
    SoftDeleteAction.CHECK_RESET: "recover",
}


class SoftDeleteProblem(BaseModel):
    """A single problem reported by a soft delete operation."""

    model_config = ConfigDict(use_enum_values=False, frozen=True)

    kind: ErrorKind = Field(..., description="Kind of problem")
    message: str = Field(..., description="Human readable description")
    entity_type: Optional[str] = Field(None, description="Type of affected entity")
    entity_id: Optional[Any] = Field(None, description="Key of affected entity")

    @property
    def retryable(self) -> bool:
        """Only a concurrency conflict may succeed when tried again."""
        return self.kind == ErrorKind.CONCURRENCY_CONFLICT

    @classmethod
    def from_exception(cls, exc: SoftDeleteError) -> "SoftDeleteProblem":
        return cls(
            kind=exc.kind,
            message=str(exc),
            entity_type=exc.entity_type,
            entity_id=exc.entity_id,
        )

    def to_exception(self) -> SoftDeleteError:
        """Rebuild the exception matching this problem."""
        entity_type = self.entity_type or "entity"
        if self.kind == ErrorKind.ENTITY_NOT_FOUND:
            exc: SoftDeleteError = EntityNotFoundError(entity_type, self.entity_id)
        elif self.kind == ErrorKind.ALREADY_SOFT_DELETED:
            exc = AlreadySoftDeletedError(entity_type, self.entity_id)
        elif self.kind == ErrorKind.NOT_DIRECTLY_SOFT_DELETED:
            exc = NotDirectlySoftDeletedError(entity_type, self.entity_id, 0)
        elif self.kind == ErrorKind.NOT_SOFT_DELETED:
            exc = NotSoftDeletedError(entity_type, self.entity_id)
        elif self.kind == ErrorKind.CASCADE_CYCLE_DETECTED:
            exc = CascadeCycleDetectedError(0, self.entity_type, self.entity_id)
        else:
            exc = ConcurrencyConflictError(self.message, self.entity_type)
        # Keep the original wording rather than the rebuilt default
        exc.args = (self.message,)
        return exc


class SoftDeleteResult(BaseModel):
    """Outcome of a soft delete operation."""

    action: SoftDeleteAction = Field(..., description="Operation performed")
    entity_type: str = Field(..., description="Type of the root entities")
    root_count: int = Field(0, description="Number of root entities handled", ge=0)
    count: int = Field(
        0, description="Number of entities changed, roots included", ge=0
    )
    by_depth: Dict[int, int] = Field(
        default_factory=dict, description="Changed entities per cascade depth"
    )
    committed: bool = Field(False, description="Whether changes were committed")
    errors: List[SoftDeleteProblem] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def dependent_count(self) -> int:
        """Entities changed as a side effect of cascading."""
        return max(self.count - self.root_count, 0)

    @property
    def message(self) -> str:
        """Summary suitable for showing to a user."""
        if self.errors:
            return "; ".join(problem.message for problem in self.errors)

        verb = _PAST_TENSE[self.action]
        is_check = self.action in (
            SoftDeleteAction.CHECK_SOFT_DELETE,
            SoftDeleteAction.CHECK_RESET,
        )
        if self.root_count == 0:
            if is_check:
                return f"No {self.entity_type} entities to {verb}"
            return f"No {self.entity_type} entities were {verb}"

        subject = (
            "an entity"
            if self.root_count == 1
            else f"{self.root_count} entities"
        )
        if is_check:
            text = f"Are you sure you want to {verb} {subject}"
            if self.dependent_count:
                text += f" and its {self._dependents_text()}"
            return text + "?"

        text = f"You have {verb} {subject}"
        if self.dependent_count:
            text += f" and its {self._dependents_text()}"
        return text

    def _dependents_text(self) -> str:
        noun = "dependent" if self.dependent_count == 1 else "dependents"
        return f"{self.dependent_count} {noun}"

    def add_problem(self, exc: SoftDeleteError) -> None:
        self.errors.append(SoftDeleteProblem.from_exception(exc))

    def raise_for_errors(self) -> None:
        """Raise the first problem as an exception, if there is one."""
        if self.errors:
            raise self.errors[0].to_exception()
