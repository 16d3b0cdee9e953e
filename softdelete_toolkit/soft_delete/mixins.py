"""
SQLAlchemy mixins for soft delete functionality.

SoftDeleteMixin adds a plain soft-deleted flag. CascadeSoftDeleteMixin adds the
soft delete level used by cascading soft deletes, where the flag is derived
from the level.
"""

from typing import Any, List, Type

from sqlalchemy import Boolean, CheckConstraint, Integer, Select, Table, event, select
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.elements import ColumnElement


class SoftDeleteMixin:
    """
    Mixin to add single (non-cascading) soft delete to SQLAlchemy models.

    Usage:
        class Book(Base, SoftDeleteMixin):
            __tablename__ = 'books'
            id = Column(Integer, primary_key=True)
            title = Column(String)
    """

    soft_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )

    @property
    def is_soft_deleted(self) -> bool:
        return bool(self.soft_deleted)

    def _set_soft_deleted(self, value: bool) -> None:
        self.soft_deleted = value

    @classmethod
    def not_soft_deleted(cls) -> ColumnElement[bool]:
        """SQL criterion matching rows hidden from nothing."""
        return cls.soft_deleted.is_(False)

    @classmethod
    def only_soft_deleted(cls) -> ColumnElement[bool]:
        """SQL criterion matching rows a user could restore."""
        return cls.soft_deleted.is_(True)

    @classmethod
    def select_active(cls) -> Select[Any]:
        """
        Return a statement for active (not soft deleted) rows only.

        Returns:
            Select filtered to exclude soft deleted rows
        """
        return select(cls).where(cls.not_soft_deleted())

    @classmethod
    def select_soft_deleted(cls) -> Select[Any]:
        """Return a statement for restorable soft deleted rows only."""
        return select(cls).where(cls.only_soft_deleted())

    @classmethod
    def select_all(cls) -> Select[Any]:
        """Return a statement with no soft delete filter."""
        return select(cls)


class CascadeSoftDeleteMixin(SoftDeleteMixin):
    """
    Mixin for models that take part in cascading soft deletes.

    soft_delete_level is 0 for visible rows, 1 for rows soft deleted directly
    and n >= 2 for rows hidden by a cascade that started n hops away.
    soft_deleted is always equal to soft_delete_level > 0.

    Dependents are declared with __soft_delete_cascade__, a list of
    relationship attribute names walked when the row is cascaded:

        class Company(Base, CascadeSoftDeleteMixin):
            __tablename__ = 'companies'
            __soft_delete_cascade__ = ['quotes']
            id = Column(Integer, primary_key=True)
            quotes = relationship('Quote', back_populates='company')
    """

    # Allow the plain class-level annotation below
    __allow_unmapped__ = True

    __soft_delete_cascade__: List[str] = []

    soft_delete_level: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, index=True
    )

    @property
    def current_soft_delete_level(self) -> int:
        return self.soft_delete_level or 0

    def _set_soft_deleted(self, value: bool) -> None:
        self._set_soft_delete_level(1 if value else 0)

    def _set_soft_delete_level(self, level: int) -> None:
        if level < 0:
            raise ValueError(f"Soft delete level cannot be negative: {level}")
        self.soft_delete_level = level
        self.soft_deleted = level > 0

    @classmethod
    def not_soft_deleted(cls) -> ColumnElement[bool]:
        return cls.soft_delete_level == 0

    @classmethod
    def only_soft_deleted(cls) -> ColumnElement[bool]:
        # Cascaded rows come back with their principal, so only level 1 counts
        return cls.soft_delete_level == 1


def _add_level_check(mapper: Any, class_: Type[Any]) -> None:
    """
    Attach the flag/level CHECK constraint to a cascade model's table.

    Runs as a mapper event so models declaring their own __table_args__
    keep the constraint as well.
    """
    table = mapper.local_table
    if not isinstance(table, Table):
        return
    name = f"ck_{table.name}_soft_delete_level"
    if any(constraint.name == name for constraint in table.constraints):
        return
    table.append_constraint(
        CheckConstraint(
            "(soft_deleted = false AND soft_delete_level = 0) OR "
            "(soft_deleted = true AND soft_delete_level > 0)",
            name=name,
        )
    )


event.listen(
    CascadeSoftDeleteMixin, "instrument_class", _add_level_check, propagate=True
)


def prevent_live_hard_delete(mapper: Any, connection: Any, target: Any) -> None:
    """
    Refuse physical deletion of a row that has not been soft deleted first.

    This function should be connected to SQLAlchemy's before_delete event.
    """
    if isinstance(target, SoftDeleteMixin) and not target.is_soft_deleted:
        raise RuntimeError(
            f"Hard delete attempted on {target.__class__.__name__} that is not "
            "soft deleted. Soft delete it first."
        )


def register_hard_delete_guard(base_class: Type[Any]) -> None:
    """
    Register the hard delete guard on every soft deletable model.

    Args:
        base_class: The declarative base class
    """
    for mapper in base_class.registry.mappers:
        if issubclass(mapper.class_, SoftDeleteMixin) and not event.contains(
            mapper.class_, "before_delete", prevent_live_hard_delete
        ):
            event.listen(mapper.class_, "before_delete", prevent_live_hard_delete)
