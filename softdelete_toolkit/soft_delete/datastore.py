"""
Data store collaborator used by the soft delete services.

The services never talk to SQLAlchemy directly: they load, query and commit
through a DataStore. SQLAlchemyDataStore is the implementation backed by an
ORM session.
"""

import logging
from typing import (
    Any,
    Callable,
    Iterable,
    Iterator,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Type,
)

from sqlalchemy import Select, and_, func, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import ConcurrencyConflictError
from .registry import CascadeEdge

logger = logging.getLogger(__name__)

# Returns an extra criterion for an entity type, or None when nothing applies
VisibilityFilter = Callable[[Type[Any]], Optional[ColumnElement[bool]]]


class DataStore(Protocol):
    """Interface the soft delete services consume."""

    def load_by_key(
        self, entity_type: Type[Any], key: Any, include_hidden: bool = True
    ) -> Optional[Any]:
        ...

    def load_dependents(self, entity: Any, edge: CascadeEdge) -> Iterable[Any]:
        ...

    def query_all(
        self, entity_type: Type[Any], include_hidden: bool = False
    ) -> Iterable[Any]:
        ...

    def query_where(
        self,
        entity_type: Type[Any],
        *criteria: ColumnElement[bool],
        include_hidden: bool = False,
    ) -> Iterable[Any]:
        ...

    def commit(self, changed: Sequence[Any], deleted: Sequence[Any] = ()) -> None:
        ...

    def rollback(self) -> None:
        ...

    def refresh(self) -> None:
        ...


class QueryView:
    """
    Lazy, restartable view over a select statement.

    Nothing is read until the view is iterated, and every iteration runs the
    statement again so the rows reflect the current database state.
    """

    def __init__(self, session: Session, statement: Select[Any]):
        self.session = session
        self.statement = statement

    def __iter__(self) -> Iterator[Any]:
        return iter(self.session.scalars(self.statement))

    def all(self) -> list:
        return list(self)

    def count(self) -> int:
        count_statement = select(func.count()).select_from(
            self.statement.order_by(None).subquery()
        )
        return int(self.session.scalar(count_statement) or 0)


class SQLAlchemyDataStore:
    """
    DataStore backed by a SQLAlchemy session.

    Args:
        session: ORM session; the store commits and rolls it back
        visibility_filter: Optional callable returning an extra criterion per
            entity type, for row visibility rules that sit beside soft delete
            (tenant isolation for example). It is applied to every read,
            including reads that bypass the soft delete filter.

    Example:
        >>> store = SQLAlchemyDataStore(
        ...     session,
        ...     visibility_filter=lambda cls: cls.tenant_id == current_tenant(),
        ... )
    """

    def __init__(
        self,
        session: Session,
        visibility_filter: Optional[VisibilityFilter] = None,
    ):
        self.session = session
        self.visibility_filter = visibility_filter

    def _criteria(
        self, entity_type: Type[Any], include_hidden: bool
    ) -> Tuple[ColumnElement[bool], ...]:
        criteria = []
        if not include_hidden and hasattr(entity_type, "not_soft_deleted"):
            criteria.append(entity_type.not_soft_deleted())
        if self.visibility_filter is not None:
            extra = self.visibility_filter(entity_type)
            if extra is not None:
                criteria.append(extra)
        return tuple(criteria)

    def _key_criterion(
        self, entity_type: Type[Any], key: Any
    ) -> Optional[ColumnElement[bool]]:
        columns = inspect(entity_type).primary_key
        values = key if isinstance(key, tuple) else (key,)
        if len(values) != len(columns):
            return None
        return and_(*(column == value for column, value in zip(columns, values)))

    def load_by_key(
        self, entity_type: Type[Any], key: Any, include_hidden: bool = True
    ) -> Optional[Any]:
        """Load one row by primary key; a key of the wrong shape matches nothing."""
        criterion = self._key_criterion(entity_type, key)
        if criterion is None:
            logger.debug(
                f"{entity_type.__name__} key {key!r} does not match its "
                "primary key columns"
            )
            return None
        statement = select(entity_type).where(
            criterion, *self._criteria(entity_type, include_hidden)
        )
        with self.session.no_autoflush:
            return self.session.scalars(statement).first()

    def load_dependents(self, entity: Any, edge: CascadeEdge) -> Iterable[Any]:
        # Relationship loads ignore the hide filter, cascades need hidden rows
        with self.session.no_autoflush:
            related = getattr(entity, edge.attribute)
        if related is None:
            return ()
        if edge.uselist:
            return list(related)
        return (related,)

    def query_all(
        self, entity_type: Type[Any], include_hidden: bool = False
    ) -> QueryView:
        statement = select(entity_type).where(
            *self._criteria(entity_type, include_hidden)
        )
        return QueryView(self.session, statement)

    def query_where(
        self,
        entity_type: Type[Any],
        *criteria: ColumnElement[bool],
        include_hidden: bool = False,
    ) -> QueryView:
        """Like query_all with extra criteria, ordered by primary key."""
        statement = (
            select(entity_type)
            .where(*self._criteria(entity_type, include_hidden), *criteria)
            .order_by(*inspect(entity_type).primary_key)
        )
        return QueryView(self.session, statement)

    def commit(self, changed: Sequence[Any], deleted: Sequence[Any] = ()) -> None:
        """
        Persist changed entities and delete others in one transaction.

        Raises:
            ConcurrencyConflictError: A row changed since it was loaded
        """
        self.session.add_all(changed)
        for entity in deleted:
            self.session.delete(entity)

        try:
            self.session.commit()
        except StaleDataError as e:
            self.session.rollback()
            logger.warning(f"Commit rejected because of stale data: {e}")
            raise ConcurrencyConflictError(
                f"Data changed since it was read, nothing was saved: {e}"
            ) from e
        except Exception:
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()

    def refresh(self) -> None:
        """Drop cached state so the next reads see committed data."""
        self.session.expire_all()
