"""
Service layer for soft delete operations.

CascadeSoftDeleteService soft deletes, resets, hard deletes and lists entities
that carry a soft delete level, cascading through the relationship registry.
SingleSoftDeleteService offers the same operations for entities with a plain
soft-deleted flag.

Every mutating operation is all-or-nothing: problems are collected into the
returned SoftDeleteResult and nothing is committed unless there are none.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Tuple, Type

from ..config import SoftDeleteConfig
from .datastore import DataStore
from .exceptions import (
    AlreadySoftDeletedError,
    ConcurrencyConflictError,
    EntityNotFoundError,
    NotSoftDeletedError,
    SoftDeleteError,
)
from .mixins import CascadeSoftDeleteMixin, SoftDeleteMixin
from .models import SoftDeleteAction, SoftDeleteResult
from .registry import RelationshipRegistry
from .traversal import CascadePlan, CascadeTraversal, entity_key

logger = logging.getLogger(__name__)

# Returns (entities to save, entities to delete) once every check has passed
Writer = Callable[[], Tuple[List[Any], List[Any]]]


def _as_key_list(keys: Any) -> List[Any]:
    """Accept one key or an iterable of keys; a tuple is one composite key."""
    if isinstance(keys, (str, bytes, tuple)) or not isinstance(keys, Iterable):
        return [keys]
    return list(keys)


class _SoftDeleteServiceBase:
    """Loading, committing, retrying and auditing shared by both services."""

    mixin: Type[Any] = SoftDeleteMixin

    def __init__(
        self,
        store: DataStore,
        config: Optional[SoftDeleteConfig] = None,
        audit_logger: Optional[Any] = None,
    ):
        """
        Initialize the soft delete service.

        Args:
            store: Data store used for every read and the final commit
            config: Behaviour settings, defaults to SoftDeleteConfig()
            audit_logger: Optional async audit logger with a log_activity method
        """
        self.store = store
        self.config = config or SoftDeleteConfig()
        self.audit_logger = audit_logger

    def _require_mixin(self, entity_type: Type[Any]) -> None:
        if not (isinstance(entity_type, type) and issubclass(entity_type, self.mixin)):
            raise TypeError(
                f"{getattr(entity_type, '__name__', entity_type)} does not use "
                f"{self.mixin.__name__}"
            )

    def _loader(
        self, entity_type: Type[Any], keys: Any
    ) -> Callable[[SoftDeleteResult], List[Any]]:
        self._require_mixin(entity_type)
        key_list = _as_key_list(keys)

        def load(result: SoftDeleteResult) -> List[Any]:
            entities = []
            for key in key_list:
                entity = self.store.load_by_key(entity_type, key, include_hidden=True)
                if entity is not None:
                    entities.append(entity)
                    continue
                if not self.config.not_found_is_error:
                    logger.debug(f"Skipping unknown {entity_type.__name__} {key!r}")
                    continue
                result.add_problem(EntityNotFoundError(entity_type.__name__, key))
                if self.config.stop_on_first_error:
                    break
            return entities

        return load

    def _given(self, entities: Iterable[Any]) -> Callable[[SoftDeleteResult], List[Any]]:
        entity_list = list(entities)
        for entity in entity_list:
            self._require_mixin(type(entity))

        def load(result: SoftDeleteResult) -> List[Any]:
            return entity_list

        return load

    def _check_each(
        self,
        roots: List[Any],
        check: Callable[[Any], None],
        result: SoftDeleteResult,
    ) -> None:
        for root in roots:
            try:
                check(root)
            except SoftDeleteError as e:
                result.add_problem(e)
                if self.config.stop_on_first_error:
                    return

    async def _execute(
        self,
        action: SoftDeleteAction,
        entity_type_name: str,
        load: Callable[[SoftDeleteResult], List[Any]],
        prepare: Callable[[List[Any], SoftDeleteResult], Writer],
        commit: bool = True,
    ) -> SoftDeleteResult:
        attempts = self.config.concurrency_retries + 1 if commit else 1

        for attempt in range(1, attempts + 1):
            result = SoftDeleteResult(action=action, entity_type=entity_type_name)
            try:
                roots = load(result)
                writer = None
                if not (result.has_errors and self.config.stop_on_first_error):
                    writer = prepare(roots, result)

                if writer is None or result.has_errors:
                    logger.warning(
                        f"{action.value} on {entity_type_name} refused: "
                        f"{result.message}"
                    )
                    return result

                if commit and result.root_count:
                    changed, deleted = writer()
                    self.store.commit(changed, deleted)
                    result.committed = True

            except ConcurrencyConflictError as e:
                if attempt < attempts:
                    logger.warning(
                        f"{action.value} on {entity_type_name} hit a concurrency "
                        f"conflict, retrying ({attempt}/{attempts - 1})"
                    )
                    self.store.refresh()
                    continue
                e.entity_type = e.entity_type or entity_type_name
                result.add_problem(e)
                return result

            except SoftDeleteError as e:
                logger.warning(f"{action.value} on {entity_type_name} failed: {e}")
                result.add_problem(e)
                return result

            if result.committed:
                logger.info(f"{result.message} ({entity_type_name}, {action.value})")
                await self._audit(action, entity_type_name, roots, result)
            return result

        # Unreachable: the last attempt always returns
        raise AssertionError("retry loop exited without a result")

    async def _audit(
        self,
        action: SoftDeleteAction,
        entity_type_name: str,
        roots: List[Any],
        result: SoftDeleteResult,
    ) -> None:
        if not (self.audit_logger and self.config.audit_enabled):
            return

        for root in roots:
            try:
                await self.audit_logger.log_activity(
                    action=action.value.upper(),
                    entity_type=entity_type_name,
                    entity_id=str(entity_key(root)),
                    details={
                        "application": self.config.application_name,
                        "total_changed": result.count,
                        "by_depth": result.by_depth,
                    },
                )
            except Exception as audit_error:
                # The change is already committed; losing the record is logged
                logger.error(f"Failed to create audit record: {audit_error}")

    def _prepare_hard_delete(
        self, roots: List[Any], result: SoftDeleteResult
    ) -> Writer:
        def check(entity: Any) -> None:
            if not entity.is_soft_deleted:
                raise NotSoftDeletedError(type(entity).__name__, entity_key(entity))

        self._check_each(roots, check, result)
        unique = list({id(entity): entity for entity in roots}.values())
        result.root_count = len(unique)
        result.count = len(unique)
        result.by_depth = {1: len(unique)} if unique else {}
        return lambda: ([], unique)

    async def hard_delete_if_soft_deleted(
        self, entity_type: Type[Any], keys: Any
    ) -> SoftDeleteResult:
        """
        Physically delete entities, but only ones that are soft deleted.

        Does not cascade: dependents of a hard deleted entity are left for the
        caller to decide about.

        Args:
            entity_type: Mapped class of the entities
            keys: One primary key or a list of keys

        Returns:
            Result with a NOT_SOFT_DELETED problem for every visible entity
        """
        return await self._execute(
            SoftDeleteAction.HARD_DELETE,
            entity_type.__name__,
            self._loader(entity_type, keys),
            self._prepare_hard_delete,
        )

    async def hard_delete_entities(self, entities: Iterable[Any]) -> SoftDeleteResult:
        """Same as hard_delete_if_soft_deleted for already loaded entities."""
        entity_list = list(entities)
        return await self._execute(
            SoftDeleteAction.HARD_DELETE,
            self._type_name(entity_list),
            self._given(entity_list),
            self._prepare_hard_delete,
        )

    def list_soft_deleted(self, entity_type: Type[Any]) -> Iterable[Any]:
        """
        Return the soft deleted entities a user could restore.

        The soft delete filter is bypassed, other visibility rules of the
        store still apply. The returned view is lazy and every iteration reads
        the current rows again.
        """
        self._require_mixin(entity_type)
        return self.store.query_where(
            entity_type, entity_type.only_soft_deleted(), include_hidden=True
        )

    @staticmethod
    def _type_name(entities: List[Any]) -> str:
        names = sorted({type(entity).__name__ for entity in entities})
        return ", ".join(names) if names else "entity"


class CascadeSoftDeleteService(_SoftDeleteServiceBase):
    """
    Cascading soft delete with per-entity soft delete levels.

    A soft delete puts the root entities at level 1 and every still visible
    dependent reached at depth n at level n. A reset starts only from level 1
    entities and brings back exactly the dependents whose level matches the
    depth it reaches them at, so rows hidden by an earlier, independent delete
    stay hidden.

    Example:
        >>> registry = RelationshipRegistry({Company: ["quotes"]})
        >>> service = CascadeSoftDeleteService(SQLAlchemyDataStore(session), registry)
        >>> result = await service.soft_delete(Company, company_id)
        >>> result.message
        'You have soft deleted an entity and its 2 dependents'
    """

    mixin = CascadeSoftDeleteMixin

    def __init__(
        self,
        store: DataStore,
        registry: RelationshipRegistry,
        config: Optional[SoftDeleteConfig] = None,
        audit_logger: Optional[Any] = None,
    ):
        super().__init__(store, config=config, audit_logger=audit_logger)
        self.registry = registry
        self.traversal = CascadeTraversal(
            registry, store, max_depth=self.config.max_cascade_depth
        )

    def _prepare(
        self,
        check: Callable[[Any], None],
        plan: Callable[[List[Any]], CascadePlan],
    ) -> Callable[[List[Any], SoftDeleteResult], Writer]:
        def prepare(roots: List[Any], result: SoftDeleteResult) -> Writer:
            self._check_each(roots, check, result)
            if result.has_errors:
                return lambda: ([], [])

            cascade = plan(roots)
            result.root_count = len(cascade.roots)
            result.count = len(cascade)
            result.by_depth = cascade.by_depth
            logger.debug(
                f"Planned {len(cascade)} changes after visiting "
                f"{cascade.visited} dependents"
            )
            return lambda: (cascade.apply(), [])

        return prepare

    def _delete_steps(self) -> Callable[[List[Any], SoftDeleteResult], Writer]:
        return self._prepare(
            self.traversal.check_delete_root, self.traversal.plan_soft_delete
        )

    def _reset_steps(self) -> Callable[[List[Any], SoftDeleteResult], Writer]:
        return self._prepare(self.traversal.check_reset_root, self.traversal.plan_reset)

    async def soft_delete(self, entity_type: Type[Any], keys: Any) -> SoftDeleteResult:
        """
        Cascade soft delete the entities with the given keys.

        Args:
            entity_type: Mapped class of the root entities
            keys: One primary key or a list of keys (a tuple is one composite key)

        Returns:
            Result describing the change, or the problems that stopped it
        """
        return await self._execute(
            SoftDeleteAction.SOFT_DELETE,
            entity_type.__name__,
            self._loader(entity_type, keys),
            self._delete_steps(),
        )

    async def reset_soft_delete(
        self, entity_type: Type[Any], keys: Any
    ) -> SoftDeleteResult:
        """
        Reverse a cascade soft delete started from the given entities.

        Args:
            entity_type: Mapped class of the root entities
            keys: Keys of entities at soft delete level 1

        Returns:
            Result describing the change, or the problems that stopped it
        """
        return await self._execute(
            SoftDeleteAction.RESET,
            entity_type.__name__,
            self._loader(entity_type, keys),
            self._reset_steps(),
        )

    async def check_soft_delete(
        self, entity_type: Type[Any], keys: Any
    ) -> SoftDeleteResult:
        """Report what soft_delete would change without changing anything."""
        return await self._execute(
            SoftDeleteAction.CHECK_SOFT_DELETE,
            entity_type.__name__,
            self._loader(entity_type, keys),
            self._delete_steps(),
            commit=False,
        )

    async def check_reset_soft_delete(
        self, entity_type: Type[Any], keys: Any
    ) -> SoftDeleteResult:
        """Report what reset_soft_delete would change without changing anything."""
        return await self._execute(
            SoftDeleteAction.CHECK_RESET,
            entity_type.__name__,
            self._loader(entity_type, keys),
            self._reset_steps(),
            commit=False,
        )

    async def soft_delete_entities(self, entities: Iterable[Any]) -> SoftDeleteResult:
        """Cascade soft delete entities that are already loaded."""
        entity_list = list(entities)
        return await self._execute(
            SoftDeleteAction.SOFT_DELETE,
            self._type_name(entity_list),
            self._given(entity_list),
            self._delete_steps(),
        )

    async def reset_soft_delete_entities(
        self, entities: Iterable[Any]
    ) -> SoftDeleteResult:
        """Reverse cascade soft deletes of entities that are already loaded."""
        entity_list = list(entities)
        return await self._execute(
            SoftDeleteAction.RESET,
            self._type_name(entity_list),
            self._given(entity_list),
            self._reset_steps(),
        )


class SingleSoftDeleteService(_SoftDeleteServiceBase):
    """
    Soft delete without cascading, for entities with a plain flag.

    Example:
        >>> service = SingleSoftDeleteService(SQLAlchemyDataStore(session))
        >>> await service.soft_delete(Book, book_id)
    """

    mixin = SoftDeleteMixin

    def _prepare_flag(
        self, check: Callable[[Any], None], value: bool
    ) -> Callable[[List[Any], SoftDeleteResult], Writer]:
        def prepare(roots: List[Any], result: SoftDeleteResult) -> Writer:
            unique = list({id(entity): entity for entity in roots}.values())
            self._check_each(unique, check, result)
            result.root_count = len(unique)
            result.count = len(unique)
            result.by_depth = {1: len(unique)} if unique else {}

            def write() -> Tuple[List[Any], List[Any]]:
                for entity in unique:
                    entity._set_soft_deleted(value)
                return unique, []

            return write

        return prepare

    @staticmethod
    def _check_visible(entity: Any) -> None:
        if entity.is_soft_deleted:
            raise AlreadySoftDeletedError(type(entity).__name__, entity_key(entity))

    @staticmethod
    def _check_hidden(entity: Any) -> None:
        if not entity.is_soft_deleted:
            raise NotSoftDeletedError(type(entity).__name__, entity_key(entity))

    async def soft_delete(self, entity_type: Type[Any], keys: Any) -> SoftDeleteResult:
        """Set the soft deleted flag on the entities with the given keys."""
        return await self._execute(
            SoftDeleteAction.SOFT_DELETE,
            entity_type.__name__,
            self._loader(entity_type, keys),
            self._prepare_flag(self._check_visible, True),
        )

    async def reset_soft_delete(
        self, entity_type: Type[Any], keys: Any
    ) -> SoftDeleteResult:
        """Clear the soft deleted flag on the entities with the given keys."""
        return await self._execute(
            SoftDeleteAction.RESET,
            entity_type.__name__,
            self._loader(entity_type, keys),
            self._prepare_flag(self._check_hidden, False),
        )

    async def soft_delete_entities(self, entities: Iterable[Any]) -> SoftDeleteResult:
        entity_list = list(entities)
        return await self._execute(
            SoftDeleteAction.SOFT_DELETE,
            self._type_name(entity_list),
            self._given(entity_list),
            self._prepare_flag(self._check_visible, True),
        )

    async def reset_soft_delete_entities(
        self, entities: Iterable[Any]
    ) -> SoftDeleteResult:
        entity_list = list(entities)
        return await self._execute(
            SoftDeleteAction.RESET,
            self._type_name(entity_list),
            self._given(entity_list),
            self._prepare_flag(self._check_hidden, False),
        )
