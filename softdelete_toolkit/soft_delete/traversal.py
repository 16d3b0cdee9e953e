"""
Traversal engine for cascading soft deletes and resets.

Both walks are breadth-first over the relationship registry, so an entity that
can be reached at several depths is always decided at the shallowest one. The
engine never touches entity attributes while walking: it records a CascadePlan
that the service applies and commits in one transaction, which means a failed
walk leaves nothing to undo.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

from .datastore import DataStore
from .exceptions import (
    AlreadySoftDeletedError,
    CascadeCycleDetectedError,
    NotDirectlySoftDeletedError,
)
from .registry import RelationshipRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 20

# Given the entity's current level and the depth it was reached at, return the
# level to record, or None to leave the entity alone and stop descending.
LevelRule = Callable[[int, int], Optional[int]]


def entity_key(entity: Any) -> Any:
    """Primary key of an entity, a tuple for composite keys."""
    try:
        identity = inspect(entity).identity
    except NoInspectionAvailable:
        identity = None
    if identity is None:
        return getattr(entity, "id", None)
    return identity[0] if len(identity) == 1 else identity


def level_of(entity: Any) -> int:
    return getattr(entity, "soft_delete_level", None) or 0


@dataclass
class PlannedChange:
    """One level change recorded during a walk."""

    entity: Any
    old_level: int
    new_level: int
    depth: int

    @property
    def entity_type(self) -> str:
        return type(self.entity).__name__


class CascadePlan:
    """
    The changes decided by one walk, in the order they were decided.

    Entities are tracked by object identity, which is unique per row inside
    one ORM session.
    """

    def __init__(self) -> None:
        self._changes: Dict[int, PlannedChange] = {}
        self.visited = 0

    def level_of(self, entity: Any) -> int:
        """Planned level if the entity was already decided, else its current one."""
        change = self._changes.get(id(entity))
        if change is not None:
            return change.new_level
        return level_of(entity)

    def contains(self, entity: Any) -> bool:
        return id(entity) in self._changes

    def record(self, entity: Any, new_level: int, depth: int) -> None:
        self._changes[id(entity)] = PlannedChange(
            entity=entity,
            old_level=level_of(entity),
            new_level=new_level,
            depth=depth,
        )

    def __len__(self) -> int:
        return len(self._changes)

    def __iter__(self) -> Iterator[PlannedChange]:
        return iter(self._changes.values())

    @property
    def roots(self) -> List[Any]:
        return [change.entity for change in self if change.depth == 1]

    @property
    def by_depth(self) -> Dict[int, int]:
        return dict(sorted(Counter(change.depth for change in self).items()))

    def apply(self) -> List[Any]:
        """Write the planned levels onto the entities and return them."""
        changed = []
        for change in self:
            change.entity._set_soft_delete_level(change.new_level)
            changed.append(change.entity)
        return changed


def _delete_rule(level: int, depth: int) -> Optional[int]:
    # First write wins: anything already hidden keeps its own level
    return depth if level == 0 else None


def _reset_rule(level: int, depth: int) -> Optional[int]:
    # Only rows hidden by this very chain come back
    return 0 if level == depth else None


class CascadeTraversal:
    """
    Breadth-first walks over the cascade relationships.

    Args:
        registry: Relationship registry describing the edges to walk
        store: Data store used to load dependents
        max_depth: Deepest level a walk may change before it is treated as a
            runaway cycle
    """

    def __init__(
        self,
        registry: RelationshipRegistry,
        store: DataStore,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.registry = registry
        self.store = store
        self.max_depth = max_depth

    def check_delete_root(self, entity: Any) -> None:
        """Raise AlreadySoftDeletedError unless the entity is visible."""
        if level_of(entity) != 0:
            raise AlreadySoftDeletedError(type(entity).__name__, entity_key(entity))

    def check_reset_root(self, entity: Any) -> None:
        """Raise NotDirectlySoftDeletedError unless the entity is at level 1."""
        level = level_of(entity)
        if level != 1:
            raise NotDirectlySoftDeletedError(
                type(entity).__name__, entity_key(entity), level
            )

    def plan_soft_delete(self, roots: Iterable[Any]) -> CascadePlan:
        """
        Plan a cascading soft delete.

        Roots go to level 1. Every dependent reached at depth n that is still
        visible goes to level n and is walked further; dependents that are
        already soft deleted keep their level and are not walked.

        Raises:
            AlreadySoftDeletedError: A root is already soft deleted
            CascadeCycleDetectedError: The walk went deeper than max_depth
        """
        roots = list(roots)
        for root in roots:
            self.check_delete_root(root)
        return self._walk(roots, root_level=1, rule=_delete_rule)

    def plan_reset(self, roots: Iterable[Any]) -> CascadePlan:
        """
        Plan a cascading reset.

        Roots must be at level 1 and go back to 0. A dependent reached at
        depth n is reset and walked further only if its level is exactly n;
        anything else was hidden by another delete and stays hidden.

        Raises:
            NotDirectlySoftDeletedError: A root is not at level 1
            CascadeCycleDetectedError: The walk went deeper than max_depth
        """
        roots = list(roots)
        for root in roots:
            self.check_reset_root(root)
        return self._walk(roots, root_level=0, rule=_reset_rule)

    def _dependents(self, entity: Any) -> List[Any]:
        found: List[Any] = []
        for edge in self.registry.dependents_of(type(entity)):
            found.extend(self.store.load_dependents(entity, edge))
        return found

    def _walk(self, roots: List[Any], root_level: int, rule: LevelRule) -> CascadePlan:
        plan = CascadePlan()

        expanded: List[Any] = []
        for root in roots:
            if plan.contains(root):
                continue
            plan.record(root, root_level, depth=1)
            expanded.append(root)

        depth = 2
        frontier = [dep for entity in expanded for dep in self._dependents(entity)]

        while frontier:
            expanded = []
            for entity in frontier:
                plan.visited += 1
                new_level = rule(plan.level_of(entity), depth)
                if new_level is None:
                    continue
                if depth > self.max_depth:
                    logger.warning(
                        f"Cascade reached depth {depth} at "
                        f"{type(entity).__name__} {entity_key(entity)!r}, "
                        f"limit is {self.max_depth}"
                    )
                    raise CascadeCycleDetectedError(
                        self.max_depth, type(entity).__name__, entity_key(entity)
                    )
                plan.record(entity, new_level, depth)
                expanded.append(entity)

            logger.debug(
                f"Cascade depth {depth}: visited {len(frontier)}, "
                f"changed {len(expanded)}"
            )
            depth += 1
            frontier = [dep for entity in expanded for dep in self._dependents(entity)]

        return plan
