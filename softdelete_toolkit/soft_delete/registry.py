"""
Relationship registry for cascading soft deletes.

The registry is the static table of which entity types have cascadable
dependents and through which relationship attributes to reach them. It is
built once at startup, validated eagerly and read-only afterwards, so a single
instance can be shared by every service.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

from .exceptions import RegistryConfigurationError
from .mixins import CascadeSoftDeleteMixin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CascadeEdge:
    """A principal -> dependent edge walked when the principal is cascaded."""

    principal: Type[Any]
    attribute: str
    dependent: Type[Any]
    uselist: bool = True

    @property
    def name(self) -> str:
        return f"{self.principal.__name__}.{self.attribute}"


class RelationshipRegistry:
    """
    Read-only table mapping entity types to their cascade edges.

    Example:
        >>> registry = RelationshipRegistry({
        ...     Company: ["quotes", "contacts"],
        ...     Quote: ["line_items"],
        ... })
        >>> [edge.attribute for edge in registry.dependents_of(Company)]
        ['quotes', 'contacts']

    Args:
        relationships: Mapping of entity class to the ordered relationship
            attribute names to cascade through.
        allow_cycles: Accept a type-level cycle, such as a self-referential
            hierarchy. Runaway chains are then stopped by the maximum cascade
            depth at run time.

    Raises:
        RegistryConfigurationError: If an attribute is not a relationship, a
            type is not cascade soft deletable, or the graph has a cycle that
            was not allowed.
    """

    def __init__(
        self,
        relationships: Mapping[Type[Any], Sequence[str]],
        allow_cycles: bool = False,
    ):
        self.allow_cycles = allow_cycles
        edges: Dict[Type[Any], Tuple[CascadeEdge, ...]] = {}

        for principal, attributes in relationships.items():
            if isinstance(attributes, str):
                raise RegistryConfigurationError(
                    f"Relationships for {principal.__name__} must be a list of "
                    f"attribute names, not the string {attributes!r}"
                )
            edges[principal] = tuple(
                self._build_edge(principal, attribute) for attribute in attributes
            )

        self._edges: Mapping[Type[Any], Tuple[CascadeEdge, ...]] = MappingProxyType(
            edges
        )
        self._resolved: Dict[Type[Any], Tuple[CascadeEdge, ...]] = {}

        cycle = self._find_cycle()
        if cycle:
            path = " -> ".join(cls.__name__ for cls in cycle)
            if not allow_cycles:
                raise RegistryConfigurationError(
                    f"Cascade relationships form a cycle: {path}. "
                    "Pass allow_cycles=True for self-referential hierarchies."
                )
            logger.info(f"Cascade cycle allowed, bounded by max depth: {path}")

        logger.debug(
            f"Registered cascade edges for {len(edges)} entity types: "
            f"{', '.join(edge.name for group in edges.values() for edge in group)}"
        )

    @classmethod
    def from_models(
        cls, base_class: Type[Any], allow_cycles: bool = False
    ) -> "RelationshipRegistry":
        """
        Build a registry from the __soft_delete_cascade__ declarations.

        Args:
            base_class: Declarative base whose mapped classes are scanned
            allow_cycles: See the class documentation

        Returns:
            Registry holding every class that declares cascade relationships
        """
        relationships: Dict[Type[Any], List[str]] = {}
        for mapper in base_class.registry.mappers:
            model = mapper.class_
            declared = model.__dict__.get("__soft_delete_cascade__")
            if declared:
                relationships[model] = list(declared)
        return cls(relationships, allow_cycles=allow_cycles)

    @staticmethod
    def _build_edge(principal: Type[Any], attribute: str) -> CascadeEdge:
        if not (
            isinstance(principal, type) and issubclass(principal, CascadeSoftDeleteMixin)
        ):
            raise RegistryConfigurationError(
                f"{getattr(principal, '__name__', principal)} does not use "
                "CascadeSoftDeleteMixin and cannot cascade soft deletes"
            )

        try:
            mapper = inspect(principal)
        except NoInspectionAvailable:
            raise RegistryConfigurationError(
                f"{principal.__name__} is not a mapped SQLAlchemy class"
            ) from None

        relationship = mapper.relationships.get(attribute)
        if relationship is None:
            raise RegistryConfigurationError(
                f"{principal.__name__}.{attribute} is not a relationship"
            )

        dependent = relationship.mapper.class_
        if not issubclass(dependent, CascadeSoftDeleteMixin):
            raise RegistryConfigurationError(
                f"{principal.__name__}.{attribute} points to {dependent.__name__}, "
                "which does not use CascadeSoftDeleteMixin"
            )

        return CascadeEdge(
            principal=principal,
            attribute=attribute,
            dependent=dependent,
            uselist=bool(relationship.uselist),
        )

    def dependents_of(self, entity_type: Type[Any]) -> Tuple[CascadeEdge, ...]:
        """
        Return the cascade edges of an entity type.

        Unregistered types have no dependents. A subclass of a registered type
        uses the edges of its nearest registered base.
        """
        cached = self._resolved.get(entity_type)
        if cached is not None:
            return cached

        edges: Tuple[CascadeEdge, ...] = ()
        for klass in getattr(entity_type, "__mro__", (entity_type,)):
            if klass in self._edges:
                edges = self._edges[klass]
                break

        # Races here only store the same value twice
        self._resolved[entity_type] = edges
        return edges

    def is_registered(self, entity_type: Type[Any]) -> bool:
        return bool(self.dependents_of(entity_type))

    @property
    def entity_types(self) -> Tuple[Type[Any], ...]:
        return tuple(self._edges)

    def edges(self) -> Iterable[CascadeEdge]:
        for group in self._edges.values():
            yield from group

    def _find_cycle(self) -> Optional[List[Type[Any]]]:
        """Depth-first search for a cycle in the type-level graph."""
        visiting: List[Type[Any]] = []
        done: set = set()

        def visit(node: Type[Any]) -> Optional[List[Type[Any]]]:
            if node in visiting:
                return visiting[visiting.index(node) :] + [node]
            if node in done:
                return None
            visiting.append(node)
            for edge in self.dependents_of(node):
                found = visit(edge.dependent)
                if found:
                    return found
            visiting.pop()
            done.add(node)
            return None

        for node in self._edges:
            found = visit(node)
            if found:
                return found
        return None

    def describe(
        self, entity_type: Type[Any], max_depth: int = 10
    ) -> Dict[str, Any]:
        """
        Describe the cascade tree below an entity type.

        Cycles are cut off where a type repeats on the current path.

        Returns:
            Nested dictionary with "type" and "dependents" keys
        """

        def build(node: Type[Any], path: Tuple[Type[Any], ...]) -> Dict[str, Any]:
            children = []
            if len(path) < max_depth:
                for edge in self.dependents_of(node):
                    if edge.dependent in path:
                        children.append(
                            {
                                "type": edge.dependent.__name__,
                                "via": edge.attribute,
                                "recursive": True,
                                "dependents": [],
                            }
                        )
                        continue
                    child = build(edge.dependent, path + (edge.dependent,))
                    child["via"] = edge.attribute
                    children.append(child)
            return {"type": node.__name__, "dependents": children}

        return build(entity_type, (entity_type,))
