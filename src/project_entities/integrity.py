"""Referential integrity between entities.

Handlers declare their outgoing references as ``ReferenceField`` values. A
``ReferenceChecker`` answers two questions for them: does a referenced
entity exist (forward check), and does anything still point at an entity
about to be deleted (backward check). ``IntegrityChecker`` sweeps the whole
store for references that went stale outside the handlers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import EntityNotFoundError, ReferenceNotFoundError, UnknownEntityTypeError

if TYPE_CHECKING:
    from project_entities.handler import EntityRegistry

logger = structlog.get_logger()


class ReferenceStatus(str, Enum):
    """Outcome of a forward reference check."""

    FOUND = "found"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReferenceField:
    """A field on one entity type naming IDs of another."""

    field: str
    target_type: str
    required: bool = False
    many: bool = False

    def values(self, entity: Any) -> list[str]:
        """Non-empty IDs held by this field on an entity."""
        value = getattr(entity, self.field, None)
        if not value:
            return []
        if self.many:
            return [v for v in value if v]
        return [value]


class ReferenceChecker(ABC):
    """Resolves references for handlers."""

    @abstractmethod
    def validate_reference(self, target_type: str, target_id: str, *, cancel: Cancel = None) -> ReferenceStatus:
        """Check that target_id exists.

        Returns:
            FOUND, or UNKNOWN when no check could be performed

        Raises:
            ReferenceNotFoundError: If the target does not exist
        """
        pass

    @abstractmethod
    def find_back_reference(self, target_type: str, target_id: str, *, cancel: Cancel = None) -> tuple[str, str] | None:
        """Return (entity_type, entity_id) of the first entity referencing the target, or None."""
        pass


class NullReferenceChecker(ReferenceChecker):
    """Performs no checks. Used when integrity checks are disabled."""

    def validate_reference(self, target_type: str, target_id: str, *, cancel: Cancel = None) -> ReferenceStatus:
        check_cancelled(cancel)
        return ReferenceStatus.UNKNOWN

    def find_back_reference(self, target_type: str, target_id: str, *, cancel: Cancel = None) -> tuple[str, str] | None:
        check_cancelled(cancel)
        return None


class RegistryReferenceChecker(ReferenceChecker):
    """Resolves references through the handlers of an EntityRegistry."""

    def __init__(self, registry: "EntityRegistry") -> None:
        self.registry = registry

    def validate_reference(self, target_type: str, target_id: str, *, cancel: Cancel = None) -> ReferenceStatus:
        check_cancelled(cancel)
        try:
            handler = self.registry.get(target_type)
        except UnknownEntityTypeError:
            logger.debug("No handler for reference target", target_type=target_type)
            return ReferenceStatus.UNKNOWN

        try:
            handler.get(target_id, cancel=cancel)
        except EntityNotFoundError as e:
            raise ReferenceNotFoundError(target_type, target_id) from e
        return ReferenceStatus.FOUND

    def find_back_reference(self, target_type: str, target_id: str, *, cancel: Cancel = None) -> tuple[str, str] | None:
        # Linear scan over every referring type.
        for source_type in self.registry.types():
            handler = self.registry.get(source_type)
            refs = [ref for ref in handler.references if ref.target_type == target_type]
            if not refs:
                continue
            for entity in handler.all(cancel=cancel):
                if source_type == target_type and entity.id == target_id:
                    continue
                for ref in refs:
                    if target_id in ref.values(entity):
                        logger.debug(
                            "Back reference found",
                            target_type=target_type,
                            target_id=target_id,
                            referenced_by=entity.id,
                        )
                        return source_type, entity.id
        return None


@dataclass
class ReferenceIssue:
    source_type: str
    source_id: str
    field: str
    target_type: str
    target_id: str
    message: str

    def __str__(self) -> str:
        return f"{self.source_type} {self.source_id} -> {self.target_type} {self.target_id}: {self.message}"


@dataclass
class CycleIssue:
    entity_type: str
    field: str
    cycle: list[str]

    def __str__(self) -> str:
        return f"{self.entity_type} cycle via {self.field}: {' -> '.join(self.cycle)}"


@dataclass
class IntegrityResult:
    valid: bool = True
    reference_errors: list[ReferenceIssue] = field(default_factory=list)
    cycle_errors: list[CycleIssue] = field(default_factory=list)
    warnings: list[ReferenceIssue] = field(default_factory=list)


# (entity type, field) pairs that form hierarchies and must stay acyclic
CYCLE_FIELDS: tuple[tuple[str, str], ...] = (
    ("objective", "parent_id"),
    ("task", "parent_id"),
    ("task", "dependencies"),
)


class IntegrityChecker:
    """Whole-store sweep for dangling references and cycles.

    Dangling single-valued references and missing required references are
    errors. Dangling entries in multi-valued references are warnings.
    """

    def __init__(self, registry: "EntityRegistry") -> None:
        self.registry = registry

    def _load_all(self, cancel: Cancel) -> dict[str, list[Any]]:
        return {name: self.registry.get(name).all(cancel=cancel) for name in self.registry.types()}

    def check_all(self, *, cancel: Cancel = None) -> IntegrityResult:
        check_cancelled(cancel)
        entities = self._load_all(cancel)
        result = IntegrityResult()
        self._check_references(entities, result)
        self._check_cycles(entities, result)
        result.valid = not result.reference_errors and not result.cycle_errors
        logger.info(
            "Integrity check completed",
            valid=result.valid,
            reference_errors=len(result.reference_errors),
            cycle_errors=len(result.cycle_errors),
            warnings=len(result.warnings),
        )
        return result

    def _check_references(self, entities: dict[str, list[Any]], result: IntegrityResult) -> None:
        known_ids = {name: {e.id for e in items} for name, items in entities.items()}

        for source_type, items in entities.items():
            handler = self.registry.get(source_type)
            for entity in items:
                for ref in handler.references:
                    values = ref.values(entity)
                    if ref.required and not values:
                        result.reference_errors.append(
                            ReferenceIssue(
                                source_type, entity.id, ref.field, ref.target_type, "", f"{ref.field} is required but missing"
                            )
                        )
                        continue
                    if ref.target_type not in known_ids:
                        continue
                    for target_id in values:
                        if target_id in known_ids[ref.target_type]:
                            continue
                        issue = ReferenceIssue(
                            source_type,
                            entity.id,
                            ref.field,
                            ref.target_type,
                            target_id,
                            f"referenced {ref.target_type} not found",
                        )
                        if ref.many:
                            result.warnings.append(issue)
                        else:
                            result.reference_errors.append(issue)

    def _check_cycles(self, entities: dict[str, list[Any]], result: IntegrityResult) -> None:
        for entity_type, field_name in CYCLE_FIELDS:
            if entity_type not in entities:
                continue
            graph: dict[str, list[str]] = {}
            for entity in entities[entity_type]:
                value = getattr(entity, field_name, None) or []
                graph[entity.id] = list(value) if isinstance(value, list) else [value]
            for cycle in find_cycles(graph):
                result.cycle_errors.append(CycleIssue(entity_type, field_name, cycle))


def find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """Find cycles in a directed graph given as adjacency lists.

    Each cycle is reported once, as the path that closes it with its first
    node repeated at the end.
    """
    visited: set[str] = set()
    cycles: list[list[str]] = []

    def visit(node: str, path: list[str], on_path: set[str]) -> None:
        visited.add(node)
        path.append(node)
        on_path.add(node)
        for nxt in graph.get(node, []):
            if nxt in on_path:
                cycles.append(path[path.index(nxt) :] + [nxt])
            elif nxt not in visited and nxt in graph:
                visit(nxt, path, on_path)
        path.pop()
        on_path.discard(node)

    for node in graph:
        if node not in visited:
            visit(node, [], set())
    return cycles
