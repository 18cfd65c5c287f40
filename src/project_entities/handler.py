"""Handler interface for entity types."""

import copy
import dataclasses
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from enum import Enum
from typing import Any, ContextManager, Generic, TypeVar, get_type_hints

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import (
    CascadeProtectionError,
    EntityNotFoundError,
    ImmutabilityError,
    UnknownEntityTypeError,
    ValidationError,
)
from project_entities.id_counter import IDCounterManager
from project_entities.integrity import NullReferenceChecker, ReferenceChecker, ReferenceField
from project_entities.locking import DEFAULT_LOCK_TIMEOUT, lock_with_timeout
from project_entities.models import (
    AddResult,
    ListFilter,
    ListResult,
    coerce_value,
    field_names,
    from_dict,
    now,
    to_dict,
)
from project_entities.sanitizer import Sanitizer
from project_entities.security import (
    YAML_SUFFIX,
    IDScheme,
    get_type_spec,
    relative_entity_path,
    validate_id,
)
from project_entities.storage import FileStore

logger = structlog.get_logger()

E = TypeVar("E")
P = TypeVar("P")

METADATA_PATCH_FIELDS = ("owner", "tags")


class EntityHandler(ABC, Generic[E, P]):
    """Abstract base class for entity type handlers.

    Subclasses set ``entity_type``, ``entity_class`` and ``patch_class`` and
    pick a storage base (directory, collection or singleton). The base class
    runs the shared create/update/delete pipeline: sanitize, merge, derive,
    validate, check references, persist.
    """

    entity_type: str
    entity_class: type
    patch_class: type
    references: tuple[ReferenceField, ...] = ()
    immutable: bool = False

    def __init__(
        self,
        store: FileStore,
        *,
        counter: IDCounterManager | None = None,
        checker: ReferenceChecker | None = None,
        sanitizer: Sanitizer | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        self.store = store
        self.counter = counter
        self.checker = checker or NullReferenceChecker()
        self.sanitizer = sanitizer or Sanitizer()
        self.lock_timeout = lock_timeout
        self.spec = get_type_spec(self.entity_type)
        self._entity_hints = get_type_hints(self.entity_class)

    def type(self) -> str:
        return self.entity_type

    @property
    def has_status(self) -> bool:
        return "status" in field_names(self.entity_class)

    # Storage primitives, provided by the storage base classes

    @abstractmethod
    def _load(self, entity_id: str, cancel: Cancel) -> E:
        """Read one entity or raise EntityNotFoundError."""
        pass

    @abstractmethod
    def _load_all(self, cancel: Cancel) -> list[E]:
        """Read every stored entity of this type."""
        pass

    @abstractmethod
    def _insert(self, entity: E, cancel: Cancel) -> None:
        """Persist a new entity."""
        pass

    @abstractmethod
    def _replace(self, entity: E, cancel: Cancel) -> None:
        """Persist an existing entity."""
        pass

    @abstractmethod
    def _remove(self, entity_id: str, cancel: Cancel) -> None:
        """Remove a stored entity."""
        pass

    def _write_guard(self) -> ContextManager[None]:
        """Context held around read-modify-write sequences."""
        return nullcontext()

    # Hooks for per-type rules

    def _derive(self, entity: E) -> None:
        """Recompute derived fields."""

    def _validate(self, entity: E) -> None:
        """Enforce per-type rules. Raise ValidationError on failure."""

    def _after_create(self, entity: E, cancel: Cancel) -> None:
        """Apply effects on other entities once the new entity is persisted."""

    # Shared pipeline

    def _new_id(self, cancel: Cancel) -> str:
        if self.spec.scheme is IDScheme.SEQUENTIAL:
            if self.counter is None:
                raise ValueError(f"{self.entity_type} handler needs an ID counter")
            entity_id = self.spec.format_sequential(self.counter.get_next_id(self.entity_type, cancel=cancel))
        else:
            entity_id = f"{self.spec.prefix}-{uuid.uuid4().hex[:8]}"
        validate_id(self.entity_type, entity_id)
        return entity_id

    def _new_entity(self, entity_id: str, title: str) -> E:
        entity = self.entity_class(id=entity_id, title=title)
        timestamp = now()
        entity.metadata.created_at = timestamp
        entity.metadata.updated_at = timestamp
        return entity

    def _reference_for(self, field_name: str) -> ReferenceField | None:
        for ref in self.references:
            if ref.field == field_name:
                return ref
        return None

    def _sanitize_value(self, name: str, value: Any) -> Any:
        if isinstance(value, Enum):
            return value
        if isinstance(value, str):
            return self.sanitizer.sanitize_string(name, value)
        if isinstance(value, list):
            return [self._sanitize_value(name, item) for item in value]
        if dataclasses.is_dataclass(value):
            changes = {f.name: self._sanitize_value(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)}
            return dataclasses.replace(value, **changes)
        return value

    def _apply_patch(self, entity: E, patch: P) -> None:
        """Validate each set patch field and merge it into the entity."""
        if not isinstance(patch, self.patch_class):
            raise ValidationError("patch", f"expected {self.patch_class.__name__}, got {type(patch).__name__}")

        for f in dataclasses.fields(patch):
            value = getattr(patch, f.name)
            if value is None:
                continue

            if f.name == "owner":
                entity.metadata.owner = self.sanitizer.sanitize_owner(value) if value else ""
                continue
            if f.name == "tags":
                entity.metadata.tags = self.sanitizer.sanitize_tags(value)
                continue

            value = coerce_value(f.name, value, self._entity_hints[f.name])
            ref = self._reference_for(f.name)
            if ref is not None:
                for target_id in value if ref.many else [value]:
                    if target_id:
                        validate_id(ref.target_type, target_id)
            else:
                value = self._sanitize_value(f.name, value)
            setattr(entity, f.name, value)

    def _validate_common(self, entity: E) -> None:
        for ref in self.references:
            if ref.required and not ref.values(entity):
                raise ValidationError(ref.field, "is required")
            if entity.id and entity.id in ref.values(entity) and ref.target_type == self.entity_type:
                raise ValidationError(ref.field, "cannot reference itself")

        progress = getattr(entity, "progress", None)
        if progress is not None:
            if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
                raise ValidationError("progress", "must be an integer between 0 and 100")

        self._validate(entity)

    def _check_references(self, entity: E, previous: E | None, cancel: Cancel) -> None:
        """Forward-check references, on update only those whose value changed."""
        for ref in self.references:
            old_values = set(ref.values(previous)) if previous is not None else set()
            for target_id in ref.values(entity):
                if target_id in old_values:
                    continue
                self.checker.validate_reference(ref.target_type, target_id, cancel=cancel)

    def _check_parent_chain(self, entity: E, cancel: Cancel, field_name: str = "parent_id") -> None:
        """Reject a parent assignment that would make the entity its own ancestor."""
        seen = {entity.id}
        parent_id = getattr(entity, field_name)
        while parent_id:
            if parent_id in seen:
                raise ValidationError(field_name, f"would create a cycle through {parent_id}")
            seen.add(parent_id)
            try:
                parent = self._load(parent_id, cancel)
            except EntityNotFoundError:
                return
            parent_id = getattr(parent, field_name)

    # Public operations

    def add(self, title: str, fields: P | None = None, *, cancel: Cancel = None) -> AddResult:
        """Create a new entity.

        Args:
            title: Entity title
            fields: Optional patch carrying initial field values
            cancel: Optional cancellation signal

        Returns:
            AddResult with the new ID
        """
        check_cancelled(cancel)
        logger.debug("Creating entity", entity_type=self.entity_type)

        patch = fields if fields is not None else self.patch_class()
        entity = self._new_entity("", self.sanitizer.sanitize_string("title", title))
        self._apply_patch(entity, patch)
        self._derive(entity)
        self._validate_common(entity)
        self._check_references(entity, None, cancel)

        with self._write_guard():
            check_cancelled(cancel)
            entity.id = self._new_id(cancel)
            self._insert(entity, cancel)

        self._after_create(entity, cancel)
        logger.info("Created entity", entity_type=self.entity_type, entity_id=entity.id)
        return AddResult(success=True, id=entity.id, entity=self.entity_type)

    def get(self, entity_id: str, *, cancel: Cancel = None) -> E:
        check_cancelled(cancel)
        validate_id(self.entity_type, entity_id)
        return self._load(entity_id, cancel)

    def all(self, *, cancel: Cancel = None) -> list[E]:
        check_cancelled(cancel)
        return self._load_all(cancel)

    def list(self, filter: ListFilter | None = None, *, cancel: Cancel = None) -> ListResult:
        """List entities, optionally filtered by status and paginated.

        A status filter on a type without a status field is ignored. ``total``
        counts matches before pagination.
        """
        check_cancelled(cancel)
        filter = filter or ListFilter()
        items = self._load_all(cancel)

        if filter.status and self.has_status:
            items = [item for item in items if _enum_value(item.status) == filter.status]

        total = len(items)
        if filter.offset > 0:
            items = items[filter.offset :]
        if filter.limit > 0:
            items = items[: filter.limit]

        logger.debug("Listed entities", entity_type=self.entity_type, total=total, returned=len(items))
        return ListResult(entity=self.entity_type, items=items, total=total)

    def update(self, entity_id: str, patch: P, *, cancel: Cancel = None) -> E:
        """Apply a patch to an existing entity.

        Raises:
            ImmutabilityError: If the type forbids updates
            EntityNotFoundError: If the entity does not exist
            ReferenceNotFoundError: If a changed reference does not resolve
        """
        check_cancelled(cancel)
        if self.immutable:
            raise ImmutabilityError(self.entity_type, entity_id, "update")
        validate_id(self.entity_type, entity_id)

        with self._write_guard():
            previous = self._load(entity_id, cancel)
            entity = copy.deepcopy(previous)
            self._apply_patch(entity, patch)
            self._derive(entity)
            self._validate_common(entity)
            self._check_references(entity, previous, cancel)
            entity.metadata.updated_at = now()
            check_cancelled(cancel)
            self._replace(entity, cancel)

        logger.info("Updated entity", entity_type=self.entity_type, entity_id=entity_id)
        return entity

    def delete(self, entity_id: str, *, cancel: Cancel = None) -> None:
        """Delete an entity nothing else references.

        Raises:
            ImmutabilityError: If the type forbids deletion
            EntityNotFoundError: If the entity does not exist
            CascadeProtectionError: If another entity still references it
        """
        check_cancelled(cancel)
        if self.immutable:
            raise ImmutabilityError(self.entity_type, entity_id, "delete")
        validate_id(self.entity_type, entity_id)

        with self._write_guard():
            self._load(entity_id, cancel)
            referrer = self.checker.find_back_reference(self.entity_type, entity_id, cancel=cancel)
            if referrer is not None:
                raise CascadeProtectionError(self.entity_type, entity_id, *referrer)
            check_cancelled(cancel)
            self._remove(entity_id, cancel)

        logger.info("Deleted entity", entity_type=self.entity_type, entity_id=entity_id)

    # Serialization

    def _decode(self, data: Any, source: str) -> E:
        if not isinstance(data, dict):
            raise ValueError(f"{source}: expected a mapping, got {type(data).__name__}")
        return from_dict(self.entity_class, data)

    def _encode(self, entity: E) -> dict[str, Any]:
        return to_dict(entity)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class DirectoryHandler(EntityHandler[E, P]):
    """One YAML file per entity under the type's directory."""

    def _path(self, entity_id: str) -> str:
        return relative_entity_path(self.entity_type, entity_id)

    def _load(self, entity_id: str, cancel: Cancel) -> E:
        path = self._path(entity_id)
        if not self.store.exists(path, cancel=cancel):
            raise EntityNotFoundError(self.entity_type, entity_id)
        return self._decode(self.store.read_yaml(path, cancel=cancel), path)

    def _load_all(self, cancel: Cancel) -> list[E]:
        entities = []
        for name in self.store.list_dir(self.spec.location, cancel=cancel):
            if not name.endswith(YAML_SUFFIX):
                continue
            path = f"{self.spec.location}/{name}"
            entities.append(self._decode(self.store.read_yaml(path, cancel=cancel), path))
        return entities

    def _insert(self, entity: E, cancel: Cancel) -> None:
        path = self._path(entity.id)
        if self.store.exists(path, cancel=cancel):
            raise ValidationError("id", f"{self.entity_type} {entity.id} already exists")
        self.store.write_yaml(path, self._encode(entity), cancel=cancel)

    def _replace(self, entity: E, cancel: Cancel) -> None:
        self.store.write_yaml(self._path(entity.id), self._encode(entity), cancel=cancel)

    def _remove(self, entity_id: str, cancel: Cancel) -> None:
        self.store.delete(self._path(entity_id), cancel=cancel)


class CollectionHandler(EntityHandler[E, P]):
    """All entities of a type in one YAML file, under a key named after the file.

    Mutations hold the file lock across the whole read-modify-write.
    """

    @property
    def collection_key(self) -> str:
        return self.spec.location.removesuffix(YAML_SUFFIX)

    @contextmanager
    def _write_guard(self) -> Iterator[None]:
        with lock_with_timeout(self.store.resolve(self.spec.location), self.lock_timeout):
            yield

    def _read_records(self, cancel: Cancel) -> list[dict[str, Any]]:
        try:
            data = self.store.read_yaml(self.spec.location, cancel=cancel) or {}
        except FileNotFoundError:
            return []
        if not isinstance(data, dict):
            raise ValueError(f"{self.spec.location}: expected a mapping")
        return list(data.get(self.collection_key) or [])

    def _write_records(self, records: list[dict[str, Any]], cancel: Cancel) -> None:
        self.store.write_yaml(self.spec.location, {self.collection_key: records}, cancel=cancel)

    def _load(self, entity_id: str, cancel: Cancel) -> E:
        for record in self._read_records(cancel):
            if isinstance(record, dict) and record.get("id") == entity_id:
                return self._decode(record, self.spec.location)
        raise EntityNotFoundError(self.entity_type, entity_id)

    def _load_all(self, cancel: Cancel) -> list[E]:
        return [self._decode(record, self.spec.location) for record in self._read_records(cancel)]

    def _insert(self, entity: E, cancel: Cancel) -> None:
        records = self._read_records(cancel)
        if any(record.get("id") == entity.id for record in records):
            raise ValidationError("id", f"{self.entity_type} {entity.id} already exists")
        records.append(self._encode(entity))
        self._write_records(records, cancel)

    def _replace(self, entity: E, cancel: Cancel) -> None:
        records = self._read_records(cancel)
        for index, record in enumerate(records):
            if record.get("id") == entity.id:
                records[index] = self._encode(entity)
                self._write_records(records, cancel)
                return
        raise EntityNotFoundError(self.entity_type, entity.id)

    def _remove(self, entity_id: str, cancel: Cancel) -> None:
        records = self._read_records(cancel)
        remaining = [record for record in records if record.get("id") != entity_id]
        if len(remaining) == len(records):
            raise EntityNotFoundError(self.entity_type, entity_id)
        self._write_records(remaining, cancel)


class SingletonHandler(EntityHandler[E, P]):
    """A type with exactly one instance stored in a fixed file."""

    @property
    def singleton_id(self) -> str:
        return self.spec.format_sequential(1)

    def _load(self, entity_id: str, cancel: Cancel) -> E:
        if entity_id != self.singleton_id or not self.store.exists(self.spec.location, cancel=cancel):
            raise EntityNotFoundError(self.entity_type, entity_id)
        return self._decode(self.store.read_yaml(self.spec.location, cancel=cancel), self.spec.location)

    def _load_all(self, cancel: Cancel) -> list[E]:
        if not self.store.exists(self.spec.location, cancel=cancel):
            return []
        return [self._decode(self.store.read_yaml(self.spec.location, cancel=cancel), self.spec.location)]

    def _new_id(self, cancel: Cancel) -> str:
        return self.singleton_id

    def _insert(self, entity: E, cancel: Cancel) -> None:
        self.store.write_yaml(self.spec.location, self._encode(entity), cancel=cancel)

    def _replace(self, entity: E, cancel: Cancel) -> None:
        self.store.write_yaml(self.spec.location, self._encode(entity), cancel=cancel)

    def _remove(self, entity_id: str, cancel: Cancel) -> None:
        self.store.delete(self.spec.location, cancel=cancel)


class EntityRegistry:
    """Handlers keyed by entity type name."""

    def __init__(self) -> None:
        self._handlers: dict[str, EntityHandler] = {}

    def register(self, handler: EntityHandler) -> None:
        logger.debug("Registering handler", entity_type=handler.type())
        self._handlers[handler.type()] = handler

    def get(self, entity_type: str) -> EntityHandler:
        """Look up the handler for a type.

        Raises:
            UnknownEntityTypeError: If no handler is registered for the type
        """
        handler = self._handlers.get(entity_type)
        if handler is None:
            raise UnknownEntityTypeError(entity_type)
        return handler

    def types(self) -> list[str]:
        return list(self._handlers)
