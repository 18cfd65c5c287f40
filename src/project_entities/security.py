"""Identifier grammars and path-safe addressing.

Every read or write of a store file goes through ``resolve_path``. IDs are
validated against a fixed per-type grammar before they are ever used to
build a path.
"""

import os
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from project_entities.errors import SecurityError, UnknownEntityTypeError, ValidationError

logger = structlog.get_logger()

YAML_SUFFIX = ".yaml"


class IDScheme(str, Enum):
    """How IDs of a type are minted."""

    SEQUENTIAL = "sequential"
    UUID = "uuid"


class StorageKind(str, Enum):
    """How instances of a type are laid out on disk."""

    DIRECTORY = "directory"
    COLLECTION = "collection"
    SINGLETON = "singleton"
    QUEUE = "queue"


@dataclass(frozen=True)
class EntityTypeSpec:
    """Addressing rules for one entity type."""

    name: str
    prefix: str
    scheme: IDScheme
    storage: StorageKind
    location: str

    @property
    def pattern(self) -> re.Pattern[str]:
        if self.scheme is IDScheme.SEQUENTIAL:
            return re.compile(rf"^{re.escape(self.prefix)}-[0-9]{{3}}$")
        return re.compile(rf"^{re.escape(self.prefix)}-[a-f0-9]{{8}}$")

    @property
    def expected_format(self) -> str:
        if self.scheme is IDScheme.SEQUENTIAL:
            return f"{self.prefix}-NNN"
        return f"{self.prefix}-XXXXXXXX"

    def format_sequential(self, number: int) -> str:
        return f"{self.prefix}-{number:03d}"


ENTITY_TYPES: dict[str, EntityTypeSpec] = {
    spec.name: spec
    for spec in (
        EntityTypeSpec("vision", "vision", IDScheme.SEQUENTIAL, StorageKind.SINGLETON, "vision.yaml"),
        EntityTypeSpec("objective", "obj", IDScheme.SEQUENTIAL, StorageKind.DIRECTORY, "objectives"),
        EntityTypeSpec("deliverable", "del", IDScheme.SEQUENTIAL, StorageKind.DIRECTORY, "deliverables"),
        EntityTypeSpec("quality", "qual", IDScheme.SEQUENTIAL, StorageKind.DIRECTORY, "quality"),
        EntityTypeSpec("consideration", "con", IDScheme.SEQUENTIAL, StorageKind.DIRECTORY, "considerations"),
        EntityTypeSpec("decision", "dec", IDScheme.SEQUENTIAL, StorageKind.DIRECTORY, "decisions"),
        EntityTypeSpec("problem", "prob", IDScheme.SEQUENTIAL, StorageKind.DIRECTORY, "problems"),
        EntityTypeSpec("assumption", "assum", IDScheme.SEQUENTIAL, StorageKind.DIRECTORY, "assumptions"),
        EntityTypeSpec("constraint", "const", IDScheme.SEQUENTIAL, StorageKind.COLLECTION, "constraints.yaml"),
        EntityTypeSpec("risk", "risk", IDScheme.UUID, StorageKind.DIRECTORY, "risks"),
        EntityTypeSpec("actor", "actor", IDScheme.UUID, StorageKind.COLLECTION, "actors.yaml"),
        EntityTypeSpec("task", "task", IDScheme.UUID, StorageKind.COLLECTION, "tasks.yaml"),
        EntityTypeSpec("approval", "approval", IDScheme.UUID, StorageKind.QUEUE, "approvals"),
    )
}


def get_type_spec(entity_type: str) -> EntityTypeSpec:
    """Look up the addressing rules for a type.

    Raises:
        UnknownEntityTypeError: If the type has no grammar.
    """
    spec = ENTITY_TYPES.get(entity_type)
    if spec is None:
        raise UnknownEntityTypeError(entity_type)
    return spec


def is_valid_entity_type(entity_type: str) -> bool:
    return entity_type in ENTITY_TYPES


def validate_id(entity_type: str, entity_id: str) -> None:
    """Check an ID against its type's grammar.

    Args:
        entity_type: Entity type name
        entity_id: Identifier to check

    Raises:
        UnknownEntityTypeError: If the type is not known
        ValidationError: If the ID does not match the type's pattern
    """
    spec = get_type_spec(entity_type)
    if not isinstance(entity_id, str) or not spec.pattern.fullmatch(entity_id):
        raise ValidationError(
            "id",
            f"invalid ID format: {entity_id!r} (expected pattern: {spec.pattern.pattern})",
        )


def _reject(kind: str, message: str, requested_path: str) -> SecurityError:
    logger.warning("Security violation", kind=kind, requested_path=repr(requested_path))
    return SecurityError(kind, message)


def resolve_path(base_dir: str | Path, requested_path: str | Path) -> Path:
    """Resolve a relative path to an absolute path contained in base_dir.

    Containment is lexical: the cleaned path must equal base_dir or start with
    base_dir plus a separator. Symlinks are not followed.

    Args:
        base_dir: Store root
        requested_path: Path relative to the store root

    Returns:
        Absolute, normalized path

    Raises:
        SecurityError: On NUL bytes, control characters or traversal outside base_dir
    """
    requested = os.fspath(requested_path)

    if "\x00" in requested:
        raise _reject("null_byte", "access denied: null byte detected in path", requested)
    if any(unicodedata.category(ch) == "Cc" for ch in requested):
        raise _reject("control_char", "access denied: control character detected in path", requested)

    abs_base = os.path.abspath(os.fspath(base_dir))
    clean = os.path.normpath(os.path.join(abs_base, requested))

    if clean == abs_base:
        return Path(clean)

    prefix = abs_base if abs_base.endswith(os.sep) else abs_base + os.sep
    if not clean.startswith(prefix):
        raise _reject("path_traversal", "access denied: path is outside base directory", requested)

    return Path(clean)


def relative_entity_path(entity_type: str, entity_id: str) -> str:
    """Map a validated (type, id) pair to a store-relative path.

    Singleton and collection types map to their fixed file regardless of ID.
    Approvals map to the shared pending queue.
    """
    validate_id(entity_type, entity_id)
    spec = get_type_spec(entity_type)
    if spec.storage in (StorageKind.SINGLETON, StorageKind.COLLECTION):
        return spec.location
    if spec.storage is StorageKind.QUEUE:
        return f"{spec.location}/pending/queue{YAML_SUFFIX}"
    return f"{spec.location}/{entity_id}{YAML_SUFFIX}"


def entity_file_path(base_dir: str | Path, entity_type: str, entity_id: str) -> Path:
    """Compose ID validation with path resolution."""
    return resolve_path(base_dir, relative_entity_path(entity_type, entity_id))
