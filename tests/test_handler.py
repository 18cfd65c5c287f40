"""Tests for the shared handler pipeline and the registry."""

import threading

import pytest

from project_entities.errors import (
    EntityNotFoundError,
    OperationCancelledError,
    UnknownEntityTypeError,
    ValidationError,
)
from project_entities.handler import EntityRegistry
from project_entities.handlers import ObjectiveHandler
from project_entities.models import (
    ConstraintPatch,
    ListFilter,
    ObjectivePatch,
    ObjectiveStatus,
    RiskPatch,
)
from project_entities.project import Project
from project_entities.storage import FileStore


def test_add_and_get(project: Project) -> None:
    """Test a created entity is read back with timestamps set."""
    result = project.add("objective", "Launch v1", ObjectivePatch(description="First release"))
    assert result.success
    assert result.id == "obj-001"
    assert result.entity == "objective"

    objective = project.get("objective", "obj-001")
    assert objective.title == "Launch v1"
    assert objective.description == "First release"
    assert objective.metadata.created_at
    assert objective.metadata.created_at == objective.metadata.updated_at
    assert (project.store_path / "objectives" / "obj-001.yaml").exists()


def test_sequential_ids(project: Project) -> None:
    """Test sequential types mint increasing IDs."""
    ids = [project.add("problem", f"Problem {i}").id for i in range(3)]
    assert ids == ["prob-001", "prob-002", "prob-003"]


def test_add_sanitizes_fields(project: Project) -> None:
    """Test titles and rich text are sanitized before storage."""
    project.add("objective", "Clean\x07 title", ObjectivePatch(description="<script>x</script>"))
    objective = project.get("objective", "obj-001")
    assert objective.title == "Clean title"
    assert objective.description == "&lt;script&gt;x&lt;/script&gt;"


def test_owner_and_tags_go_to_metadata(project: Project) -> None:
    """Test owner and tags in a patch land in the metadata block."""
    project.add("objective", "Tagged", ObjectivePatch(owner="alice", tags=["Q1", "Growth"]))
    objective = project.get("objective", "obj-001")
    assert objective.metadata.owner == "alice"
    assert objective.metadata.tags == ["q1", "growth"]


def test_add_rejects_invalid_progress(project: Project) -> None:
    """Test progress outside 0..100 is rejected and nothing is written."""
    with pytest.raises(ValidationError) as exc_info:
        project.add("objective", "Too far", ObjectivePatch(progress=101))
    assert exc_info.value.field == "progress"
    assert project.store.list_dir("objectives") == []


def test_add_rejects_wrong_patch_type(project: Project) -> None:
    """Test a patch of another type is rejected."""
    with pytest.raises(ValidationError) as exc_info:
        project.add("objective", "Mixed up", RiskPatch())
    assert exc_info.value.field == "patch"


def test_add_rejects_invalid_enum_string(project: Project) -> None:
    """Test enum fields given as unknown strings are rejected."""
    with pytest.raises(ValidationError):
        project.add("objective", "Bad status", ObjectivePatch(status="finished"))  # type: ignore[arg-type]


def test_get_missing_and_malformed(project: Project) -> None:
    """Test lookups of missing and malformed IDs."""
    with pytest.raises(EntityNotFoundError, match="objective not found: obj-404"):
        project.get("objective", "obj-404")
    with pytest.raises(ValidationError):
        project.get("objective", "../obj-001")


def test_update_merges_patch(project: Project) -> None:
    """Test only set patch fields change."""
    project.add("objective", "Launch", ObjectivePatch(description="Keep me"))
    created = project.get("objective", "obj-001")

    updated = project.update("objective", "obj-001", ObjectivePatch(status=ObjectiveStatus.IN_PROGRESS, progress=40))
    assert updated.status is ObjectiveStatus.IN_PROGRESS
    assert updated.progress == 40
    assert updated.description == "Keep me"
    assert updated.metadata.created_at == created.metadata.created_at
    assert project.get("objective", "obj-001") == updated


def test_update_missing(project: Project) -> None:
    """Test updating a missing entity fails."""
    with pytest.raises(EntityNotFoundError):
        project.update("objective", "obj-009", ObjectivePatch(title="x"))


def test_delete(project: Project) -> None:
    """Test deleting removes the entity."""
    project.add("objective", "Temporary")
    project.delete("objective", "obj-001")
    with pytest.raises(EntityNotFoundError):
        project.get("objective", "obj-001")
    with pytest.raises(EntityNotFoundError):
        project.delete("objective", "obj-001")


def test_list_filter_and_pagination(project: Project) -> None:
    """Test status filtering and pagination report the filtered total."""
    for i in range(5):
        status = ObjectiveStatus.COMPLETED if i % 2 else ObjectiveStatus.IN_PROGRESS
        project.add("objective", f"Objective {i}", ObjectivePatch(status=status))

    result = project.list("objective", ListFilter(status="in_progress"))
    assert result.total == 3
    assert [o.id for o in result.items] == ["obj-001", "obj-003", "obj-005"]

    page = project.list("objective", ListFilter(limit=2, offset=1))
    assert page.total == 5
    assert [o.id for o in page.items] == ["obj-002", "obj-003"]


def test_list_status_ignored_without_status_field(project: Project) -> None:
    """Test a status filter on a type without status returns everything."""
    project.add("constraint", "Budget", ConstraintPatch(non_negotiable=True))
    project.add("constraint", "Deadline")
    result = project.list("constraint", ListFilter(status="open"))
    assert result.total == 2


def test_cancelled_add_writes_nothing(project: Project) -> None:
    """Test a pre-set cancellation signal stops the operation."""
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelledError):
        project.handler("objective").add("Never", cancel=cancel)
    assert project.store.list_dir("objectives") == []


def test_handler_type_and_status() -> None:
    """Test handlers report their type and whether it has a status."""
    handler = ObjectiveHandler(FileStore("/tmp/unused"))
    assert handler.type() == "objective"
    assert handler.has_status


def test_registry(project: Project) -> None:
    """Test handlers are looked up by type name."""
    assert sorted(project.registry.types()) == sorted(
        [
            "vision",
            "objective",
            "deliverable",
            "quality",
            "consideration",
            "decision",
            "risk",
            "problem",
            "assumption",
            "constraint",
            "actor",
            "task",
        ]
    )
    assert project.handler("risk").entity_type == "risk"
    with pytest.raises(UnknownEntityTypeError):
        project.handler("epic")
    with pytest.raises(UnknownEntityTypeError):
        EntityRegistry().get("objective")
