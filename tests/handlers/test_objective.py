"""Tests for objective and deliverable handlers."""

import pytest

from project_entities.errors import CascadeProtectionError, ReferenceNotFoundError, ValidationError
from project_entities.models import DeliverablePatch, ObjectivePatch
from project_entities.project import Project


def test_parent_must_exist(project: Project) -> None:
    """Test a parent reference to a missing objective is rejected."""
    with pytest.raises(ReferenceNotFoundError) as exc_info:
        project.add("objective", "Child", ObjectivePatch(parent_id="obj-009"))
    assert exc_info.value.target_id == "obj-009"
    assert project.store.list_dir("objectives") == []


def test_parent_must_be_well_formed(project: Project) -> None:
    """Test a malformed parent ID is rejected as a validation error."""
    with pytest.raises(ValidationError):
        project.add("objective", "Child", ObjectivePatch(parent_id="del-001"))


def test_nested_objectives(project: Project) -> None:
    """Test an objective can be nested under an existing parent."""
    project.add("objective", "Parent")
    project.add("objective", "Child", ObjectivePatch(parent_id="obj-001"))
    assert project.get("objective", "obj-002").parent_id == "obj-001"


def test_self_parent_rejected(project: Project) -> None:
    """Test an objective cannot be its own parent."""
    project.add("objective", "Loop")
    with pytest.raises(ValidationError) as exc_info:
        project.update("objective", "obj-001", ObjectivePatch(parent_id="obj-001"))
    assert exc_info.value.field == "parent_id"


def test_parent_cycle_rejected(project: Project) -> None:
    """Test re-parenting that would close a cycle is rejected."""
    project.add("objective", "A")
    project.add("objective", "B", ObjectivePatch(parent_id="obj-001"))
    project.add("objective", "C", ObjectivePatch(parent_id="obj-002"))
    with pytest.raises(ValidationError, match="cycle"):
        project.update("objective", "obj-001", ObjectivePatch(parent_id="obj-003"))
    assert project.get("objective", "obj-001").parent_id == ""


def test_delete_parent_blocked_by_child(project: Project) -> None:
    """Test an objective with a child cannot be deleted."""
    project.add("objective", "Parent")
    project.add("objective", "Child", ObjectivePatch(parent_id="obj-001"))
    with pytest.raises(CascadeProtectionError, match="referenced by objective obj-002"):
        project.delete("objective", "obj-001")
    project.delete("objective", "obj-002")
    project.delete("objective", "obj-001")


def test_deliverable_requires_objective(project: Project) -> None:
    """Test a deliverable without an objective is rejected."""
    with pytest.raises(ValidationError) as exc_info:
        project.add("deliverable", "Report")
    assert exc_info.value.field == "objective_id"


def test_delete_objective_blocked_by_deliverable(project: Project) -> None:
    """Test an objective a deliverable points at cannot be deleted."""
    project.add("objective", "Launch")
    project.add("deliverable", "Release notes", DeliverablePatch(objective_id="obj-001"))
    with pytest.raises(CascadeProtectionError) as exc_info:
        project.delete("objective", "obj-001")
    assert exc_info.value.referenced_by_type == "deliverable"
    assert exc_info.value.referenced_by_id == "del-001"
    assert "referenced by deliverable del-001" in str(exc_info.value)


def test_deliverable_reference_checked_on_update(project: Project) -> None:
    """Test changing a deliverable's objective checks the new target."""
    project.add("objective", "Launch")
    project.add("deliverable", "Release notes", DeliverablePatch(objective_id="obj-001"))
    with pytest.raises(ReferenceNotFoundError):
        project.update("deliverable", "del-001", DeliverablePatch(objective_id="obj-002"))
