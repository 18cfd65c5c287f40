"""Tests for the project facade."""

from pathlib import Path

import pytest

from project_entities.config import ProjectSettings
from project_entities.errors import EntityNotFoundError, UnknownEntityTypeError
from project_entities.id_counter import COUNTERS_FILE
from project_entities.models import (
    ApprovalStatus,
    ObjectivePatch,
    ObjectiveStatus,
    RiskImpact,
    RiskPatch,
    RiskProbability,
    RiskScore,
)
from project_entities.project import Project


def test_init_creates_layout(tmp_path: Path) -> None:
    """Test init creates the store directories and is idempotent."""
    project = Project(tmp_path)
    store = project.init()

    assert store == tmp_path / ".entities"
    for directory in ("objectives", "deliverables", "quality", "risks", "approvals/pending", "approvals/approved"):
        assert (store / directory).is_dir()
    assert project.init() == store


def test_init_aligns_counters_with_files(tmp_path: Path) -> None:
    """Test init raises counters past IDs already on disk."""
    project = Project(tmp_path)
    project.store.write_yaml("objectives/obj-005.yaml", {"id": "obj-005", "title": "Imported"})
    project.store.write_yaml("constraints.yaml", {"constraints": [{"id": "const-002", "title": "Budget"}]})
    project.init()

    assert project.store.read_yaml(COUNTERS_FILE)["counters"] == {"objective": 5, "constraint": 2}
    assert project.add("objective", "Next").id == "obj-006"
    assert project.add("constraint", "Next").id == "const-003"


def test_init_skips_unreadable_types(tmp_path: Path) -> None:
    """Test a corrupt file does not stop counter initialization for other types."""
    project = Project(tmp_path)
    project.store.write_yaml("problems/prob-001.yaml", ["not", "a", "mapping"])
    project.store.write_yaml("objectives/obj-002.yaml", {"id": "obj-002", "title": "Kept"})
    project.init()
    assert project.counter.get_current_id("objective") == 2
    assert project.counter.get_current_id("problem") == 0


def test_unknown_type(project: Project) -> None:
    """Test unknown entity types are rejected."""
    with pytest.raises(UnknownEntityTypeError):
        project.add("epic", "Too big")


def test_strict_mode_queues_creation(tmp_path: Path) -> None:
    """Test strict mode queues a creation until it is approved."""
    project = Project(tmp_path, ProjectSettings(approval_mode="strict"))
    project.init()

    result = project.add("objective", "Launch", ObjectivePatch(description="v1", status=ObjectiveStatus.IN_PROGRESS))
    assert result.needs_approval
    assert result.approval_id
    assert result.id == ""
    assert project.list("objective").total == 0

    pending = project.pending()
    assert [p.id for p in pending] == [result.approval_id]
    assert pending[0].payload["fields"] == {"description": "v1", "status": "in_progress"}

    approved = project.approve(result.approval_id)
    assert approved.approval.status is ApprovalStatus.APPROVED
    assert approved.entity_id == "obj-001"
    objective = project.get("objective", "obj-001")
    assert objective.title == "Launch"
    assert objective.description == "v1"
    assert objective.status is ObjectiveStatus.IN_PROGRESS
    assert project.pending() == []


def test_rejected_creation_creates_nothing(tmp_path: Path) -> None:
    """Test a rejected creation never reaches the store."""
    project = Project(tmp_path, ProjectSettings(approval_mode="strict"))
    project.init()

    result = project.add("objective", "Launch")
    rejected = project.reject(result.approval_id, "not now")
    assert rejected.approval.status is ApprovalStatus.REJECTED
    assert rejected.entity_id is None
    with pytest.raises(EntityNotFoundError):
        project.get("objective", "obj-001")


def test_auto_automation_bypasses_approval(tmp_path: Path) -> None:
    """Test automation level auto creates directly even in strict mode."""
    project = Project(tmp_path, ProjectSettings(approval_mode="strict", automation_level="auto"))
    project.init()
    result = project.add("objective", "Launch")
    assert not result.needs_approval
    assert result.id == "obj-001"
    assert project.pending() == []


def test_approving_non_creation(project: Project) -> None:
    """Test approving a suggestion resolves it without creating anything."""
    approval = project.approvals.create("suggestion", "Split objective", "approve")
    result = project.approve(approval.id)
    assert result.entity_id is None
    assert result.approval.status is ApprovalStatus.APPROVED


def test_risk_scenario(project: Project) -> None:
    """Test adding a risk through the project derives its score."""
    result = project.add(
        "risk", "Key engineer leaves", RiskPatch(probability=RiskProbability.LOW, impact=RiskImpact.CRITICAL)
    )
    assert project.get("risk", result.id).risk_score is RiskScore.HIGH
    assert project.list("risk").total == 1
