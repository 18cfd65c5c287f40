"""Tests for the quality handler."""

from pathlib import Path

import pytest

from project_entities.config import ProjectSettings
from project_entities.errors import CascadeProtectionError, ReferenceNotFoundError, ValidationError
from project_entities.models import (
    GateStatus,
    MetricStatus,
    QualityGate,
    QualityMetric,
    QualityPatch,
)
from project_entities.project import Project


def _coverage() -> list[QualityMetric]:
    return [QualityMetric(id="metric-001", name="Coverage", target=80.0, unit="%", current=65.0)]


def _add_quality(project: Project, objective_id: str = "obj-001") -> str:
    patch = QualityPatch(
        objective_id=objective_id,
        metrics=_coverage(),
        gates=[QualityGate(name="Review done", criteria=["All files reviewed"])],
        reviewer="qa-lead",
    )
    return project.add("quality", "Release quality", patch).id


def test_add_and_get(project: Project) -> None:
    """Test a quality entry is stored under quality/ with a sequential ID."""
    project.add("objective", "Launch")
    quality_id = _add_quality(project)

    assert quality_id == "qual-001"
    assert project.store.exists("quality/qual-001.yaml")
    quality = project.get("quality", quality_id)
    assert quality.objective_id == "obj-001"
    assert quality.metrics[0].status is MetricStatus.IN_PROGRESS
    assert quality.gates[0].status is GateStatus.PENDING


def test_objective_required(project: Project) -> None:
    """Test a quality entry without an objective is rejected."""
    with pytest.raises(ValidationError) as exc_info:
        project.add("quality", "Loose", QualityPatch(metrics=_coverage()))
    assert exc_info.value.field == "objective_id"
    assert project.store.list_dir("quality") == []


def test_objective_must_exist(project: Project) -> None:
    """Test a quality entry pointing at a missing objective is rejected."""
    with pytest.raises(ReferenceNotFoundError) as exc_info:
        _add_quality(project, "obj-009")
    assert exc_info.value.target_id == "obj-009"


def test_metric_required(project: Project) -> None:
    """Test a quality entry needs at least one named metric."""
    project.add("objective", "Launch")
    with pytest.raises(ValidationError) as exc_info:
        project.add("quality", "Empty", QualityPatch(objective_id="obj-001"))
    assert exc_info.value.field == "metrics"
    with pytest.raises(ValidationError):
        project.add("quality", "Nameless", QualityPatch(objective_id="obj-001", metrics=[QualityMetric(id="m")]))


def test_objective_delete_blocked_by_quality(project: Project) -> None:
    """Test an objective with a quality entry cannot be deleted until the entry is gone."""
    project.add("objective", "Launch")
    _add_quality(project)

    with pytest.raises(CascadeProtectionError, match="referenced by quality qual-001"):
        project.delete("objective", "obj-001")

    project.delete("quality", "qual-001")
    project.delete("objective", "obj-001")


def test_update_metric(project: Project) -> None:
    """Test a metric reading is recorded in place."""
    project.add("objective", "Launch")
    quality_id = _add_quality(project)

    project.quality.update_metric(quality_id, "metric-001", 82.5, MetricStatus.MET)

    metric = project.get("quality", quality_id).metrics[0]
    assert metric.current == 82.5
    assert metric.status is MetricStatus.MET
    with pytest.raises(ValidationError, match="metric not found"):
        project.quality.update_metric(quality_id, "metric-404", 1.0, MetricStatus.MET)


def test_update_gate(project: Project) -> None:
    """Test a gate verdict is recorded and unknown gates are rejected."""
    project.add("objective", "Launch")
    quality_id = _add_quality(project)

    project.quality.update_gate(quality_id, "Review done", GateStatus.PASSED)

    assert project.get("quality", quality_id).gates[0].status is GateStatus.PASSED
    with pytest.raises(ValidationError, match="gate not found"):
        project.quality.update_gate(quality_id, "Sign-off", GateStatus.FAILED)


def test_integrity_sweep_reports_dangling_objective(tmp_path: Path) -> None:
    """Test the sweep flags a quality entry whose objective is missing."""
    unchecked = Project(tmp_path, ProjectSettings(integrity_checks=False))
    unchecked.init()
    _add_quality(unchecked, "obj-004")

    result = unchecked.check_integrity()
    assert not result.valid
    assert [(e.source_id, e.field, e.target_id) for e in result.reference_errors] == [
        ("qual-001", "objective_id", "obj-004")
    ]
