"""Tests for CLI helpers."""

from unittest.mock import patch

import pytest

from project_entities import quality_commands
from project_entities.cli import parse_fields
from project_entities.errors import ValidationError
from project_entities.models import (
    ConstraintPatch,
    GateStatus,
    MetricStatus,
    ObjectivePatch,
    ObjectiveStatus,
    QualityMetric,
    QualityPatch,
    TaskPatch,
)
from project_entities.project import Project


def test_parse_fields() -> None:
    """Test key=value pairs become a typed patch."""
    patch_ = parse_fields(ObjectivePatch, "description=First release,progress=40,status=in_progress")
    assert patch_ == ObjectivePatch(description="First release", progress=40, status=ObjectiveStatus.IN_PROGRESS)


def test_parse_list_float_and_bool() -> None:
    """Test lists, floats and booleans are converted."""
    task = parse_fields(TaskPatch, "dependencies=task-00000001;task-00000002,estimate_hours=2.5,tags=a;b")
    assert task.dependencies == ["task-00000001", "task-00000002"]
    assert task.estimate_hours == 2.5
    assert task.tags == ["a", "b"]
    assert parse_fields(ConstraintPatch, "non_negotiable=yes").non_negotiable is True


def test_parse_fields_errors() -> None:
    """Test unknown keys, missing separators and bad enum values are rejected."""
    with pytest.raises(ValueError, match="Unknown field"):
        parse_fields(ObjectivePatch, "colour=red")
    with pytest.raises(ValueError, match="expected key=value"):
        parse_fields(ObjectivePatch, "description")
    with pytest.raises(ValidationError):
        parse_fields(ObjectivePatch, "status=finished")


def test_parse_nested_records() -> None:
    """Test nested list items are parsed from key:value pairs."""
    patch_ = parse_fields(
        QualityPatch,
        "objective_id=obj-001,metrics=id:m1|name:Coverage|target:80|unit:%;name:Latency|target:200,gates=name:Review",
    )
    assert [m.name for m in patch_.metrics] == ["Coverage", "Latency"]
    assert patch_.metrics[0] == QualityMetric(id="m1", name="Coverage", target=80.0, unit="%")
    assert patch_.gates[0].name == "Review"
    with pytest.raises(ValueError, match="Unknown field"):
        parse_fields(QualityPatch, "metrics=name:Coverage|weight:2")


def test_quality_commands(project: Project, capsys: pytest.CaptureFixture[str]) -> None:
    """Test the quality sub-app records metric readings and gate verdicts."""
    project.add("objective", "Launch")
    patch_ = parse_fields(QualityPatch, "objective_id=obj-001,metrics=id:cov|name:Coverage|target:80,gates=name:Review")
    quality_id = project.add("quality", "Release quality", patch_).id

    with patch("project_entities.cli.get_project", return_value=project):
        quality_commands.metric(quality_id, "cov", 85.0, MetricStatus.MET)
        quality_commands.gate(quality_id, "Review", GateStatus.PASSED)

    assert "Gate 'Review' of qual-001 is passed" in capsys.readouterr().out
    quality = project.get("quality", quality_id)
    assert (quality.metrics[0].current, quality.metrics[0].status) == (85.0, MetricStatus.MET)
    assert quality.gates[0].status is GateStatus.PASSED
