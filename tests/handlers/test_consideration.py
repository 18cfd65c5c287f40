"""Tests for the consideration handler."""

import pytest

from project_entities.errors import EntityNotFoundError, ValidationError
from project_entities.models import (
    ConsiderationOption,
    ConsiderationPatch,
    ConsiderationStatus,
    ObjectivePatch,
)
from project_entities.project import Project


def test_options_round_trip(project: Project) -> None:
    """Test nested options are stored and read back."""
    options = [
        ConsiderationOption(id="opt-1", title="Postgres", pros=["mature"], cons=["ops"]),
        ConsiderationOption(id="opt-2", title="SQLite"),
    ]
    project.add("consideration", "Which database?", ConsiderationPatch(options=options))
    consideration = project.get("consideration", "con-001")
    assert consideration.options[0].pros == ["mature"]
    assert consideration.options[1].title == "SQLite"


def test_decided_status_requires_decision(project: Project) -> None:
    """Test a consideration cannot be marked decided by a patch."""
    project.add("consideration", "Which database?")
    with pytest.raises(ValidationError) as exc_info:
        project.update("consideration", "con-001", ConsiderationPatch(status=ConsiderationStatus.DECIDED))
    assert exc_info.value.field == "status"


def test_set_decision(project: Project) -> None:
    """Test recording a decision, and that it only happens once."""
    project.add("consideration", "Which database?")
    handler = project.handler("consideration")

    consideration = handler.set_decision("con-001", "dec-001")
    assert consideration.status is ConsiderationStatus.DECIDED
    with pytest.raises(ValidationError):
        handler.set_decision("con-001", "dec-002")
    with pytest.raises(EntityNotFoundError):
        handler.set_decision("con-002", "dec-003")


def test_decided_consideration_cannot_be_reopened(project: Project) -> None:
    """Test a decided consideration keeps its status."""
    project.add("consideration", "Which database?")
    project.handler("consideration").set_decision("con-001", "dec-001")
    with pytest.raises(ValidationError):
        project.update("consideration", "con-001", ConsiderationPatch(status=ConsiderationStatus.OPEN))


def test_objective_reference(project: Project) -> None:
    """Test a consideration can point at an objective."""
    project.add("objective", "Launch", ObjectivePatch())
    project.add("consideration", "Hosting?", ConsiderationPatch(objective_id="obj-001"))
    assert project.get("consideration", "con-001").objective_id == "obj-001"
