"""Shared fixtures for project-entities tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from project_entities.config import ProjectSettings
from project_entities.project import Project
from project_entities.storage import FileStore


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    """A file store rooted in a temporary directory."""
    return FileStore(tmp_path / ".entities")


@pytest.fixture
def project(tmp_path: Path) -> Project:
    """An initialized project with default settings."""
    project = Project(tmp_path, ProjectSettings())
    project.init()
    return project


@pytest.fixture
def disk_snapshot() -> Callable[[Path], dict[str, bytes]]:
    """Return a function capturing every file below a directory, lock sidecars excluded."""

    def snapshot(root: Path) -> dict[str, bytes]:
        return {
            str(path.relative_to(root)): path.read_bytes()
            for path in sorted(root.rglob("*"))
            if path.is_file() and not path.name.endswith(".lock")
        }

    return snapshot
