"""project-entities - typed project-management entities stored as YAML files."""

from project_entities.config import ProjectSettings
from project_entities.project import Project

__version__ = "0.1.0"

__all__ = ["Project", "ProjectSettings"]
