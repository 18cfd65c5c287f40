"""Problem handler."""

from project_entities.handler import DirectoryHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Problem, ProblemPatch


class ProblemHandler(DirectoryHandler[Problem, ProblemPatch]):
    entity_type = "problem"
    entity_class = Problem
    patch_class = ProblemPatch
    references = (
        ReferenceField("objective_id", "objective"),
        ReferenceField("deliverable_id", "deliverable"),
    )
