"""Constraint handler."""

from project_entities.handler import CollectionHandler
from project_entities.models import Constraint, ConstraintPatch


class ConstraintHandler(CollectionHandler[Constraint, ConstraintPatch]):
    """Constraints stored together in constraints.yaml."""

    entity_type = "constraint"
    entity_class = Constraint
    patch_class = ConstraintPatch
