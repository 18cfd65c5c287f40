"""Objective handler."""

from project_entities.cancellation import Cancel
from project_entities.handler import DirectoryHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Objective, ObjectivePatch


class ObjectiveHandler(DirectoryHandler[Objective, ObjectivePatch]):
    """Objectives in objectives/<id>.yaml, optionally nested under a parent."""

    entity_type = "objective"
    entity_class = Objective
    patch_class = ObjectivePatch
    references = (ReferenceField("parent_id", "objective"),)

    def _check_references(self, entity: Objective, previous: Objective | None, cancel: Cancel) -> None:
        super()._check_references(entity, previous, cancel)
        if previous is not None and entity.parent_id != previous.parent_id:
            self._check_parent_chain(entity, cancel)
