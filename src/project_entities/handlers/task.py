"""Task handler."""

from project_entities.cancellation import Cancel
from project_entities.errors import ValidationError
from project_entities.handler import CollectionHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Task, TaskPatch


class TaskHandler(CollectionHandler[Task, TaskPatch]):
    """Tasks stored together in tasks.yaml, with parents and dependencies."""

    entity_type = "task"
    entity_class = Task
    patch_class = TaskPatch
    references = (
        ReferenceField("parent_id", "task"),
        ReferenceField("deliverable_id", "deliverable"),
        ReferenceField("dependencies", "task", many=True),
    )

    def _validate(self, entity: Task) -> None:
        if len(set(entity.dependencies)) != len(entity.dependencies):
            raise ValidationError("dependencies", "contains duplicates")
        for name in ("estimate_hours", "actual_hours"):
            if getattr(entity, name) < 0:
                raise ValidationError(name, "cannot be negative")

    def _check_references(self, entity: Task, previous: Task | None, cancel: Cancel) -> None:
        super()._check_references(entity, previous, cancel)
        if previous is not None and entity.parent_id != previous.parent_id:
            self._check_parent_chain(entity, cancel)
