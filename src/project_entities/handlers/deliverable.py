"""Deliverable handler."""

from project_entities.handler import DirectoryHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Deliverable, DeliverablePatch


class DeliverableHandler(DirectoryHandler[Deliverable, DeliverablePatch]):
    """Deliverables in deliverables/<id>.yaml. Every deliverable belongs to an objective."""

    entity_type = "deliverable"
    entity_class = Deliverable
    patch_class = DeliverablePatch
    references = (ReferenceField("objective_id", "objective", required=True),)
