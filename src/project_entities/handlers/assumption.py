"""Assumption handler."""

from project_entities.handler import DirectoryHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Assumption, AssumptionPatch, AssumptionStatus, now


class AssumptionHandler(DirectoryHandler[Assumption, AssumptionPatch]):
    """Assumptions in assumptions/<id>.yaml. Verification time is recorded automatically."""

    entity_type = "assumption"
    entity_class = Assumption
    patch_class = AssumptionPatch
    references = (
        ReferenceField("objective_id", "objective"),
        ReferenceField("deliverable_id", "deliverable"),
    )

    def _derive(self, entity: Assumption) -> None:
        if entity.status is AssumptionStatus.VERIFIED and not entity.verified_at:
            entity.verified_at = now()
        elif entity.status is not AssumptionStatus.VERIFIED:
            entity.verified_at = ""
