"""Risk handler."""

from project_entities.handler import DirectoryHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Risk, RiskPatch, calculate_risk_score


class RiskHandler(DirectoryHandler[Risk, RiskPatch]):
    """Risks in risks/<id>.yaml with a score derived from probability and impact."""

    entity_type = "risk"
    entity_class = Risk
    patch_class = RiskPatch
    references = (
        ReferenceField("objective_id", "objective"),
        ReferenceField("deliverable_id", "deliverable"),
    )

    def _derive(self, entity: Risk) -> None:
        entity.risk_score = calculate_risk_score(entity.probability, entity.impact)
