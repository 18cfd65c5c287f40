"""Consideration handler."""

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import ValidationError
from project_entities.handler import DirectoryHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Consideration, ConsiderationPatch, ConsiderationStatus, now

logger = structlog.get_logger()


class ConsiderationHandler(DirectoryHandler[Consideration, ConsiderationPatch]):
    """Considerations in considerations/<id>.yaml.

    A consideration becomes ``decided`` only through ``set_decision``, which
    the decision handler calls when a decision is created.
    """

    entity_type = "consideration"
    entity_class = Consideration
    patch_class = ConsiderationPatch
    references = (ReferenceField("objective_id", "objective"),)

    def _validate(self, entity: Consideration) -> None:
        if entity.status is ConsiderationStatus.DECIDED and not entity.decision_id:
            raise ValidationError("status", "decided requires a decision")
        if entity.decision_id and entity.status is not ConsiderationStatus.DECIDED:
            raise ValidationError("status", f"consideration is decided by {entity.decision_id}")

    def set_decision(self, consideration_id: str, decision_id: str, *, cancel: Cancel = None) -> Consideration:
        """Mark a consideration as decided by a decision.

        Raises:
            EntityNotFoundError: If the consideration does not exist
            ValidationError: If it is already decided
        """
        check_cancelled(cancel)
        consideration = self.get(consideration_id, cancel=cancel)
        if consideration.status is ConsiderationStatus.DECIDED:
            raise ValidationError(
                "consideration_id",
                f"consideration {consideration_id} is already decided by {consideration.decision_id}",
            )

        consideration.status = ConsiderationStatus.DECIDED
        consideration.decision_id = decision_id
        consideration.metadata.updated_at = now()
        check_cancelled(cancel)
        self._replace(consideration, cancel)
        logger.info("Consideration decided", consideration_id=consideration_id, decision_id=decision_id)
        return consideration
