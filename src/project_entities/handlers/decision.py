"""Decision handler."""

import structlog

from project_entities.cancellation import Cancel
from project_entities.handler import DirectoryHandler
from project_entities.handlers.consideration import ConsiderationHandler
from project_entities.integrity import ReferenceField
from project_entities.models import Decision, DecisionPatch

logger = structlog.get_logger()


class DecisionHandler(DirectoryHandler[Decision, DecisionPatch]):
    """Decisions in decisions/<id>.yaml. Immutable once written.

    Creating a decision marks its consideration as decided. If that fails,
    the decision file is removed again.
    """

    entity_type = "decision"
    entity_class = Decision
    patch_class = DecisionPatch
    references = (ReferenceField("consideration_id", "consideration", required=True),)
    immutable = True

    def __init__(self, *args, consideration_handler: ConsiderationHandler | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.consideration_handler = consideration_handler

    def _new_entity(self, entity_id: str, title: str) -> Decision:
        decision = super()._new_entity(entity_id, title)
        decision.decided_at = decision.metadata.created_at
        return decision

    def _after_create(self, entity: Decision, cancel: Cancel) -> None:
        if self.consideration_handler is None:
            return
        try:
            self.consideration_handler.set_decision(entity.consideration_id, entity.id, cancel=cancel)
        except BaseException as e:
            logger.error(
                "Failed to update consideration, rolling back decision",
                decision_id=entity.id,
                consideration_id=entity.consideration_id,
                error=str(e),
            )
            try:
                self._remove(entity.id, None)
            except Exception as rollback_error:
                logger.error("Failed to roll back decision", decision_id=entity.id, error=str(rollback_error))
            raise
