"""Vision handler: the single project vision in vision.yaml."""

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import EntityNotFoundError, ImmutabilityError
from project_entities.handler import SingletonHandler
from project_entities.models import AddResult, Vision, VisionPatch

logger = structlog.get_logger()


class VisionHandler(SingletonHandler[Vision, VisionPatch]):
    """Stores the vision. Adding replaces it; it can never be deleted."""

    entity_type = "vision"
    entity_class = Vision
    patch_class = VisionPatch

    def add(self, title: str, fields: VisionPatch | None = None, *, cancel: Cancel = None) -> AddResult:
        """Create the vision, or replace it while keeping its creation time."""
        check_cancelled(cancel)
        patch = fields if fields is not None else VisionPatch()
        vision = self._new_entity(self.singleton_id, self.sanitizer.sanitize_string("title", title))
        self._apply_patch(vision, patch)
        self._validate_common(vision)

        try:
            existing = self._load(self.singleton_id, cancel)
        except EntityNotFoundError:
            existing = None
        if existing is not None:
            vision.metadata.created_at = existing.metadata.created_at

        check_cancelled(cancel)
        self._replace(vision, cancel)
        logger.info("Saved vision", replaced=existing is not None)
        return AddResult(success=True, id=vision.id, entity=self.entity_type)

    def delete(self, entity_id: str, *, cancel: Cancel = None) -> None:
        check_cancelled(cancel)
        raise ImmutabilityError(self.entity_type, entity_id, "delete")
