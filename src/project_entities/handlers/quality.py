"""Quality handler."""

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import ValidationError
from project_entities.handler import DirectoryHandler
from project_entities.integrity import ReferenceField
from project_entities.models import GateStatus, MetricStatus, Quality, QualityPatch, now
from project_entities.security import validate_id

logger = structlog.get_logger()


class QualityHandler(DirectoryHandler[Quality, QualityPatch]):
    """Quality standards in quality/<id>.yaml.

    Each entry belongs to an objective and tracks at least one metric.
    Metric readings and gate verdicts change through ``update_metric`` and
    ``update_gate`` without replacing the whole list.
    """

    entity_type = "quality"
    entity_class = Quality
    patch_class = QualityPatch
    references = (ReferenceField("objective_id", "objective", required=True),)

    def _validate(self, entity: Quality) -> None:
        if not entity.metrics:
            raise ValidationError("metrics", "at least one metric is required")
        for metric in entity.metrics:
            if not metric.name:
                raise ValidationError("metrics", "every metric needs a name")
        metric_ids = [metric.id for metric in entity.metrics if metric.id]
        if len(metric_ids) != len(set(metric_ids)):
            raise ValidationError("metrics", "metric IDs must be unique")
        for gate in entity.gates:
            if not gate.name:
                raise ValidationError("gates", "every gate needs a name")

    def update_metric(
        self,
        quality_id: str,
        metric_id: str,
        current: float,
        status: MetricStatus,
        *,
        cancel: Cancel = None,
    ) -> Quality:
        """Record a new reading for one metric.

        Raises:
            EntityNotFoundError: If the quality entry does not exist
            ValidationError: If no metric has the given ID
        """
        check_cancelled(cancel)
        validate_id(self.entity_type, quality_id)
        status = MetricStatus(status)

        with self._write_guard():
            quality = self._load(quality_id, cancel)
            metric = next((m for m in quality.metrics if m.id == metric_id), None)
            if metric is None:
                raise ValidationError("metric_id", f"metric not found: {metric_id}")
            metric.current = float(current)
            metric.status = status
            quality.metadata.updated_at = now()
            check_cancelled(cancel)
            self._replace(quality, cancel)

        logger.info("Quality metric updated", quality_id=quality_id, metric_id=metric_id, status=status.value)
        return quality

    def update_gate(self, quality_id: str, gate_name: str, status: GateStatus, *, cancel: Cancel = None) -> Quality:
        check_cancelled(cancel)
        validate_id(self.entity_type, quality_id)
        status = GateStatus(status)

        with self._write_guard():
            quality = self._load(quality_id, cancel)
            gate = next((g for g in quality.gates if g.name == gate_name), None)
            if gate is None:
                raise ValidationError("gate", f"gate not found: {gate_name}")
            gate.status = status
            quality.metadata.updated_at = now()
            check_cancelled(cancel)
            self._replace(quality, cancel)

        logger.info("Quality gate updated", quality_id=quality_id, gate=gate_name, status=status.value)
        return quality
