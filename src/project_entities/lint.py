"""Self-consistency checks over the raw YAML store.

Lint reads files directly instead of going through handlers, so it can
report records that handlers would refuse to load. It never blocks reads.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import ValidationError
from project_entities.handler import EntityHandler, EntityRegistry
from project_entities.locking import DEFAULT_LOCK_TIMEOUT, lock_with_timeout
from project_entities.models import (
    ConsiderationStatus,
    Metadata,
    RiskImpact,
    RiskProbability,
    calculate_risk_score,
    field_names,
    from_dict,
)
from project_entities.security import YAML_SUFFIX, StorageKind, validate_id
from project_entities.storage import FileStore

logger = structlog.get_logger()

NOT_A_MAPPING = "expected a mapping"

# Status a record with progress == 100 is expected to carry
COMPLETED_STATUS = {
    "objective": "completed",
    "deliverable": "delivered",
    "task": "completed",
}


@dataclass
class LintError:
    entity_type: str
    entity_id: str
    field: str
    message: str
    file: str = ""

    def __str__(self) -> str:
        return f"[{self.entity_type}] {self.entity_id}.{self.field}: {self.message}"


@dataclass
class LintWarning:
    entity_type: str
    entity_id: str
    field: str
    message: str
    file: str = ""
    suggested: Any = None
    fixable: bool = False

    def __str__(self) -> str:
        text = f"[{self.entity_type}] {self.entity_id}.{self.field}: {self.message}"
        if self.fixable:
            text += f" (suggested: {self.suggested})"
        return text


@dataclass
class LintResult:
    valid: bool = True
    errors: list[LintError] = field(default_factory=list)
    warnings: list[LintWarning] = field(default_factory=list)


@dataclass
class _Record:
    path: str
    data: dict[str, Any]
    filename_id: str | None = None
    error: str = ""


def derived_field_drift(entity_type: str, record: dict[str, Any]) -> list[tuple[str, str, Any]]:
    """Find derived fields that disagree with the fields they derive from.

    Returns:
        (field, message, corrected value) for each drifting field
    """
    drift = []

    if entity_type == "risk":
        try:
            expected = calculate_risk_score(
                RiskProbability(record.get("probability", "medium")),
                RiskImpact(record.get("impact", "medium")),
            ).value
        except ValueError:
            expected = None
        if expected is not None and record.get("risk_score") != expected:
            drift.append(("risk_score", "risk score does not match probability and impact", expected))

    completed = COMPLETED_STATUS.get(entity_type)
    if completed and record.get("progress") == 100 and record.get("status") != completed:
        drift.append(("status", f"progress is 100 but status is not {completed}", completed))

    if entity_type == "consideration":
        decided = record.get("status") == ConsiderationStatus.DECIDED.value
        if decided and not record.get("decision_id"):
            drift.append(("status", "decided without a decision_id", ConsiderationStatus.OPEN.value))
        elif record.get("decision_id") and not decided:
            drift.append(("status", "decision_id is set but status is not decided", ConsiderationStatus.DECIDED.value))

    return drift


class LintChecker:
    """Checks ID formats, unknown fields and derived-field drift."""

    def __init__(self, store: FileStore, registry: EntityRegistry, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.store = store
        self.registry = registry
        self.lock_timeout = lock_timeout

    def _records(self, handler: EntityHandler, cancel: Cancel) -> Iterator[_Record]:
        spec = handler.spec
        if spec.storage is StorageKind.DIRECTORY:
            for name in self.store.list_dir(spec.location, cancel=cancel):
                if not name.endswith(YAML_SUFFIX):
                    continue
                path = f"{spec.location}/{name}"
                try:
                    data = self.store.read_yaml(path, cancel=cancel)
                except ValueError as e:
                    yield _Record(path, {}, name.removesuffix(YAML_SUFFIX), error=str(e))
                    continue
                if data is not None and not isinstance(data, dict):
                    yield _Record(path, {}, name.removesuffix(YAML_SUFFIX), error=NOT_A_MAPPING)
                    continue
                yield _Record(path, data or {}, name.removesuffix(YAML_SUFFIX))
            return

        if not self.store.exists(spec.location, cancel=cancel):
            return
        try:
            data = self.store.read_yaml(spec.location, cancel=cancel) or {}
        except ValueError as e:
            yield _Record(spec.location, {}, error=str(e))
            return
        if not isinstance(data, dict):
            yield _Record(spec.location, {}, error=NOT_A_MAPPING)
            return
        if spec.storage is StorageKind.SINGLETON:
            yield _Record(spec.location, data)
            return

        key = spec.location.removesuffix(YAML_SUFFIX)
        records = data.get(key) or []
        if not isinstance(records, list):
            yield _Record(spec.location, {}, error=f"expected a list under {key!r}")
            return
        for record in records:
            if not isinstance(record, dict):
                yield _Record(spec.location, {}, error=NOT_A_MAPPING)
                continue
            yield _Record(spec.location, record)

    def check_all(self, *, cancel: Cancel = None) -> LintResult:
        """Lint every registered type.

        Returns:
            LintResult; ``valid`` is False when any error was found
        """
        check_cancelled(cancel)
        result = LintResult()
        for entity_type in self.registry.types():
            handler = self.registry.get(entity_type)
            for record in self._records(handler, cancel):
                self._check_record(handler, record, result)

        result.valid = not result.errors
        logger.info("Lint completed", valid=result.valid, errors=len(result.errors), warnings=len(result.warnings))
        return result

    def _check_record(self, handler: EntityHandler, record: _Record, result: LintResult) -> None:
        entity_type = handler.entity_type
        if record.error:
            result.errors.append(LintError(entity_type, record.filename_id or "", "file", record.error, record.path))
            return
        data = record.data
        entity_id = str(data.get("id", ""))

        try:
            validate_id(entity_type, entity_id)
        except ValidationError:
            result.errors.append(
                LintError(
                    entity_type,
                    entity_id,
                    "id",
                    f"invalid ID format (expected: {handler.spec.expected_format})",
                    record.path,
                )
            )
        if record.filename_id is not None and record.filename_id != entity_id:
            result.errors.append(
                LintError(entity_type, entity_id, "id", f"file name {record.filename_id} does not match ID", record.path)
            )

        for key in sorted(set(data) - field_names(handler.entity_class)):
            result.warnings.append(LintWarning(entity_type, entity_id, key, "unknown field", record.path))
        metadata = data.get("metadata")
        if isinstance(metadata, dict):
            for key in sorted(set(metadata) - field_names(Metadata)):
                result.warnings.append(LintWarning(entity_type, entity_id, f"metadata.{key}", "unknown field", record.path))

        try:
            from_dict(handler.entity_class, data)
        except ValidationError as e:
            result.errors.append(LintError(entity_type, entity_id, e.field, e.message, record.path))

        for field_name, message, suggested in derived_field_drift(entity_type, data):
            result.warnings.append(
                LintWarning(entity_type, entity_id, field_name, message, record.path, suggested=suggested, fixable=True)
            )

    def fix(self, *, cancel: Cancel = None) -> int:
        """Rewrite records whose derived fields drifted.

        Returns:
            Number of records changed
        """
        check_cancelled(cancel)
        fixed = 0
        for entity_type in self.registry.types():
            handler = self.registry.get(entity_type)
            spec = handler.spec
            if spec.storage is StorageKind.DIRECTORY:
                for record in list(self._records(handler, cancel)):
                    if not record.error and record.data and _apply_fixes(entity_type, record.data):
                        check_cancelled(cancel)
                        self.store.write_yaml(record.path, record.data, cancel=cancel)
                        fixed += 1
            elif spec.storage is StorageKind.COLLECTION:
                fixed += self._fix_collection(handler, cancel)
            else:
                for record in list(self._records(handler, cancel)):
                    if not record.error and record.data and _apply_fixes(entity_type, record.data):
                        self.store.write_yaml(record.path, record.data, cancel=cancel)
                        fixed += 1

        logger.info("Lint fixes applied", fixed=fixed)
        return fixed

    def _fix_collection(self, handler: EntityHandler, cancel: Cancel) -> int:
        spec = handler.spec
        with lock_with_timeout(self.store.resolve(spec.location), self.lock_timeout):
            if not self.store.exists(spec.location, cancel=cancel):
                return 0
            try:
                data = self.store.read_yaml(spec.location, cancel=cancel) or {}
            except ValueError:
                return 0
            if not isinstance(data, dict):
                logger.warning("Skipping malformed collection file", path=spec.location)
                return 0
            key = spec.location.removesuffix(YAML_SUFFIX)
            records = data.get(key) or []
            if not isinstance(records, list):
                logger.warning("Skipping malformed collection file", path=spec.location)
                return 0
            fixed = sum(1 for record in records if isinstance(record, dict) and _apply_fixes(spec.name, record))
            if fixed:
                check_cancelled(cancel)
                self.store.write_yaml(spec.location, data, cancel=cancel)
            return fixed


def _apply_fixes(entity_type: str, record: dict[str, Any]) -> bool:
    changed = False
    for field_name, _, suggested in derived_field_drift(entity_type, record):
        record[field_name] = suggested
        changed = True
    return changed
