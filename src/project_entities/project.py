"""Project facade wiring the store, handlers and approval workflow together."""

import os
import re
from pathlib import Path
from typing import Any

import structlog

from project_entities.approval import OUTCOME_DIRS, PENDING_DIR, ApprovalManager, determine_approval_level
from project_entities.cancellation import Cancel, check_cancelled
from project_entities.config import STORE_DIR_NAME, ProjectSettings
from project_entities.handler import EntityHandler, EntityRegistry
from project_entities.handlers import (
    ActorHandler,
    AssumptionHandler,
    ConsiderationHandler,
    ConstraintHandler,
    DecisionHandler,
    DeliverableHandler,
    ObjectiveHandler,
    ProblemHandler,
    QualityHandler,
    RiskHandler,
    TaskHandler,
    VisionHandler,
)
from project_entities.id_counter import IDCounterManager
from project_entities.integrity import (
    IntegrityChecker,
    IntegrityResult,
    NullReferenceChecker,
    ReferenceChecker,
    RegistryReferenceChecker,
)
from project_entities.lint import LintChecker, LintResult
from project_entities.models import (
    AddResult,
    ApprovalLevel,
    ApprovalResult,
    ListFilter,
    ListResult,
    PendingApproval,
    from_dict,
    to_dict,
)
from project_entities.sanitizer import Sanitizer
from project_entities.security import IDScheme, StorageKind
from project_entities.storage import FileStore

logger = structlog.get_logger()

CREATE_ACTION = "task_create"


class Project:
    """All entity operations for one project root.

    Every component is built once here and scoped to this project's store;
    nothing is shared between Project instances.
    """

    def __init__(self, root: str | Path = ".", settings: ProjectSettings | None = None) -> None:
        """Initialize a project.

        Args:
            root: Project root; the store lives in ``<root>/.entities``
            settings: Behaviour settings, defaults when omitted
        """
        self.root = Path(os.path.abspath(os.fspath(root)))
        self.settings = settings or ProjectSettings()
        self.store_path = self.root / STORE_DIR_NAME
        self.store = FileStore(self.store_path)
        self.counter = IDCounterManager(self.store, self.settings.lock_timeout)
        self.registry = EntityRegistry()

        self.checker: ReferenceChecker
        if self.settings.integrity_checks:
            self.checker = RegistryReferenceChecker(self.registry)
        else:
            logger.warning("Integrity checks disabled", root=str(self.root))
            self.checker = NullReferenceChecker()

        common: dict[str, Any] = {
            "counter": self.counter,
            "checker": self.checker,
            "sanitizer": Sanitizer(),
            "lock_timeout": self.settings.lock_timeout,
        }
        considerations = ConsiderationHandler(self.store, **common)
        for handler in (
            VisionHandler(self.store, **common),
            ObjectiveHandler(self.store, **common),
            DeliverableHandler(self.store, **common),
            QualityHandler(self.store, **common),
            considerations,
            DecisionHandler(self.store, consideration_handler=considerations, **common),
            RiskHandler(self.store, **common),
            ProblemHandler(self.store, **common),
            AssumptionHandler(self.store, **common),
            ConstraintHandler(self.store, **common),
            ActorHandler(self.store, **common),
            TaskHandler(self.store, **common),
        ):
            self.registry.register(handler)

        self.approvals = ApprovalManager(self.store, self.settings.lock_timeout)
        self.linter = LintChecker(self.store, self.registry, self.settings.lock_timeout)
        self.integrity = IntegrityChecker(self.registry)

    def handler(self, entity_type: str) -> EntityHandler:
        return self.registry.get(entity_type)

    @property
    def quality(self) -> QualityHandler:
        return self.registry.get("quality")

    def init(self, *, cancel: Cancel = None) -> Path:
        """Create the store layout and align ID counters with existing files.

        Safe to run on an existing store.

        Returns:
            Path of the store directory
        """
        check_cancelled(cancel)
        logger.info("Initializing project store", store=str(self.store_path))
        self.store_path.mkdir(parents=True, exist_ok=True)

        specs = [self.handler(name).spec for name in self.registry.types()]
        directories = [spec.location for spec in specs if spec.storage is StorageKind.DIRECTORY]
        directories += [PENDING_DIR, *OUTCOME_DIRS.values()]
        for directory in directories:
            self.store.ensure_dir(directory, cancel=cancel)

        sequential = [name for name in self.registry.types() if self.handler(name).spec.scheme is IDScheme.SEQUENTIAL]
        self.counter.initialize_all_from_scanner(self._max_sequential_id, sequential, cancel=cancel)
        return self.store_path

    def _max_sequential_id(self, entity_type: str, *, cancel: Cancel = None) -> int:
        """Highest sequence number among stored IDs of a type."""
        handler = self.handler(entity_type)
        pattern = re.compile(rf"^{re.escape(handler.spec.prefix)}-(\d+)$")
        highest = 0
        for entity in handler.all(cancel=cancel):
            match = pattern.fullmatch(entity.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def add(self, entity_type: str, title: str, fields: Any = None, *, cancel: Cancel = None) -> AddResult:
        """Create an entity, or queue it for approval when the policy demands it.

        Args:
            entity_type: Registered type name
            title: Entity title
            fields: Optional patch of the type's patch class
            cancel: Optional cancellation signal

        Returns:
            AddResult; ``needs_approval`` is set when the entity was queued instead
        """
        check_cancelled(cancel)
        handler = self.handler(entity_type)

        if self.settings.automation_level == ApprovalLevel.AUTO.value:
            return handler.add(title, fields, cancel=cancel)

        level = determine_approval_level(CREATE_ACTION, self.settings.approval_mode)
        if level is ApprovalLevel.APPROVE:
            payload: dict[str, Any] = {"entity": entity_type, "name": title}
            if fields is not None:
                payload["fields"] = {k: v for k, v in to_dict(fields).items() if v is not None}
            approval = self.approvals.create(
                CREATE_ACTION,
                f"add {entity_type} '{title}'",
                level,
                payload=payload,
                cancel=cancel,
            )
            logger.info("Entity creation queued for approval", entity_type=entity_type, approval_id=approval.id)
            return AddResult(success=True, id="", entity=entity_type, needs_approval=True, approval_id=approval.id)

        result = handler.add(title, fields, cancel=cancel)
        if level is ApprovalLevel.NOTIFY:
            logger.warning("Entity created with notification", entity_type=entity_type, entity_id=result.id)
        return result

    def pending(self, *, cancel: Cancel = None) -> list[PendingApproval]:
        return self.approvals.get_pending(cancel=cancel)

    def get(self, entity_type: str, entity_id: str, *, cancel: Cancel = None) -> Any:
        return self.handler(entity_type).get(entity_id, cancel=cancel)

    def list(self, entity_type: str, filter: ListFilter | None = None, *, cancel: Cancel = None) -> ListResult:
        return self.handler(entity_type).list(filter, cancel=cancel)

    def update(self, entity_type: str, entity_id: str, patch: Any, *, cancel: Cancel = None) -> Any:
        return self.handler(entity_type).update(entity_id, patch, cancel=cancel)

    def delete(self, entity_type: str, entity_id: str, *, cancel: Cancel = None) -> None:
        self.handler(entity_type).delete(entity_id, cancel=cancel)

    def approve(self, approval_id: str, *, cancel: Cancel = None) -> ApprovalResult:
        """Approve a pending approval and carry out a queued entity creation.

        The approval stays approved even if the queued creation then fails; the
        error is raised to the caller.
        """
        approval = self.approvals.approve(approval_id, cancel=cancel)
        if approval.type != CREATE_ACTION or "entity" not in approval.payload:
            return ApprovalResult(approval=approval)

        entity_type = approval.payload["entity"]
        handler = self.handler(entity_type)
        fields = from_dict(handler.patch_class, approval.payload.get("fields") or {})
        try:
            result = handler.add(approval.payload.get("name", ""), fields, cancel=cancel)
        except Exception as e:
            logger.error("Approved creation failed", approval_id=approval_id, entity_type=entity_type, error=str(e))
            raise
        logger.info("Approved creation applied", approval_id=approval_id, entity_id=result.id)
        return ApprovalResult(approval=approval, entity_id=result.id)

    def reject(self, approval_id: str, reason: str = "", *, cancel: Cancel = None) -> ApprovalResult:
        return ApprovalResult(approval=self.approvals.reject(approval_id, reason, cancel=cancel))

    def lint(self, fix: bool = False, *, cancel: Cancel = None) -> LintResult:
        """Lint the store, applying auto-fixes first when fix is set."""
        if fix:
            self.linter.fix(cancel=cancel)
        return self.linter.check_all(cancel=cancel)

    def check_integrity(self, *, cancel: Cancel = None) -> IntegrityResult:
        return self.integrity.check_all(cancel=cancel)
