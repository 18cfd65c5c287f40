"""Approval queue: pending actions awaiting a human verdict.

Pending approvals live in ``approvals/pending/queue.yaml``. Approving or
rejecting one writes the resolved record to
``approvals/<approved|rejected>/<id>.yaml`` and removes it from the queue,
all under a single lock acquisition.
"""

import uuid
from typing import Any

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import ApprovalNotPendingError, EntityNotFoundError, OperationCancelledError
from project_entities.locking import DEFAULT_LOCK_TIMEOUT, lock_with_timeout
from project_entities.models import (
    ApprovalLevel,
    ApprovalStatus,
    PendingApproval,
    from_dict,
    now,
    to_dict,
)
from project_entities.security import YAML_SUFFIX, validate_id
from project_entities.storage import FileStore

logger = structlog.get_logger()

APPROVALS_DIR = "approvals"
PENDING_DIR = f"{APPROVALS_DIR}/pending"
QUEUE_FILE = f"{PENDING_DIR}/queue{YAML_SUFFIX}"
OUTCOME_DIRS = {
    ApprovalStatus.APPROVED: f"{APPROVALS_DIR}/approved",
    ApprovalStatus.REJECTED: f"{APPROVALS_DIR}/rejected",
}
RESOLVED_BY = "user"


def determine_approval_level(action_type: str, mode: str) -> ApprovalLevel:
    """Map an action to the approval it needs under an approval mode.

    Args:
        action_type: e.g. ``task_create``, ``task_update``, ``suggestion``
        mode: ``strict``, ``loose``; anything else is treated as default

    Returns:
        The approval level
    """
    if mode == "strict":
        if action_type in ("task_create", "task_update", "suggestion"):
            return ApprovalLevel.APPROVE
        return ApprovalLevel.NOTIFY
    if mode == "loose":
        if action_type == "suggestion":
            return ApprovalLevel.NOTIFY
        return ApprovalLevel.AUTO
    if action_type == "suggestion":
        return ApprovalLevel.APPROVE
    if action_type == "task_update":
        return ApprovalLevel.NOTIFY
    return ApprovalLevel.AUTO


class ApprovalManager:
    """Serializes every access to the approval queue through one file lock."""

    def __init__(self, store: FileStore, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.store = store
        self.lock_timeout = lock_timeout
        self.queue_path = self.store.resolve(QUEUE_FILE)

    def _locked(self):
        return lock_with_timeout(self.queue_path, self.lock_timeout)

    def _read_queue(self, cancel: Cancel) -> list[PendingApproval]:
        """Read the queue. Callers must hold the lock."""
        try:
            data = self.store.read_yaml(QUEUE_FILE, cancel=cancel) or {}
        except FileNotFoundError:
            return []
        return [from_dict(PendingApproval, record) for record in data.get("approvals") or []]

    def _write_queue(self, approvals: list[PendingApproval], cancel: Cancel) -> None:
        self.store.ensure_dir(PENDING_DIR, cancel=cancel)
        check_cancelled(cancel)
        self.store.write_yaml(QUEUE_FILE, {"approvals": [to_dict(a) for a in approvals]}, cancel=cancel)

    @staticmethod
    def _outcome_path(status: ApprovalStatus, approval_id: str) -> str:
        return f"{OUTCOME_DIRS[status]}/{approval_id}{YAML_SUFFIX}"

    def _find_resolved(self, approval_id: str, cancel: Cancel) -> PendingApproval | None:
        for status in OUTCOME_DIRS:
            path = self._outcome_path(status, approval_id)
            if self.store.exists(path, cancel=cancel):
                return from_dict(PendingApproval, self.store.read_yaml(path, cancel=cancel))
        return None

    def create(
        self,
        approval_type: str,
        description: str,
        level: ApprovalLevel,
        entity_id: str = "",
        payload: dict[str, Any] | None = None,
        *,
        cancel: Cancel = None,
    ) -> PendingApproval:
        """Append a new pending approval to the queue."""
        check_cancelled(cancel)
        with self._locked():
            approvals = self._read_queue(cancel)
            timestamp = now()
            approval = PendingApproval(
                id=f"approval-{uuid.uuid4().hex[:8]}",
                type=approval_type,
                description=description,
                level=ApprovalLevel(level),
                status=ApprovalStatus.PENDING,
                entity_id=entity_id,
                payload=dict(payload or {}),
                created_at=timestamp,
                updated_at=timestamp,
            )
            approvals.append(approval)
            check_cancelled(cancel)
            self._write_queue(approvals, cancel)

        logger.info("Approval created", approval_id=approval.id, approval_type=approval_type, level=approval.level.value)
        return approval

    def approve(self, approval_id: str, *, cancel: Cancel = None) -> PendingApproval:
        """Approve a pending approval.

        Raises:
            EntityNotFoundError: If no approval has this ID
            ApprovalNotPendingError: If the approval is already resolved
            LockTimeoutError: If the queue lock is busy
        """
        return self._resolve(approval_id, ApprovalStatus.APPROVED, "", cancel)

    def reject(self, approval_id: str, reason: str = "", *, cancel: Cancel = None) -> PendingApproval:
        """Reject a pending approval, recording a reason."""
        return self._resolve(approval_id, ApprovalStatus.REJECTED, reason, cancel)

    def _resolve(self, approval_id: str, status: ApprovalStatus, reason: str, cancel: Cancel) -> PendingApproval:
        check_cancelled(cancel)
        validate_id("approval", approval_id)

        with self._locked():
            approvals = self._read_queue(cancel)
            target = next((a for a in approvals if a.id == approval_id), None)
            if target is None:
                resolved = self._find_resolved(approval_id, cancel)
                if resolved is not None:
                    raise ApprovalNotPendingError(approval_id, resolved.status.value)
                raise EntityNotFoundError("approval", approval_id)
            if target.status is not ApprovalStatus.PENDING:
                raise ApprovalNotPendingError(approval_id, target.status.value)

            target.status = status
            target.updated_at = now()
            if status is ApprovalStatus.APPROVED:
                target.approved_by = RESOLVED_BY
            else:
                target.rejected_by = RESOLVED_BY
                target.reason = reason

            check_cancelled(cancel)
            outcome_path = self._outcome_path(status, approval_id)
            self.store.ensure_dir(OUTCOME_DIRS[status], cancel=cancel)
            self.store.write_yaml(outcome_path, to_dict(target), cancel=cancel)

            remaining = [a for a in approvals if a.id != approval_id]
            try:
                self._write_queue(remaining, cancel)
            except (OSError, OperationCancelledError) as e:
                logger.error("Failed to update approval queue, rolling back", approval_id=approval_id, error=str(e))
                self.store.delete(outcome_path)
                raise

        logger.info("Approval resolved", approval_id=approval_id, status=status.value)
        return target

    def get_pending(self, *, cancel: Cancel = None) -> list[PendingApproval]:
        check_cancelled(cancel)
        with self._locked():
            return [a for a in self._read_queue(cancel) if a.status is ApprovalStatus.PENDING]

    def get_all(self, *, cancel: Cancel = None) -> list[PendingApproval]:
        """Every record currently in the queue."""
        check_cancelled(cancel)
        with self._locked():
            return self._read_queue(cancel)

    def get(self, approval_id: str, *, cancel: Cancel = None) -> PendingApproval:
        """Find an approval in the queue or among resolved approvals.

        Raises:
            EntityNotFoundError: If no approval has this ID
        """
        check_cancelled(cancel)
        validate_id("approval", approval_id)
        with self._locked():
            for approval in self._read_queue(cancel):
                if approval.id == approval_id:
                    return approval
            resolved = self._find_resolved(approval_id, cancel)
        if resolved is None:
            raise EntityNotFoundError("approval", approval_id)
        return resolved
