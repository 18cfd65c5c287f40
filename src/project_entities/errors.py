"""Exception hierarchy for the entity store."""


class EntityStoreError(Exception):
    """Base class for all entity store errors."""


class ValidationError(EntityStoreError, ValueError):
    """Field-scoped input validation failure."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class UnknownEntityTypeError(ValidationError):
    """Raised when an entity type has no ID grammar or no registered handler."""

    def __init__(self, entity_type: str) -> None:
        self.entity_type = entity_type
        super().__init__("entity_type", f"unknown entity type: {entity_type}")


class SecurityError(EntityStoreError):
    """Path or addressing violation. Never partially honored."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)


class NotFoundError(EntityStoreError, LookupError):
    """Base class for missing records."""


class EntityNotFoundError(NotFoundError):
    """Raised when an entity or approval does not exist."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class ReferenceNotFoundError(NotFoundError):
    """Raised when a reference field names an entity that does not exist."""

    def __init__(self, target_type: str, target_id: str) -> None:
        self.target_type = target_type
        self.target_id = target_id
        super().__init__(f"referenced {target_type} not found: {target_id}")


class ImmutabilityError(EntityStoreError):
    """Raised on update or delete of a type that forbids it."""

    def __init__(self, entity_type: str, entity_id: str, operation: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        super().__init__(f"{entity_type} is immutable: cannot {operation} {entity_type} {entity_id}")


class CascadeProtectionError(EntityStoreError):
    """Raised when deleting an entity that another entity still references."""

    def __init__(self, entity_type: str, entity_id: str, referenced_by_type: str, referenced_by_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.referenced_by_type = referenced_by_type
        self.referenced_by_id = referenced_by_id
        super().__init__(
            f"cannot delete {entity_type} {entity_id}: referenced by {referenced_by_type} {referenced_by_id}"
        )


class LockTimeoutError(EntityStoreError, TimeoutError):
    """Raised when a resource lock could not be acquired in time. Safe to retry."""

    def __init__(self, path: str, timeout: float) -> None:
        self.path = path
        self.timeout = timeout
        super().__init__(f"lock busy: could not acquire {path} within {timeout}s")


class ApprovalNotPendingError(EntityStoreError):
    """Raised when approving or rejecting an approval that is already resolved."""

    def __init__(self, approval_id: str, current_status: str) -> None:
        self.approval_id = approval_id
        self.current_status = current_status
        super().__init__(f"approval {approval_id} is not pending, current status = {current_status}")


class OperationCancelledError(EntityStoreError):
    """Raised when the caller's cancellation signal is set."""

    def __init__(self, message: str = "operation cancelled") -> None:
        super().__init__(message)
