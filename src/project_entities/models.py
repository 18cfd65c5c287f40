"""Data models for project entities."""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar, get_args, get_origin, get_type_hints

from project_entities.errors import ValidationError

T = TypeVar("T")


def now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# Statuses and enumerations


class VisionStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ObjectiveStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"


class DeliverableStatus(str, Enum):
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    DELIVERED = "delivered"


class DeliverableFormat(str, Enum):
    DOCUMENT = "document"
    CODE = "code"
    DESIGN = "design"
    OTHER = "other"


class ConsiderationStatus(str, Enum):
    OPEN = "open"
    DECIDED = "decided"
    DEFERRED = "deferred"


class RiskProbability(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskImpact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskScore(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskStatus(str, Enum):
    IDENTIFIED = "identified"
    MITIGATING = "mitigating"
    MITIGATED = "mitigated"
    ACCEPTED = "accepted"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ProblemStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    WONT_FIX = "wont_fix"


class AssumptionStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    INVALID = "invalid"


class ConstraintCategory(str, Enum):
    TECHNICAL = "technical"
    BUSINESS = "business"
    LEGAL = "legal"
    RESOURCE = "resource"
    TIME = "time"


class ActorType(str, Enum):
    HUMAN = "human"
    SYSTEM = "system"
    TIME = "time"
    DEVICE = "device"
    EXTERNAL = "external"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class MetricStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    MET = "met"
    NOT_MET = "not_met"


class GateStatus(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class ApprovalLevel(str, Enum):
    AUTO = "auto"
    NOTIFY = "notify"
    APPROVE = "approve"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# probability -> impact -> score
_RISK_MATRIX: dict[RiskProbability, dict[RiskImpact, RiskScore]] = {
    RiskProbability.HIGH: {
        RiskImpact.CRITICAL: RiskScore.CRITICAL,
        RiskImpact.HIGH: RiskScore.CRITICAL,
        RiskImpact.MEDIUM: RiskScore.HIGH,
        RiskImpact.LOW: RiskScore.MEDIUM,
    },
    RiskProbability.MEDIUM: {
        RiskImpact.CRITICAL: RiskScore.CRITICAL,
        RiskImpact.HIGH: RiskScore.HIGH,
        RiskImpact.MEDIUM: RiskScore.MEDIUM,
        RiskImpact.LOW: RiskScore.LOW,
    },
    RiskProbability.LOW: {
        RiskImpact.CRITICAL: RiskScore.HIGH,
        RiskImpact.HIGH: RiskScore.MEDIUM,
        RiskImpact.MEDIUM: RiskScore.LOW,
        RiskImpact.LOW: RiskScore.LOW,
    },
}


def calculate_risk_score(probability: RiskProbability, impact: RiskImpact) -> RiskScore:
    """Derive a risk score from probability and impact."""
    return _RISK_MATRIX[RiskProbability(probability)][RiskImpact(impact)]


# Entities


@dataclass
class Metadata:
    """Bookkeeping block carried by every entity."""

    created_at: str = ""
    updated_at: str = ""
    owner: str = ""
    tags: list[str] = field(default_factory=list)


@dataclass
class Vision:
    """The project's single guiding statement."""

    id: str
    title: str
    statement: str = ""
    status: VisionStatus = VisionStatus.DRAFT
    success_criteria: list[str] = field(default_factory=list)
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Objective:
    """A goal, optionally nested under a parent objective."""

    id: str
    title: str
    description: str = ""
    status: ObjectiveStatus = ObjectiveStatus.NOT_STARTED
    parent_id: str = ""
    wbs_code: str = ""
    start_date: str = ""
    due_date: str = ""
    progress: int = 0
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Deliverable:
    """A concrete output that fulfils an objective."""

    id: str
    title: str
    description: str = ""
    objective_id: str = ""
    format: DeliverableFormat = DeliverableFormat.DOCUMENT
    status: DeliverableStatus = DeliverableStatus.DRAFT
    acceptance_criteria: list[str] = field(default_factory=list)
    due_date: str = ""
    progress: int = 0
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class ConsiderationOption:
    """One option weighed by a consideration."""

    id: str = ""
    title: str = ""
    description: str = ""
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)


@dataclass
class Consideration:
    """An open question awaiting a decision."""

    id: str
    title: str
    description: str = ""
    status: ConsiderationStatus = ConsiderationStatus.OPEN
    objective_id: str = ""
    options: list[ConsiderationOption] = field(default_factory=list)
    due_date: str = ""
    decision_id: str = ""
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class SelectedOption:
    """The option a decision settled on."""

    id: str = ""
    title: str = ""


@dataclass
class Decision:
    """An immutable resolution of a consideration."""

    id: str
    title: str
    consideration_id: str = ""
    selected_option: SelectedOption = field(default_factory=SelectedOption)
    rationale: str = ""
    decided_at: str = ""
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Risk:
    """A potential problem with a score derived from probability and impact."""

    id: str
    title: str
    description: str = ""
    probability: RiskProbability = RiskProbability.MEDIUM
    impact: RiskImpact = RiskImpact.MEDIUM
    risk_score: RiskScore = RiskScore.MEDIUM
    status: RiskStatus = RiskStatus.IDENTIFIED
    objective_id: str = ""
    deliverable_id: str = ""
    trigger: str = ""
    mitigation: str = ""
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Problem:
    """An issue that has already materialised."""

    id: str
    title: str
    description: str = ""
    severity: Severity = Severity.MEDIUM
    status: ProblemStatus = ProblemStatus.OPEN
    objective_id: str = ""
    deliverable_id: str = ""
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Assumption:
    """A belief the plan relies on until verified."""

    id: str
    title: str
    description: str = ""
    status: AssumptionStatus = AssumptionStatus.UNVERIFIED
    objective_id: str = ""
    deliverable_id: str = ""
    verified_at: str = ""
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Constraint:
    """A limit the project must respect."""

    id: str
    title: str
    description: str = ""
    category: ConstraintCategory = ConstraintCategory.TECHNICAL
    non_negotiable: bool = False
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Actor:
    """A person or system that interacts with the project."""

    id: str
    title: str
    type: ActorType = ActorType.HUMAN
    description: str = ""
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class Task:
    """A unit of work."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    parent_id: str = ""
    deliverable_id: str = ""
    assignee: str = ""
    estimate_hours: float = 0.0
    actual_hours: float = 0.0
    progress: int = 0
    dependencies: list[str] = field(default_factory=list)
    approval_level: ApprovalLevel = ApprovalLevel.AUTO
    metadata: Metadata = field(default_factory=Metadata)


@dataclass
class QualityMetric:
    """A measurable target tracked by a quality entry."""

    id: str = ""
    name: str = ""
    target: float = 0.0
    current: float = 0.0
    unit: str = ""
    status: MetricStatus = MetricStatus.IN_PROGRESS


@dataclass
class QualityGate:
    name: str = ""
    criteria: list[str] = field(default_factory=list)
    status: GateStatus = GateStatus.PENDING


@dataclass
class Quality:
    """Quality standard for an objective, made of metrics and gates."""

    id: str
    title: str
    description: str = ""
    objective_id: str = ""
    metrics: list[QualityMetric] = field(default_factory=list)
    gates: list[QualityGate] = field(default_factory=list)
    reviewer: str = ""
    metadata: Metadata = field(default_factory=Metadata)


# Patches. A None field means "leave unchanged"; owner and tags go to metadata.


@dataclass
class VisionPatch:
    title: str | None = None
    statement: str | None = None
    status: VisionStatus | None = None
    success_criteria: list[str] | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class ObjectivePatch:
    title: str | None = None
    description: str | None = None
    status: ObjectiveStatus | None = None
    parent_id: str | None = None
    wbs_code: str | None = None
    start_date: str | None = None
    due_date: str | None = None
    progress: int | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class DeliverablePatch:
    title: str | None = None
    description: str | None = None
    objective_id: str | None = None
    format: DeliverableFormat | None = None
    status: DeliverableStatus | None = None
    acceptance_criteria: list[str] | None = None
    due_date: str | None = None
    progress: int | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class ConsiderationPatch:
    title: str | None = None
    description: str | None = None
    status: ConsiderationStatus | None = None
    objective_id: str | None = None
    options: list[ConsiderationOption] | None = None
    due_date: str | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class DecisionPatch:
    """Initial values for a decision. Decisions are never updated."""

    consideration_id: str | None = None
    selected_option: SelectedOption | None = None
    rationale: str | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class RiskPatch:
    title: str | None = None
    description: str | None = None
    probability: RiskProbability | None = None
    impact: RiskImpact | None = None
    status: RiskStatus | None = None
    objective_id: str | None = None
    deliverable_id: str | None = None
    trigger: str | None = None
    mitigation: str | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class ProblemPatch:
    title: str | None = None
    description: str | None = None
    severity: Severity | None = None
    status: ProblemStatus | None = None
    objective_id: str | None = None
    deliverable_id: str | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class AssumptionPatch:
    title: str | None = None
    description: str | None = None
    status: AssumptionStatus | None = None
    objective_id: str | None = None
    deliverable_id: str | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class ConstraintPatch:
    title: str | None = None
    description: str | None = None
    category: ConstraintCategory | None = None
    non_negotiable: bool | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class ActorPatch:
    title: str | None = None
    type: ActorType | None = None
    description: str | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class TaskPatch:
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    parent_id: str | None = None
    deliverable_id: str | None = None
    assignee: str | None = None
    estimate_hours: float | None = None
    actual_hours: float | None = None
    progress: int | None = None
    dependencies: list[str] | None = None
    approval_level: ApprovalLevel | None = None
    owner: str | None = None
    tags: list[str] | None = None


@dataclass
class QualityPatch:
    title: str | None = None
    description: str | None = None
    objective_id: str | None = None
    metrics: list[QualityMetric] | None = None
    gates: list[QualityGate] | None = None
    reviewer: str | None = None
    owner: str | None = None
    tags: list[str] | None = None


# Approvals and operation results


@dataclass
class PendingApproval:
    """A queued action awaiting a human verdict."""

    id: str
    type: str
    description: str = ""
    level: ApprovalLevel = ApprovalLevel.APPROVE
    status: ApprovalStatus = ApprovalStatus.PENDING
    entity_id: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""
    approved_by: str = ""
    rejected_by: str = ""
    reason: str = ""


@dataclass
class ListFilter:
    """Status filter and pagination. A limit of 0 means unlimited."""

    status: str | None = None
    limit: int = 0
    offset: int = 0


@dataclass
class ListResult:
    entity: str
    items: list[Any]
    total: int


@dataclass
class AddResult:
    success: bool
    id: str
    entity: str
    needs_approval: bool = False
    approval_id: str | None = None


@dataclass
class ApprovalResult:
    """Outcome of resolving an approval, with the entity it created if any."""

    approval: PendingApproval
    entity_id: str | None = None


# Conversion between dataclasses and plain YAML data


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def to_dict(obj: Any) -> dict[str, Any]:
    """Convert a model instance to plain data suitable for yaml.safe_dump."""
    return _plain(dataclasses.asdict(obj))


def coerce_value(name: str, value: Any, hint: Any) -> Any:
    if value is None:
        return None

    origin = get_origin(hint)
    args = get_args(hint)

    # Optional[X] / X | None
    if origin is not None and type(None) in args:
        inner = [a for a in args if a is not type(None)]
        return coerce_value(name, value, inner[0]) if len(inner) == 1 else value

    if origin is list:
        if not isinstance(value, list):
            raise ValidationError(name, "must be a list")
        item_hint = args[0] if args else Any
        return [coerce_value(name, item, item_hint) for item in value]

    if isinstance(hint, type) and issubclass(hint, Enum):
        try:
            return hint(value)
        except ValueError as e:
            allowed = ", ".join(member.value for member in hint)
            raise ValidationError(name, f"invalid value {value!r} (allowed: {allowed})") from e

    if dataclasses.is_dataclass(hint):
        if isinstance(value, hint):
            return value
        if not isinstance(value, dict):
            raise ValidationError(name, "must be a mapping")
        return from_dict(hint, value)

    return value


def from_dict(cls: type[T], data: dict[str, Any]) -> T:
    """Build a model instance from plain data.

    Keys without a matching field are ignored. Enum values and nested
    dataclasses are converted.

    Raises:
        ValidationError: If a value cannot be converted to its field type
    """
    hints = get_type_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if f.name in data:
            kwargs[f.name] = coerce_value(f.name, data[f.name], hints[f.name])
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValidationError(cls.__name__.lower(), f"incomplete record: {e}") from e


def field_names(cls: type) -> set[str]:
    return {f.name for f in dataclasses.fields(cls)}
