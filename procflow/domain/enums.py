"""Domain enumerations for procflow.

Closed sets of domain values. Status fields are stored as strings but
always pass through these enums, so an unknown value is rejected at the
boundary instead of silently flowing through the engine.
"""

from enum import Enum

from procflow.shared.enums import _ValuesMixin


class TaskStatus(_ValuesMixin, str, Enum):
    """Task (and request) status. Transitions are defined in task_lifecycle."""

    TO_ASSIGN = "to_assign"
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    PENDING_VALIDATION_1 = "pending_validation_1"
    PENDING_VALIDATION_2 = "pending_validation_2"
    VALIDATED = "validated"
    REFUSED = "refused"
    REVIEW = "review"
    CANCELLED = "cancelled"


class TaskType(_ValuesMixin, str, Enum):
    """A request is a task-shaped row with type 'request'."""

    TASK = "task"
    REQUEST = "request"


class TaskPriority(_ValuesMixin, str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ValidationLevelType(_ValuesMixin, str, Enum):
    """Who may approve a validation level."""

    NONE = "none"
    MANAGER = "manager"
    REQUESTER = "requester"
    FREE = "free"


class ValidationStatus(_ValuesMixin, str, Enum):
    """Per-level decision status (validation_1_status / validation_2_status)."""

    PENDING = "pending"
    VALIDATED = "validated"
    REFUSED = "refused"


class RequestValidationStatus(_ValuesMixin, str, Enum):
    """Pre-workflow request validation status."""

    NONE = "none"
    PENDING_LEVEL_1 = "pending_level_1"
    PENDING_LEVEL_2 = "pending_level_2"
    APPROVED = "approved"
    REFUSED = "refused"
    RETURNED = "returned"

    @classmethod
    def pending(cls) -> frozenset["RequestValidationStatus"]:
        """Statuses during which the workflow must not start."""
        return frozenset({cls.PENDING_LEVEL_1, cls.PENDING_LEVEL_2})


class RefusalAction(_ValuesMixin, str, Enum):
    """What a request-level refusal does: cancel the request or return it to the requester."""

    CANCEL = "cancel"
    RETURN = "return"


class SubProcessRunStatus(_ValuesMixin, str, Enum):
    """Status of a sub-process run (request_sub_processes row)."""

    WAITING_VALIDATION = "waiting_validation"
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkflowTemplateStatus(_ValuesMixin, str, Enum):
    """Workflow template status. Superseded templates are retired, never deleted."""

    DRAFT = "draft"
    ACTIVE = "active"
    SUPERSEDED = "superseded"


class AssignmentMode(_ValuesMixin, str, Enum):
    DIRECT = "direct"
    MANAGER = "manager"


class AssignmentTarget(_ValuesMixin, str, Enum):
    USER = "user"
    GROUP = "group"
    DEPARTMENT = "department"
    RULE = "rule"


class ManagerSource(_ValuesMixin, str, Enum):
    """How a manager-mode block finds the manager it hands tasks to."""

    SPECIFIC_USER = "specific_user"
    REQUESTER_MANAGER = "requester_manager"
    TARGET_DEPARTMENT_MANAGER = "target_department_manager"


class NodeType(_ValuesMixin, str, Enum):
    """Workflow node variants (closed set; see procflow.domain.graph)."""

    START = "start"
    END = "end"
    TASK = "task"
    VALIDATION = "validation"
    NOTIFICATION = "notification"
    CONDITION = "condition"
    STANDARD_DIRECT = "sub_process_standard_direct"
    STANDARD_MANAGER = "sub_process_standard_manager"
    STANDARD_VALIDATION_1 = "sub_process_standard_validation1"
    STANDARD_VALIDATION_2 = "sub_process_standard_validation2"
    FORK = "fork"
    JOIN = "join"
    STATUS_CHANGE = "status_change"
    ASSIGNMENT = "assignment"

    @property
    def is_standard_block(self) -> bool:
        """Return whether this node runs the S1 to S4 standard block lifecycle."""
        return self in _STANDARD_BLOCK_TYPES


_STANDARD_BLOCK_TYPES = frozenset(
    {
        NodeType.STANDARD_DIRECT,
        NodeType.STANDARD_MANAGER,
        NodeType.STANDARD_VALIDATION_1,
        NodeType.STANDARD_VALIDATION_2,
    }
)


class NotificationMoment(_ValuesMixin, str, Enum):
    """When a generated notification node fires relative to the process."""

    CREATION = "creation"
    CLOSURE = "closure"


class AggregatedStatus(_ValuesMixin, str, Enum):
    """Roll-up status of a group of tasks (e.g. all tasks of a request)."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
