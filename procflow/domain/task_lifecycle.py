"""Task status state machine.

The transition table is total over TaskStatus: every status has an entry,
and a status missing from a target set is an illegal move. validated,
refused and cancelled have no outgoing transitions (immutable except for
audit fields). Transitions into pending-validation states additionally
depend on the task's configured validation levels.
"""

from collections.abc import Iterable, Mapping

from procflow.domain.enums import AggregatedStatus, TaskStatus, ValidationLevelType
from procflow.domain.exceptions import IllegalTransitionError

TASK_STATUS_TRANSITIONS: Mapping[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.TO_ASSIGN: frozenset(
        {TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}
    ),
    TaskStatus.TODO: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.TO_ASSIGN, TaskStatus.CANCELLED}
    ),
    TaskStatus.IN_PROGRESS: frozenset(
        {
            TaskStatus.DONE,
            TaskStatus.TODO,
            TaskStatus.PENDING_VALIDATION_1,
            TaskStatus.REVIEW,
            TaskStatus.CANCELLED,
        }
    ),
    TaskStatus.DONE: frozenset({TaskStatus.PENDING_VALIDATION_1}),
    TaskStatus.PENDING_VALIDATION_1: frozenset(
        {
            TaskStatus.PENDING_VALIDATION_2,
            TaskStatus.VALIDATED,
            TaskStatus.REFUSED,
            TaskStatus.REVIEW,
            TaskStatus.CANCELLED,
        }
    ),
    TaskStatus.PENDING_VALIDATION_2: frozenset(
        {
            TaskStatus.VALIDATED,
            TaskStatus.REFUSED,
            TaskStatus.REVIEW,
            TaskStatus.CANCELLED,
        }
    ),
    TaskStatus.REVIEW: frozenset(
        {TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}
    ),
    TaskStatus.VALIDATED: frozenset(),
    TaskStatus.REFUSED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}

# A sub-process run is complete when every task is in one of these.
COMPLETED_STATUSES: frozenset[TaskStatus] = frozenset(
    {TaskStatus.DONE, TaskStatus.VALIDATED}
)

# Statuses only the validation gate may write.
GATE_OWNED_STATUSES: frozenset[TaskStatus] = frozenset(
    {
        TaskStatus.PENDING_VALIDATION_1,
        TaskStatus.PENDING_VALIDATION_2,
        TaskStatus.VALIDATED,
        TaskStatus.REFUSED,
    }
)

_PENDING_BY_LEVEL = {
    1: TaskStatus.PENDING_VALIDATION_1,
    2: TaskStatus.PENDING_VALIDATION_2,
}


def requires_validation(
    level_1: ValidationLevelType | str | None,
    level_2: ValidationLevelType | str | None,
) -> bool:
    """Return whether a task with these level types must pass the validation gate."""
    return _is_set(level_1) or _is_set(level_2)


def awaits_validation(
    status: TaskStatus | str,
    level_1: ValidationLevelType | str | None,
    level_2: ValidationLevelType | str | None,
) -> bool:
    """Return whether a done task still has to be submitted to the validation gate."""
    return TaskStatus(status) == TaskStatus.DONE and requires_validation(level_1, level_2)


def _is_set(level: ValidationLevelType | str | None) -> bool:
    return level is not None and ValidationLevelType(level) != ValidationLevelType.NONE


def pending_status_for_level(level: int) -> TaskStatus:
    """Return pending_validation_{level}; level must be 1 or 2."""
    try:
        return _PENDING_BY_LEVEL[level]
    except KeyError:
        raise ValueError(f"Validation level must be 1 or 2, got: {level}") from None


def allowed_targets(status: TaskStatus | str) -> frozenset[TaskStatus]:
    """Return the statuses reachable in one step from status."""
    return TASK_STATUS_TRANSITIONS[TaskStatus(status)]


def can_transition(current: TaskStatus | str, target: TaskStatus | str) -> bool:
    """Return whether the table allows current -> target."""
    return TaskStatus(target) in allowed_targets(current)


def allowed_sources(target: TaskStatus | str) -> frozenset[TaskStatus]:
    """Return every status that may move to target (used to build bulk preconditions)."""
    target = TaskStatus(target)
    return frozenset(
        source
        for source, targets in TASK_STATUS_TRANSITIONS.items()
        if target in targets
    )


def check_transition(
    task_id: str,
    current: TaskStatus | str,
    target: TaskStatus | str,
    *,
    validation_level_1: ValidationLevelType | str | None = None,
    validation_level_2: ValidationLevelType | str | None = None,
) -> None:
    """Raise IllegalTransitionError unless current -> target is legal for this task.

    Args:
        task_id: Task id (for error details).
        current: Current status.
        target: Requested status.
        validation_level_1: Task's level-1 validator type.
        validation_level_2: Task's level-2 validator type.

    Raises:
        IllegalTransitionError: If the table forbids the move, or the move
            enters a pending-validation state the task is not configured for.
    """
    current = TaskStatus(current)
    target = TaskStatus(target)
    if not can_transition(current, target):
        raise IllegalTransitionError(task_id, current.value, target.value)
    if target == TaskStatus.PENDING_VALIDATION_1 and not requires_validation(
        validation_level_1, validation_level_2
    ):
        raise IllegalTransitionError(
            task_id, current.value, target.value, "task does not require validation"
        )
    if target == TaskStatus.PENDING_VALIDATION_2 and not _is_set(validation_level_2):
        raise IllegalTransitionError(
            task_id, current.value, target.value, "no level-2 validation configured"
        )


def is_sub_process_complete(statuses: Iterable[TaskStatus | str]) -> bool:
    """Return whether a sub-process run with these task statuses is complete.

    Pure predicate: non-empty and every status is done or validated. A run
    whose task inserts all failed has no work materialized and stays open.
    """
    seen = False
    for status in statuses:
        seen = True
        if TaskStatus(status) not in COMPLETED_STATUSES:
            return False
    return seen


def calculate_progress(statuses: Iterable[TaskStatus | str]) -> int:
    """Return the rounded percentage of completed tasks (0 when there are none)."""
    values = [TaskStatus(s) for s in statuses]
    if not values:
        return 0
    completed = sum(1 for s in values if s in COMPLETED_STATUSES)
    return round(completed * 100 / len(values))


def aggregate_status(statuses: Iterable[TaskStatus | str]) -> AggregatedStatus:
    """Roll a group of task statuses up into one AggregatedStatus."""
    values = [TaskStatus(s) for s in statuses]
    if not values:
        return AggregatedStatus.NOT_STARTED
    if all(s in COMPLETED_STATUSES for s in values):
        return AggregatedStatus.COMPLETED
    if any(s in (TaskStatus.REFUSED, TaskStatus.REVIEW) for s in values):
        return AggregatedStatus.BLOCKED
    if any(s not in (TaskStatus.TO_ASSIGN, TaskStatus.TODO) for s in values):
        return AggregatedStatus.IN_PROGRESS
    return AggregatedStatus.NOT_STARTED
