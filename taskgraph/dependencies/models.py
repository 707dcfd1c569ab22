"""Pydantic models for the task dependency graph.

This module defines the data structures shared by the identity resolver,
validator, repair engine and selector: tasks and subtasks as loaded from
the caller's store, canonical references, validation issues, repair
records and selection results.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# A dependency as written by the caller: a bare task id, a "parent.child"
# string, or a legacy float such as 2.1.
TaskId = int | str
DependencyRef = int | float | str


# =============================================================================
# ENUMS
# =============================================================================


class TaskStatus(str, Enum):
    """Workflow status of a task or subtask."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    REVIEW = "review"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    """Priority of a task. Higher rank is selected first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric weight used for ordering (critical=4 ... low=1)."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    TaskPriority.CRITICAL: 4,
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}


class IssueKind(str, Enum):
    """Kind of structural problem found by the validator."""

    MISSING_DEPENDENCY = "missing-dependency"
    SELF_DEPENDENCY = "self-dependency"
    STATUS_INVERSION = "status-inversion"
    CIRCULAR_DEPENDENCY = "circular-dependency"


class RepairKind(str, Enum):
    """Kind of mutation applied by the repair engine."""

    DUPLICATE_REMOVED = "duplicate-removed"
    MISSING_REMOVED = "missing-removed"
    SELF_REMOVED = "self-removed"
    DEPENDENCIES_CLEARED = "dependencies-cleared"


class ChangeOutcome(str, Enum):
    """Outcome of a single-edge mutation."""

    ADDED = "added"
    ALREADY_EXISTS = "already-exists"
    REMOVED = "removed"
    NOT_PRESENT = "not-present"


# =============================================================================
# TASK GRAPH
# =============================================================================


class Subtask(BaseModel):
    """A unit of work scoped to a parent task.

    The id is only unique within the parent; the canonical reference is
    ``"<parentId>.<subtaskId>"``. Inside ``dependencies`` a bare numeric id
    names a sibling subtask; other bare ids name top-level tasks.
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: TaskId
    title: str = ""
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority | None = None
    dependencies: list[DependencyRef] = Field(default_factory=list)


class Task(BaseModel):
    """A top-level unit of work with a graph-wide unique id.

    Example:
        >>> task = Task(id=2, status="pending", dependencies=[1, "1.2"])
        >>> task.priority is None
        True
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: TaskId
    title: str = ""
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority | None = None
    dependencies: list[DependencyRef] = Field(default_factory=list)
    subtasks: list[Subtask] = Field(default_factory=list)

    def get_subtask(self, subtask_id: TaskId) -> Subtask | None:
        """Get a subtask by id, comparing ids as strings."""
        wanted = str(subtask_id).strip()
        for subtask in self.subtasks:
            if str(subtask.id).strip() == wanted:
                return subtask
        return None


class TaskGraph(BaseModel):
    """Ordered collection of tasks, the value every engine call operates on.

    Example:
        >>> graph = TaskGraph.model_validate({"tasks": [{"id": 1}]})
        >>> len(graph.tasks)
        1
    """

    model_config = ConfigDict(extra="allow")

    tasks: list[Task] = Field(default_factory=list)

    def get_task(self, task_id: TaskId) -> Task | None:
        """Get a top-level task by id, comparing ids as strings."""
        wanted = str(task_id).strip()
        for task in self.tasks:
            if str(task.id).strip() == wanted:
                return task
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary for persistence."""
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# CANONICAL REFERENCES
# =============================================================================


class CanonicalRef(BaseModel):
    """Normalized reference to a task or a subtask.

    Equality and hashing are defined on the normalized strings only, so
    ``3`` and ``"3"`` produce the same reference.
    """

    model_config = ConfigDict(frozen=True)

    task_id: str
    subtask_id: str | None = None

    @property
    def is_subtask(self) -> bool:
        """Whether this reference names a subtask."""
        return self.subtask_id is not None

    @property
    def parent(self) -> "CanonicalRef | None":
        """Reference to the parent task, for subtask references."""
        if self.subtask_id is None:
            return None
        return CanonicalRef(task_id=self.task_id)

    def __str__(self) -> str:
        if self.subtask_id is None:
            return self.task_id
        return f"{self.task_id}.{self.subtask_id}"


# =============================================================================
# RESULTS
# =============================================================================


class Issue(BaseModel):
    """A structural problem found by the validator."""

    model_config = ConfigDict(frozen=True)

    kind: IssueKind
    subject_id: str = Field(description="Canonical id of the node that owns the problem")
    dependency_id: str | None = Field(
        default=None,
        description="Offending dependency reference, when there is one",
    )
    cycle_members: list[str] | None = Field(
        default=None,
        description="Canonical ids of every node on the cycle, in path order",
    )
    reason: str = ""


class RepairAction(BaseModel):
    """A single mutation applied by the repair engine."""

    model_config = ConfigDict(frozen=True)

    kind: RepairKind
    subject_id: str
    removed: list[str] = Field(
        default_factory=list,
        description="Dependency references removed from the subject, as stored",
    )
    reason: str = ""


class DependencyChange(BaseModel):
    """Result of ``add_dependency`` / ``remove_dependency``."""

    model_config = ConfigDict(frozen=True)

    outcome: ChangeOutcome
    subject_id: str
    dependency_id: str
    message: str = ""

    @property
    def changed(self) -> bool:
        """Whether the graph was mutated."""
        return self.outcome in (ChangeOutcome.ADDED, ChangeOutcome.REMOVED)


class FixStats(BaseModel):
    """Counters reported by ``validate_and_fix_dependencies``."""

    missing_dependencies_removed: int = 0
    self_dependencies_removed: int = 0
    duplicate_dependencies_removed: int = 0
    independent_subtasks_restored: int = 0
    tasks_fixed: int = 0
    subtasks_fixed: int = 0

    @property
    def total_fixed(self) -> int:
        """Number of dependency references removed or cleared groups restored."""
        return (
            self.missing_dependencies_removed
            + self.self_dependencies_removed
            + self.duplicate_dependencies_removed
            + self.independent_subtasks_restored
        )


class FixResult(BaseModel):
    """Outcome of a validate-then-fix pass.

    Truthiness mirrors ``changed``.
    """

    changed: bool = False
    actions: list[RepairAction] = Field(default_factory=list)
    residual_issues: list[Issue] = Field(
        default_factory=list,
        description="Circular dependencies and status inversions left for the caller",
    )
    stats: FixStats = Field(default_factory=FixStats)

    def __bool__(self) -> bool:
        return self.changed


class SelectionConfig(BaseModel):
    """Explicit defaults for task selection."""

    model_config = ConfigDict(frozen=True)

    max_concurrency: int = Field(default=10, ge=1)
    default_priority: TaskPriority = TaskPriority.MEDIUM
    completed_statuses: frozenset[TaskStatus] = frozenset({TaskStatus.DONE})
    eligible_parent_statuses: frozenset[TaskStatus] = frozenset({TaskStatus.IN_PROGRESS})


class ReadyTask(BaseModel):
    """A task or subtask returned by the selector, ready to start now."""

    model_config = ConfigDict(frozen=True)

    id: str
    ref: CanonicalRef
    title: str = ""
    status: TaskStatus
    priority: TaskPriority
    dependencies: list[str] = Field(default_factory=list)
    parent_id: str | None = None

    @property
    def is_subtask(self) -> bool:
        """Whether this item is a subtask of an in-progress parent."""
        return self.parent_id is not None
