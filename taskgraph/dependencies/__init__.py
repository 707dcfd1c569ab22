"""Task dependency graph engine.

This module provides the dependency pipeline over an in-memory task graph:
- Identity resolution (task / subtask ids -> canonical references)
- Validation (graph -> issues)
- Repair (issues -> idempotent fixes)
- Concurrent selection (graph -> ready, independent tasks)
"""

from taskgraph.dependencies.identity import (
    GraphNode,
    NodeIndex,
    exists,
    natural_sort_key,
    normalize,
    resolve,
)
from taskgraph.dependencies.models import (
    CanonicalRef,
    ChangeOutcome,
    DependencyChange,
    FixResult,
    FixStats,
    Issue,
    IssueKind,
    ReadyTask,
    RepairAction,
    RepairKind,
    SelectionConfig,
    Subtask,
    Task,
    TaskGraph,
    TaskPriority,
    TaskStatus,
)
from taskgraph.dependencies.repair import (
    add_dependency,
    cleanup_subtask_dependencies,
    ensure_at_least_one_independent_subtask,
    remove_dependency,
    remove_duplicate_dependencies,
    validate_and_fix_dependencies,
)
from taskgraph.dependencies.selector import TaskSelector, select_next, select_next_task
from taskgraph.dependencies.validator import (
    DependencyValidator,
    count_all_dependencies,
    detect_cycles,
    is_circular_dependency,
    validate,
)

__all__ = [
    # Models
    "CanonicalRef",
    "ChangeOutcome",
    "DependencyChange",
    "FixResult",
    "FixStats",
    "Issue",
    "IssueKind",
    "ReadyTask",
    "RepairAction",
    "RepairKind",
    "SelectionConfig",
    "Subtask",
    "Task",
    "TaskGraph",
    "TaskPriority",
    "TaskStatus",
    # Identity
    "GraphNode",
    "NodeIndex",
    "exists",
    "natural_sort_key",
    "normalize",
    "resolve",
    # Validation
    "DependencyValidator",
    "count_all_dependencies",
    "detect_cycles",
    "is_circular_dependency",
    "validate",
    # Repair
    "add_dependency",
    "cleanup_subtask_dependencies",
    "ensure_at_least_one_independent_subtask",
    "remove_dependency",
    "remove_duplicate_dependencies",
    "validate_and_fix_dependencies",
    # Selection
    "TaskSelector",
    "select_next",
    "select_next_task",
]
