"""Concurrent task selection.

Picks up to N tasks that can all be started right now, in parallel: every
dependency of each returned task is already complete, and no returned task
depends on another returned task. The graph is never mutated.
"""

from collections.abc import Iterable

from loguru import logger

from taskgraph.core.exceptions import InvalidConcurrencyError
from taskgraph.dependencies.identity import GraphNode, NodeIndex, natural_sort_key
from taskgraph.dependencies.models import (
    CanonicalRef,
    ReadyTask,
    SelectionConfig,
    TaskGraph,
    TaskPriority,
    TaskStatus,
)

SELECTABLE_TASK_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
SELECTABLE_SUBTASK_STATUSES = frozenset({TaskStatus.PENDING})


class TaskSelector:
    """
    Select ready, mutually independent tasks.

    Candidates come from two phases: pending subtasks of parents in an
    eligible status (in-progress by default), then pending or in-progress
    top-level tasks. A task whose subtasks were offered in the first phase
    is not offered itself. A candidate is ready when every dependency is in the
    completed set. Candidates are ordered by priority (desc), dependency
    count (asc) and natural id (asc), then picked greedily while skipping
    any that conflict with a task already picked.

    Example:
        >>> selector = TaskSelector()
        >>> [t.id for t in selector.select(graph, 2)]
        ['1', '2']
    """

    def __init__(self, config: SelectionConfig | None = None) -> None:
        """
        Initialize the selector.

        Args:
            config: Selection defaults (cap, default priority, statuses).
        """
        self.config = config or SelectionConfig()

    def select(
        self,
        graph: TaskGraph,
        concurrency: int | str,
        eligible_parent_statuses: Iterable[TaskStatus | str] | None = None,
    ) -> list[ReadyTask]:
        """
        Select up to ``concurrency`` tasks that can start in parallel.

        Args:
            graph: Task graph to select from.
            concurrency: Positive integer; values above the configured cap
                are clamped to it.
            eligible_parent_statuses: Parent statuses whose pending subtasks
                are candidates. Defaults to the configured statuses.

        Returns:
            Selected tasks in selection order. May be shorter than requested.

        Raises:
            InvalidConcurrencyError: If ``concurrency`` is not a positive integer.
        """
        limit = self._effective_concurrency(concurrency)
        parent_statuses = (
            self.config.eligible_parent_statuses
            if eligible_parent_statuses is None
            else frozenset(TaskStatus(status) for status in eligible_parent_statuses)
        )

        index = NodeIndex(graph)
        completed = {
            node.ref for node in index if node.status in self.config.completed_statuses
        }

        candidates = self._collect_candidates(index, completed, parent_statuses)
        candidates.sort(
            key=lambda c: (
                -c.priority.rank,
                len(c.dependencies),
                natural_sort_key(c.ref),
            )
        )

        selected: list[ReadyTask] = []
        for candidate in candidates:
            if len(selected) >= limit:
                break
            if any(_conflicts(candidate, other) for other in selected):
                logger.debug(f"Skipping task {candidate.id}: depends on a selected task")
                continue
            selected.append(candidate)

        logger.debug(
            f"Selected {len(selected)} of {len(candidates)} ready tasks "
            f"(requested {limit})"
        )
        return selected

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _effective_concurrency(self, concurrency: int | str) -> int:
        """Validate and clamp the requested concurrency."""
        if isinstance(concurrency, bool):
            raise InvalidConcurrencyError(concurrency)
        if isinstance(concurrency, str):
            text = concurrency.strip()
            if not text.isdigit():
                raise InvalidConcurrencyError(concurrency)
            value = int(text)
        elif isinstance(concurrency, int):
            value = concurrency
        else:
            raise InvalidConcurrencyError(concurrency)

        if value < 1:
            raise InvalidConcurrencyError(concurrency)

        cap = self.config.max_concurrency
        if value > cap:
            logger.warning(
                f"Concurrency capped at maximum of {cap}. Requested: {value}, using: {cap}"
            )
            return cap
        return value

    def _collect_candidates(
        self,
        index: NodeIndex,
        completed: set[CanonicalRef],
        parent_statuses: frozenset[TaskStatus],
    ) -> list[ReadyTask]:
        candidates: list[ReadyTask] = []

        # Phase A: subtasks of eligible parents
        for task_node in index.tasks():
            if task_node.status not in parent_statuses:
                continue
            for node in index.subtasks_of(task_node.ref):
                if node.status not in SELECTABLE_SUBTASK_STATUSES:
                    continue
                ready = self._ready_task(node, completed)
                if ready is not None:
                    candidates.append(ready)

        # Phase B: top-level tasks, minus eligible parents with subtasks
        for node in index.tasks():
            if node.status not in SELECTABLE_TASK_STATUSES:
                continue
            if node.status in parent_statuses and node.item.subtasks:
                continue
            ready = self._ready_task(node, completed)
            if ready is not None:
                candidates.append(ready)

        return candidates

    def _ready_task(self, node: GraphNode, completed: set[CanonicalRef]) -> ReadyTask | None:
        """Build a ReadyTask if every dependency of ``node`` is complete."""
        refs = [ref for _, ref in node.dependency_refs()]
        if any(ref is None or ref not in completed for ref in refs):
            return None

        return ReadyTask(
            id=node.id,
            ref=node.ref,
            title=node.item.title,
            status=node.status,
            priority=self._priority(node),
            dependencies=[str(ref) for ref in refs],
            parent_id=node.ref.task_id if node.is_subtask else None,
        )

    def _priority(self, node: GraphNode) -> TaskPriority:
        """Own priority, else the parent's, else the configured default."""
        if node.item.priority is not None:
            return node.item.priority
        if node.parent is not None and node.parent.priority is not None:
            return node.parent.priority
        return self.config.default_priority


def _conflicts(candidate: ReadyTask, other: ReadyTask) -> bool:
    """Whether two tasks cannot be handed out in the same batch.

    True if either depends on the other, on the other's parent task, or on a
    subtask of the other.
    """
    return _depends_on(candidate, other) or _depends_on(other, candidate)


def _depends_on(task: ReadyTask, other: ReadyTask) -> bool:
    deps = set(task.dependencies)
    if other.id in deps:
        return True
    if other.ref.parent is not None and str(other.ref.parent) in deps:
        return True
    return any(dep.split(".")[0] == other.id for dep in deps if "." in dep)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def select_next(
    graph: TaskGraph,
    concurrency: int | str,
    eligible_parent_statuses: Iterable[TaskStatus | str] | None = None,
    config: SelectionConfig | None = None,
) -> list[ReadyTask]:
    """
    Select up to ``concurrency`` ready, mutually independent tasks.

    Args:
        graph: Task graph to select from.
        concurrency: Positive integer, clamped to ``config.max_concurrency``.
        eligible_parent_statuses: Parent statuses whose subtasks qualify.
        config: Selection defaults.

    Returns:
        Selected tasks; may be shorter than requested.

    Raises:
        InvalidConcurrencyError: If ``concurrency`` is not a positive integer.

    Example:
        >>> [t.id for t in select_next(graph, 2)]
        ['2']
    """
    return TaskSelector(config).select(graph, concurrency, eligible_parent_statuses)


def select_next_task(
    graph: TaskGraph,
    config: SelectionConfig | None = None,
) -> ReadyTask | None:
    """Return the single best task to work on next, or None."""
    selected = select_next(graph, 1, config=config)
    return selected[0] if selected else None
