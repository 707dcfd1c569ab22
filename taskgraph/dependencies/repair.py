"""Dependency repair - idempotent fixers and single-edge mutations.

Every fixer returns the list of ``RepairAction`` records it applied; an
empty list means the graph was already clean and nothing changed. Fixers
never raise. Circular dependencies and status inversions are never
resolved automatically, since choosing which edge to drop is a product
decision; they are handed back to the caller as residual issues.
"""

from collections.abc import Callable

from loguru import logger

from taskgraph.core.exceptions import (
    CircularDependencyError,
    SelfDependencyError,
    TaskNotFoundError,
)
from taskgraph.dependencies.identity import GraphNode, NodeIndex, storage_form, try_normalize
from taskgraph.dependencies.models import (
    CanonicalRef,
    ChangeOutcome,
    DependencyChange,
    DependencyRef,
    FixResult,
    FixStats,
    IssueKind,
    RepairAction,
    RepairKind,
    TaskGraph,
)
from taskgraph.dependencies.validator import is_circular_dependency, validate

# (stored dependency, canonical form or None) -> remove?
_Predicate = Callable[[DependencyRef, CanonicalRef | None], bool]


# =============================================================================
# FIXERS
# =============================================================================


def remove_duplicate_dependencies(graph: TaskGraph) -> list[RepairAction]:
    """
    De-duplicate every dependency list by canonical form.

    The first occurrence of each reference is kept, so ``[1, "1", 2]``
    becomes ``[1, 2]``.

    Args:
        graph: Task graph, mutated in place.

    Returns:
        One action per node that lost duplicates.
    """
    actions: list[RepairAction] = []

    for node in NodeIndex(graph):
        seen: set[object] = set()

        def is_duplicate(raw: DependencyRef, ref: CanonicalRef | None) -> bool:
            key = ref if ref is not None else ("raw", str(raw).strip())
            if key in seen:
                return True
            seen.add(key)
            return False

        removed = _prune(node, is_duplicate)
        if removed:
            logger.info(f"Removing duplicate dependencies from task {node.id}: {removed}")
            actions.append(
                RepairAction(
                    kind=RepairKind.DUPLICATE_REMOVED,
                    subject_id=node.id,
                    removed=removed,
                    reason=f"Duplicate dependencies removed from task {node.id}",
                )
            )

    return actions


def cleanup_subtask_dependencies(graph: TaskGraph) -> list[RepairAction]:
    """
    Remove dangling references on subtasks and to deleted subtasks.

    A subtask loses every dependency that does not resolve. A task loses
    references to subtasks that no longer exist, including subtasks of a
    deleted parent.

    Args:
        graph: Task graph, mutated in place.

    Returns:
        One action per node that lost references.
    """
    index = NodeIndex(graph)
    actions: list[RepairAction] = []

    for node in index:
        if node.is_subtask:
            def dangling(raw: DependencyRef, ref: CanonicalRef | None) -> bool:
                return ref is None or ref not in index
        else:
            def dangling(raw: DependencyRef, ref: CanonicalRef | None) -> bool:
                return ref is not None and ref.is_subtask and ref not in index

        removed = _prune(node, dangling)
        if removed:
            logger.info(
                f"Removing invalid subtask dependencies from task {node.id}: {removed} "
                "(subtask does not exist)"
            )
            actions.append(
                RepairAction(
                    kind=RepairKind.MISSING_REMOVED,
                    subject_id=node.id,
                    removed=removed,
                    reason=f"References to missing subtasks removed from task {node.id}",
                )
            )

    return actions


def ensure_at_least_one_independent_subtask(graph: TaskGraph) -> list[RepairAction]:
    """
    Guarantee every parent keeps a subtask that can be started.

    If none of a task's subtasks has an empty dependency list, the first
    subtask (declaration order) has its dependencies cleared. The action
    names every reference that was dropped so callers can report it.

    Args:
        graph: Task graph, mutated in place.

    Returns:
        One action per parent whose first subtask was cleared.
    """
    actions: list[RepairAction] = []

    for task_node in NodeIndex(graph).tasks():
        subtasks = task_node.item.subtasks
        if not subtasks:
            continue
        if any(not subtask.dependencies for subtask in subtasks):
            continue

        first = subtasks[0]
        ref = try_normalize(first.id, task_node.ref.task_id)
        subject_id = str(ref) if ref is not None else f"{task_node.ref.task_id}.{first.id}"
        removed = [str(dep) for dep in first.dependencies]
        first.dependencies = []

        logger.info(
            f"Ensuring at least one independent subtask: clearing dependencies "
            f"{removed} of subtask {subject_id}"
        )
        actions.append(
            RepairAction(
                kind=RepairKind.DEPENDENCIES_CLEARED,
                subject_id=subject_id,
                removed=removed,
                reason=f"Task {task_node.id} had no subtask without dependencies",
            )
        )

    return actions


def validate_and_fix_dependencies(graph: TaskGraph) -> FixResult:
    """
    Validate the graph, apply every safe fix and report what changed.

    Steps:
        1. Validate.
        2. Remove dangling references named by missing-dependency issues.
        3. Remove self-references named by self-dependency issues.
        4. Remove duplicates, then dangling subtask references.
        5. Ensure each parent has an independent subtask.
        6. Re-validate; what is left (cycles, status inversions) is returned
           as ``residual_issues`` for the caller to resolve.

    Args:
        graph: Task graph, mutated in place.

    Returns:
        FixResult; ``bool(result)`` is True when anything changed.

    Example:
        >>> result = validate_and_fix_dependencies(graph)
        >>> result.changed, result.stats.total_fixed
        (True, 3)
        >>> validate_and_fix_dependencies(graph).changed
        False
    """
    logger.debug("Validating and fixing dependencies...")

    issues = validate(graph)
    index = NodeIndex(graph)
    actions: list[RepairAction] = []

    missing_subjects = _subjects(issues, IssueKind.MISSING_DEPENDENCY)
    self_subjects = _subjects(issues, IssueKind.SELF_DEPENDENCY)

    for node in index:
        if node.id not in missing_subjects:
            continue
        removed = _prune(node, lambda raw, ref: ref is None or ref not in index)
        if removed:
            logger.info(f"Removing non-existent dependencies from task {node.id}: {removed}")
            actions.append(
                RepairAction(
                    kind=RepairKind.MISSING_REMOVED,
                    subject_id=node.id,
                    removed=removed,
                    reason=f"Dependencies of task {node.id} do not exist",
                )
            )

    for node in index:
        if node.id not in self_subjects:
            continue
        removed = _prune(node, lambda raw, ref, own=node.ref: ref == own)
        if removed:
            logger.info(f"Removing self-dependency from task {node.id}")
            actions.append(
                RepairAction(
                    kind=RepairKind.SELF_REMOVED,
                    subject_id=node.id,
                    removed=removed,
                    reason=f"Task {node.id} depended on itself",
                )
            )

    actions.extend(remove_duplicate_dependencies(graph))
    actions.extend(cleanup_subtask_dependencies(graph))
    actions.extend(ensure_at_least_one_independent_subtask(graph))

    residual = validate(graph)
    if residual:
        logger.warning(
            f"{len(residual)} dependency issues need manual resolution: "
            + ", ".join(sorted({issue.kind.value for issue in residual}))
        )

    result = FixResult(
        changed=bool(actions),
        actions=actions,
        residual_issues=residual,
        stats=_collect_stats(actions, index),
    )
    if result.changed:
        logger.info(f"Fixed {result.stats.total_fixed} dependency issues")
    else:
        logger.debug("No changes needed to fix dependencies")
    return result


# =============================================================================
# SINGLE-EDGE MUTATIONS
# =============================================================================


def add_dependency(
    graph: TaskGraph,
    subject: DependencyRef | CanonicalRef,
    dependency: DependencyRef | CanonicalRef,
    check_cycles: bool = False,
) -> DependencyChange:
    """
    Make ``subject`` depend on ``dependency``.

    Args:
        graph: Task graph, mutated in place.
        subject: Absolute reference of the dependent task or subtask.
        dependency: Absolute reference of the task or subtask to depend on.
        check_cycles: Refuse edges that would close a cycle.

    Returns:
        DependencyChange with outcome ``added`` or ``already-exists``.

    Raises:
        TaskNotFoundError: If either reference does not resolve.
        SelfDependencyError: If both references name the same node.
        CircularDependencyError: If ``check_cycles`` and the edge closes a cycle.
        InvalidReferenceError: If a subtask would depend on a numeric task id,
            which cannot be stored without reading back as a sibling.
    """
    index = NodeIndex(graph)
    node = _require(index, subject)
    target = _require(index, dependency)

    if node.ref == target.ref:
        raise SelfDependencyError(node.id)

    if any(ref == target.ref for _, ref in node.dependency_refs()):
        message = f"Dependency {target.id} already exists in task {node.id}"
        logger.warning(message)
        return DependencyChange(
            outcome=ChangeOutcome.ALREADY_EXISTS,
            subject_id=node.id,
            dependency_id=target.id,
            message=message,
        )

    if check_cycles and is_circular_dependency(graph, node.ref, target.ref):
        raise CircularDependencyError(node.id, target.id)

    node.item.dependencies.append(storage_form(node, target.ref))

    message = f"Added dependency {target.id} to task {node.id}"
    logger.info(message)
    return DependencyChange(
        outcome=ChangeOutcome.ADDED,
        subject_id=node.id,
        dependency_id=target.id,
        message=message,
    )


def remove_dependency(
    graph: TaskGraph,
    subject: DependencyRef | CanonicalRef,
    dependency: DependencyRef | CanonicalRef,
) -> DependencyChange:
    """
    Remove ``dependency`` from ``subject``'s dependency list.

    Every entry with the same canonical form is removed. The dependency
    itself does not need to exist, so dangling references can be removed
    by hand.

    Args:
        graph: Task graph, mutated in place.
        subject: Absolute reference of the dependent task or subtask.
        dependency: Absolute reference to remove.

    Returns:
        DependencyChange with outcome ``removed`` or ``not-present``.

    Raises:
        TaskNotFoundError: If the subject does not resolve.
    """
    index = NodeIndex(graph)
    node = _require(index, subject)
    wanted = try_normalize(dependency)
    dependency_id = str(wanted) if wanted is not None else str(dependency).strip()

    if wanted is not None:
        removed = _prune(node, lambda raw, ref: ref == wanted)
    else:
        removed = _prune(
            node,
            lambda raw, ref: ref is None and str(raw).strip() == dependency_id,
        )

    if not removed:
        message = f"Task {node.id} does not depend on {dependency_id}, no changes made"
        logger.info(message)
        return DependencyChange(
            outcome=ChangeOutcome.NOT_PRESENT,
            subject_id=node.id,
            dependency_id=dependency_id,
            message=message,
        )

    message = f"Removed dependency {dependency_id} from task {node.id}"
    logger.info(message)
    return DependencyChange(
        outcome=ChangeOutcome.REMOVED,
        subject_id=node.id,
        dependency_id=dependency_id,
        message=message,
    )


# =============================================================================
# HELPERS
# =============================================================================


def _require(index: NodeIndex, ref: DependencyRef | CanonicalRef) -> GraphNode:
    node = index.get(try_normalize(ref))
    if node is None:
        raise TaskNotFoundError(ref)
    return node


def _prune(node: GraphNode, should_remove: _Predicate) -> list[str]:
    """Drop matching dependencies from a node; return the removed entries."""
    kept: list[DependencyRef] = []
    removed: list[str] = []
    for raw, ref in node.dependency_refs():
        if should_remove(raw, ref):
            removed.append(str(raw))
        else:
            kept.append(raw)
    if removed:
        node.item.dependencies = kept
    return removed


def _subjects(issues: list, kind: IssueKind) -> set[str]:
    return {issue.subject_id for issue in issues if issue.kind == kind}


def _collect_stats(actions: list[RepairAction], index: NodeIndex) -> FixStats:
    stats = FixStats()
    fixed_tasks: set[str] = set()
    fixed_subtasks: set[str] = set()

    for action in actions:
        if action.kind == RepairKind.MISSING_REMOVED:
            stats.missing_dependencies_removed += len(action.removed)
        elif action.kind == RepairKind.SELF_REMOVED:
            stats.self_dependencies_removed += len(action.removed)
        elif action.kind == RepairKind.DUPLICATE_REMOVED:
            stats.duplicate_dependencies_removed += len(action.removed)
        elif action.kind == RepairKind.DEPENDENCIES_CLEARED:
            stats.independent_subtasks_restored += 1

        node = index.get(try_normalize(action.subject_id))
        if node is not None and not node.is_subtask:
            fixed_tasks.add(action.subject_id)
        else:
            fixed_subtasks.add(action.subject_id)

    stats.tasks_fixed = len(fixed_tasks)
    stats.subtasks_fixed = len(fixed_subtasks)
    return stats
