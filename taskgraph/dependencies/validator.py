"""Dependency validation for task graphs.

This module walks a task graph and reports structural problems in its
dependency relation: references to nodes that do not exist, nodes that
depend on themselves, completed nodes that depend on unfinished work,
and cycles. Findings are returned as ``Issue`` records; the graph is
never mutated and nothing is raised.
"""

from collections.abc import Iterable

from loguru import logger

from taskgraph.dependencies.identity import NodeIndex, try_normalize
from taskgraph.dependencies.models import (
    CanonicalRef,
    DependencyRef,
    Issue,
    IssueKind,
    TaskGraph,
    TaskStatus,
)


class DependencyValidator:
    """
    Validate the dependency relation of a task graph.

    Runs four passes over a single ``NodeIndex``: existence,
    self-reference, status inversion and cycle detection. Tasks and
    subtasks are treated uniformly by canonical reference.

    Example:
        >>> validator = DependencyValidator(graph)
        >>> issues = validator.validate()
        >>> [i.kind for i in issues]
        [<IssueKind.CIRCULAR_DEPENDENCY: 'circular-dependency'>]
    """

    def __init__(self, graph: TaskGraph) -> None:
        """
        Initialize the validator.

        Args:
            graph: Task graph to inspect.
        """
        self._graph = graph
        self._index = NodeIndex(graph)

    def validate(self) -> list[Issue]:
        """
        Run every validation pass.

        Returns:
            Issues in pass order (missing, self, status, circular).
            An empty list means the graph is healthy.
        """
        logger.debug(f"Validating dependencies for {len(self._index)} nodes")

        issues: list[Issue] = []
        issues.extend(self._check_existence())
        issues.extend(self._check_self_references())
        issues.extend(self._check_status_inversions())
        issues.extend(self._check_cycles())

        if issues:
            logger.debug(f"Found {len(issues)} dependency issues")
        return issues

    # =========================================================================
    # PASSES
    # =========================================================================

    def _check_existence(self) -> list[Issue]:
        """Report dependencies that do not resolve (or cannot be parsed)."""
        issues: list[Issue] = []
        for node in self._index:
            for raw, ref in node.dependency_refs():
                if ref is None:
                    issues.append(
                        Issue(
                            kind=IssueKind.MISSING_DEPENDENCY,
                            subject_id=node.id,
                            dependency_id=str(raw),
                            reason=f"Task {node.id} has a malformed dependency reference {raw!r}",
                        )
                    )
                elif ref not in self._index:
                    issues.append(
                        Issue(
                            kind=IssueKind.MISSING_DEPENDENCY,
                            subject_id=node.id,
                            dependency_id=str(ref),
                            reason=f"Task {node.id} depends on non-existent task {ref}",
                        )
                    )
        return issues

    def _check_self_references(self) -> list[Issue]:
        """Report nodes that list themselves as a dependency."""
        issues: list[Issue] = []
        for node in self._index:
            if any(ref == node.ref for _, ref in node.dependency_refs()):
                issues.append(
                    Issue(
                        kind=IssueKind.SELF_DEPENDENCY,
                        subject_id=node.id,
                        dependency_id=node.id,
                        reason=f"Task {node.id} depends on itself",
                    )
                )
        return issues

    def _check_status_inversions(self) -> list[Issue]:
        """Report done nodes depending on nodes that are not done."""
        issues: list[Issue] = []
        for node in self._index:
            if node.status != TaskStatus.DONE:
                continue
            for ref in _unique(ref for _, ref in node.dependency_refs()):
                if ref == node.ref:
                    continue
                dependency = self._index.get(ref)
                if dependency is None or dependency.status == TaskStatus.DONE:
                    continue
                issues.append(
                    Issue(
                        kind=IssueKind.STATUS_INVERSION,
                        subject_id=node.id,
                        dependency_id=dependency.id,
                        reason=(
                            f"Task {node.id} is done but depends on task "
                            f"{dependency.id} which is {dependency.status.value}"
                        ),
                    )
                )
        return issues

    def _check_cycles(self) -> list[Issue]:
        """Report each distinct cycle once, with all of its members."""
        cycles = detect_cycles(self.adjacency())
        return [
            Issue(
                kind=IssueKind.CIRCULAR_DEPENDENCY,
                subject_id=str(cycle[0]),
                cycle_members=[str(ref) for ref in cycle],
                reason="Circular dependency: "
                + " -> ".join(str(ref) for ref in [*cycle, cycle[0]]),
            )
            for cycle in cycles
        ]

    # =========================================================================
    # GRAPH VIEW
    # =========================================================================

    def adjacency(self) -> dict[CanonicalRef, list[CanonicalRef]]:
        """
        Build the dependency graph keyed by canonical reference.

        Dangling, malformed and self edges are left out; they are reported
        by the other passes.

        Returns:
            Node reference -> ordered, de-duplicated dependency references.
        """
        graph: dict[CanonicalRef, list[CanonicalRef]] = {}
        for node in self._index:
            graph[node.ref] = [
                ref for ref in _unique(ref for _, ref in node.dependency_refs())
                if ref != node.ref and ref in self._index
            ]
        return graph


# =============================================================================
# CYCLE DETECTION
# =============================================================================


def detect_cycles(
    graph: dict[CanonicalRef, list[CanonicalRef]],
) -> list[list[CanonicalRef]]:
    """
    Detect cycles in a dependency graph using three-colour DFS.

    When a gray node is reached again, the path from that node to the top
    of the DFS stack is one cycle. Traversal continues after a cycle is
    found so every distinct cycle (by member set) is reported once.

    Args:
        graph: Node -> dependencies. Targets missing from the keys are skipped.

    Returns:
        Cycles in discovery order, each starting at the revisited node.

    Example:
        >>> a, b = CanonicalRef(task_id="1"), CanonicalRef(task_id="2")
        >>> detect_cycles({a: [b], b: [a]})
        [[CanonicalRef(task_id='1', subtask_id=None), CanonicalRef(task_id='2', subtask_id=None)]]
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    colors: dict[CanonicalRef, int] = {node: WHITE for node in graph}
    cycles: list[list[CanonicalRef]] = []
    seen: set[frozenset[CanonicalRef]] = set()

    def dfs(node: CanonicalRef, path: list[CanonicalRef]) -> None:
        colors[node] = GRAY
        path.append(node)

        for neighbor in graph.get(node, []):
            if neighbor not in colors:
                continue  # Dangling edge, reported by the existence pass
            if colors[neighbor] == GRAY:
                cycle = path[path.index(neighbor):]
                members = frozenset(cycle)
                if members not in seen:
                    seen.add(members)
                    cycles.append(list(cycle))
            elif colors[neighbor] == WHITE:
                dfs(neighbor, path)

        path.pop()
        colors[node] = BLACK

    for node in graph:
        if colors[node] == WHITE:
            dfs(node, [])

    return cycles


def _unique(refs: Iterable[CanonicalRef | None]) -> list[CanonicalRef]:
    result: list[CanonicalRef] = []
    for ref in refs:
        if ref is not None and ref not in result:
            result.append(ref)
    return result


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def validate(graph: TaskGraph) -> list[Issue]:
    """
    Validate a task graph's dependencies.

    Args:
        graph: Task graph to inspect.

    Returns:
        List of issues; empty when the graph is healthy.

    Example:
        >>> issues = validate(graph)
        >>> if not issues:
        ...     print("All dependencies are valid")
    """
    return DependencyValidator(graph).validate()


def is_circular_dependency(
    graph: TaskGraph,
    subject: DependencyRef | CanonicalRef,
    dependency: DependencyRef | CanonicalRef,
) -> bool:
    """
    Check whether making ``subject`` depend on ``dependency`` closes a cycle.

    True when ``dependency`` already reaches ``subject`` through existing
    edges, or when both are the same node.

    Args:
        graph: Task graph to inspect.
        subject: Absolute reference of the dependent node.
        dependency: Absolute reference of the prospective dependency.

    Returns:
        True if the new edge would create a circular dependency.
    """
    subject_ref = try_normalize(subject)
    dependency_ref = try_normalize(dependency)
    if subject_ref is None or dependency_ref is None:
        return False
    if subject_ref == dependency_ref:
        return True

    adjacency = DependencyValidator(graph).adjacency()
    stack = [dependency_ref]
    visited: set[CanonicalRef] = set()
    while stack:
        current = stack.pop()
        if current == subject_ref:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(adjacency.get(current, []))
    return False


def count_all_dependencies(graph: TaskGraph) -> int:
    """Count dependency entries across all tasks and subtasks."""
    return sum(
        len(task.dependencies) + sum(len(st.dependencies) for st in task.subtasks)
        for task in graph.tasks
    )
