"""Identity resolver - canonical task and subtask references.

Every comparison between task references in the engine goes through
``CanonicalRef``. This module turns the caller's ids (ints, strings,
``"parent.child"`` strings, legacy floats) into canonical references and
indexes the graph's nodes by them.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass

from loguru import logger

from taskgraph.core.exceptions import InvalidReferenceError
from taskgraph.dependencies.models import (
    CanonicalRef,
    DependencyRef,
    Subtask,
    Task,
    TaskGraph,
    TaskId,
    TaskStatus,
)

_DIGITS = re.compile(r"^\d+$")


# =============================================================================
# NORMALIZATION
# =============================================================================


def normalize_id(value: object) -> str:
    """Normalize a single id part (task id or subtask id) to a string.

    Args:
        value: An int or string id.

    Returns:
        The trimmed string form.

    Raises:
        InvalidReferenceError: If the value is empty, dotted or not an id.
    """
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidReferenceError(value, "ids must be integers or strings")
    text = str(value).strip()
    if not text:
        raise InvalidReferenceError(value, "empty id")
    if "." in text:
        raise InvalidReferenceError(value, "an id part cannot contain a dot")
    if _DIGITS.match(text):
        # "007" and 7 name the same task
        text = str(int(text))
    return text


def normalize(
    ref: DependencyRef | CanonicalRef,
    parent_id: TaskId | None = None,
) -> CanonicalRef:
    """Normalize a task reference to its canonical form.

    Args:
        ref: Bare id (``3``, ``"3"``), compound id (``"3.2"``, ``3.2``) or an
            existing ``CanonicalRef``.
        parent_id: Set when ``ref`` comes from a subtask's own dependency
            list; bare numeric ids then name sibling subtasks, whether or
            not the sibling exists.

    Returns:
        The canonical reference.

    Raises:
        InvalidReferenceError: On malformed syntax (e.g. more than one dot).

    Example:
        >>> str(normalize("3.2")) == str(normalize(3.2))
        True
        >>> str(normalize(2, parent_id=5))
        '5.2'
    """
    if isinstance(ref, CanonicalRef):
        return ref
    if isinstance(ref, bool) or not isinstance(ref, (int, float, str)):
        raise InvalidReferenceError(ref, "references must be integers or strings")

    if isinstance(ref, float):
        if ref != ref or ref in (float("inf"), float("-inf")):
            raise InvalidReferenceError(ref, "not a finite number")
        text = str(int(ref)) if ref.is_integer() else repr(ref)
    else:
        text = str(ref).strip()

    if not text:
        raise InvalidReferenceError(ref, "empty reference")

    parts = text.split(".")
    if len(parts) > 2:
        raise InvalidReferenceError(ref, "more than one dot")
    if len(parts) == 2:
        return CanonicalRef(
            task_id=normalize_id(parts[0]),
            subtask_id=normalize_id(parts[1]),
        )

    bare = normalize_id(text)
    if parent_id is not None and _DIGITS.match(bare):
        return CanonicalRef(task_id=normalize_id(parent_id), subtask_id=bare)
    return CanonicalRef(task_id=bare)


def try_normalize(
    ref: DependencyRef | CanonicalRef,
    parent_id: TaskId | None = None,
) -> CanonicalRef | None:
    """Like ``normalize`` but returns None for malformed references."""
    try:
        return normalize(ref, parent_id)
    except InvalidReferenceError:
        return None


def natural_sort_key(ref: CanonicalRef | str) -> tuple:
    """Numeric-aware ordering key: ``2 < 10``, ``3 < 3.1 < 3.2 < 4``."""
    text = str(ref)
    key = []
    for part in text.split("."):
        if _DIGITS.match(part):
            key.append((0, int(part), ""))
        else:
            key.append((1, 0, part))
    return tuple(key)


# =============================================================================
# NODE INDEX
# =============================================================================


@dataclass
class GraphNode:
    """A task or subtask in the graph, addressed by its canonical reference."""

    ref: CanonicalRef
    item: Task | Subtask
    parent: Task | None = None

    @property
    def is_subtask(self) -> bool:
        return self.parent is not None

    @property
    def id(self) -> str:
        return str(self.ref)

    @property
    def status(self) -> TaskStatus:
        return self.item.status

    @property
    def dependencies(self) -> list[DependencyRef]:
        return self.item.dependencies

    def normalize_dependency(self, dep: DependencyRef) -> CanonicalRef | None:
        """Canonical form of one of this node's dependencies (None if malformed)."""
        if self.parent is None:
            return try_normalize(dep)
        return try_normalize(dep, self.parent.id)

    def dependency_refs(self) -> list[tuple[DependencyRef, CanonicalRef | None]]:
        """Pairs of (stored dependency, canonical form or None)."""
        return [(dep, self.normalize_dependency(dep)) for dep in self.item.dependencies]


class NodeIndex:
    """Arena of graph nodes keyed by canonical reference.

    Nodes are stored in declaration order: each task followed by its
    subtasks. Built once per engine call; rebuild after structural edits
    (adding or deleting tasks), not after dependency edits.

    Example:
        >>> index = NodeIndex(graph)
        >>> index.get(normalize("2.1")).status
        <TaskStatus.DONE: 'done'>
    """

    def __init__(self, graph: TaskGraph) -> None:
        self._nodes: list[GraphNode] = []
        self._positions: dict[CanonicalRef, int] = {}

        for task in graph.tasks:
            task_ref = try_normalize(task.id)
            if task_ref is None or task_ref.is_subtask:
                continue
            self._add(GraphNode(ref=task_ref, item=task))

            for subtask in task.subtasks:
                subtask_id = _safe_id(subtask.id)
                if subtask_id is None:
                    continue
                ref = CanonicalRef(task_id=task_ref.task_id, subtask_id=subtask_id)
                self._add(GraphNode(ref=ref, item=subtask, parent=task))

    def _add(self, node: GraphNode) -> None:
        if node.ref in self._positions:
            logger.warning(f"Duplicate id {node.id}: keeping the first declaration")
            return
        self._positions[node.ref] = len(self._nodes)
        self._nodes.append(node)

    def get(self, ref: CanonicalRef | None) -> GraphNode | None:
        """Get a node by canonical reference."""
        if ref is None:
            return None
        position = self._positions.get(ref)
        return None if position is None else self._nodes[position]

    def __contains__(self, ref: object) -> bool:
        return ref in self._positions

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def tasks(self) -> list[GraphNode]:
        """Top-level task nodes in declaration order."""
        return [node for node in self._nodes if not node.is_subtask]

    def subtasks_of(self, task_ref: CanonicalRef) -> list[GraphNode]:
        """Subtask nodes of a task, in declaration order."""
        return [
            node for node in self._nodes
            if node.is_subtask and node.ref.task_id == task_ref.task_id
        ]


def _safe_id(value: object) -> str | None:
    try:
        return normalize_id(value)
    except InvalidReferenceError:
        return None


# =============================================================================
# LOOKUP
# =============================================================================


def resolve(graph: TaskGraph, ref: DependencyRef | CanonicalRef) -> GraphNode | None:
    """Look up the task or subtask a reference names.

    Args:
        graph: Task graph to search.
        ref: Absolute reference (bare ids name top-level tasks).

    Returns:
        The node, or None when it does not exist or the reference is malformed.
    """
    canonical = try_normalize(ref)
    if canonical is None:
        return None
    return NodeIndex(graph).get(canonical)


def exists(graph: TaskGraph, ref: DependencyRef | CanonicalRef) -> bool:
    """Check whether a reference resolves to a task or subtask."""
    return resolve(graph, ref) is not None


def storage_form(node: GraphNode, dependency: CanonicalRef) -> DependencyRef:
    """Value to store in ``node``'s dependency list for ``dependency``.

    Task references are stored bare (as ints when numeric), subtask
    references as ``"parent.child"`` strings.

    Raises:
        InvalidReferenceError: If ``node`` is a subtask and ``dependency`` is
            a numeric task id, which would be read back as a sibling subtask.
    """
    if node.is_subtask and not dependency.is_subtask:
        if _DIGITS.match(dependency.task_id):
            raise InvalidReferenceError(
                str(dependency),
                f"a subtask of task {node.ref.task_id} cannot depend on a numeric task id",
            )
    if dependency.is_subtask:
        return str(dependency)
    if _DIGITS.match(dependency.task_id):
        return int(dependency.task_id)
    return dependency.task_id
