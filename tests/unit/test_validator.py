"""Unit tests for dependency validation."""

from taskgraph.dependencies.identity import normalize
from taskgraph.dependencies.models import IssueKind
from taskgraph.dependencies.validator import (
    DependencyValidator,
    count_all_dependencies,
    detect_cycles,
    is_circular_dependency,
    validate,
)


class TestValidate:
    """Tests for validate."""

    def test_valid_graph(self, linear_chain_graph) -> None:
        """Test a healthy graph has no issues."""
        assert validate(linear_chain_graph) == []

    def test_valid_subtask_graph(self, subtask_graph) -> None:
        """Test sibling and cross-type references resolve."""
        assert validate(subtask_graph) == []

    def test_missing_dependency(self, make_graph) -> None:
        """Test references to unknown tasks and subtasks are reported."""
        graph = make_graph(
            {"id": 1, "dependencies": [99, "1.5"]},
        )

        issues = validate(graph)

        assert [i.kind for i in issues] == [IssueKind.MISSING_DEPENDENCY] * 2
        assert [i.dependency_id for i in issues] == ["99", "1.5"]
        assert all(i.subject_id == "1" for i in issues)

    def test_malformed_dependency(self, make_graph) -> None:
        """Test unparseable references are reported as missing."""
        graph = make_graph({"id": 1, "dependencies": ["1.2.3"]})

        issues = validate(graph)

        assert len(issues) == 1
        assert issues[0].kind == IssueKind.MISSING_DEPENDENCY
        assert issues[0].dependency_id == "1.2.3"

    def test_self_dependency(self, make_graph) -> None:
        """Test a node listing itself is reported once."""
        graph = make_graph({"id": 1, "dependencies": [1, "1"]})

        issues = validate(graph)

        assert len(issues) == 1
        assert issues[0].kind == IssueKind.SELF_DEPENDENCY
        assert issues[0].subject_id == "1"

    def test_subtask_self_dependency(self, make_graph) -> None:
        """Test a subtask depending on itself by bare id."""
        graph = make_graph(
            {"id": 4, "subtasks": [{"id": 1, "dependencies": [1]}]},
        )

        issues = validate(graph)

        assert [(i.kind, i.subject_id) for i in issues] == [
            (IssueKind.SELF_DEPENDENCY, "4.1"),
        ]

    def test_status_inversion(self, make_graph) -> None:
        """Test done tasks depending on unfinished work."""
        graph = make_graph(
            {"id": 1, "status": "pending"},
            {"id": 2, "status": "done", "dependencies": [1]},
        )

        issues = validate(graph)

        assert len(issues) == 1
        assert issues[0].kind == IssueKind.STATUS_INVERSION
        assert issues[0].subject_id == "2"
        assert issues[0].dependency_id == "1"

    def test_single_cycle_reported_once(self, cyclic_graph) -> None:
        """Test 1 -> 2 -> 3 -> 1 yields exactly one circular issue."""
        issues = validate(cyclic_graph)

        cycles = [i for i in issues if i.kind == IssueKind.CIRCULAR_DEPENDENCY]
        assert len(cycles) == 1
        assert set(cycles[0].cycle_members) == {"1", "2", "3"}
        assert "->" in cycles[0].reason

    def test_cycle_through_subtasks(self, make_graph) -> None:
        """Test cycles spanning subtasks of different parents."""
        graph = make_graph(
            {"id": 1, "subtasks": [{"id": 1, "dependencies": ["2.5"]}]},
            {"id": 2, "subtasks": [{"id": 5, "dependencies": ["1.1"]}]},
        )

        issues = validate(graph)

        assert len(issues) == 1
        assert issues[0].kind == IssueKind.CIRCULAR_DEPENDENCY
        assert set(issues[0].cycle_members) == {"1.1", "2.5"}

    def test_issue_order(self, make_graph) -> None:
        """Test passes report in order: missing, self, status, circular."""
        graph = make_graph(
            {"id": 1, "status": "done", "dependencies": [1, 2, 9]},
            {"id": 2, "dependencies": [3]},
            {"id": 3, "dependencies": [2]},
        )

        kinds = [i.kind for i in validate(graph)]

        assert kinds == [
            IssueKind.MISSING_DEPENDENCY,
            IssueKind.SELF_DEPENDENCY,
            IssueKind.STATUS_INVERSION,
            IssueKind.CIRCULAR_DEPENDENCY,
        ]

    def test_does_not_mutate(self, make_graph) -> None:
        """Test validation leaves the graph untouched."""
        graph = make_graph({"id": 1, "dependencies": [1, 9, 9]})
        before = graph.model_dump()

        validate(graph)

        assert graph.model_dump() == before


class TestAdjacency:
    """Tests for DependencyValidator.adjacency."""

    def test_excludes_bad_edges(self, make_graph) -> None:
        """Test dangling, malformed and self edges are left out."""
        graph = make_graph(
            {"id": 1, "dependencies": [1, 2, 2, 9, "x.y.z"]},
            {"id": 2},
        )

        adjacency = DependencyValidator(graph).adjacency()

        assert adjacency == {normalize(1): [normalize(2)], normalize(2): []}


class TestDetectCycles:
    """Tests for detect_cycles."""

    def test_no_cycles(self) -> None:
        """Test an acyclic graph."""
        a, b, c = normalize(1), normalize(2), normalize(3)

        assert detect_cycles({a: [b], b: [c], c: []}) == []

    def test_two_disjoint_cycles(self) -> None:
        """Test every distinct cycle is found."""
        a, b, c, d = normalize(1), normalize(2), normalize(3), normalize(4)

        cycles = detect_cycles({a: [b], b: [a], c: [d], d: [c]})

        assert [set(cycle) for cycle in cycles] == [{a, b}, {c, d}]

    def test_dangling_targets_skipped(self) -> None:
        """Test targets that are not keys are ignored."""
        a = normalize(1)

        assert detect_cycles({a: [normalize(9)]}) == []


class TestIsCircularDependency:
    """Tests for is_circular_dependency."""

    def test_would_close_cycle(self, linear_chain_graph) -> None:
        """Test 1 depending on 3 closes 1 <- 2 <- 3."""
        assert is_circular_dependency(linear_chain_graph, 1, 3)

    def test_safe_edge(self, linear_chain_graph) -> None:
        """Test 3 depending on 1 is fine."""
        assert not is_circular_dependency(linear_chain_graph, 3, 1)

    def test_same_node(self, linear_chain_graph) -> None:
        """Test an edge to itself counts as circular."""
        assert is_circular_dependency(linear_chain_graph, 2, "2")

    def test_through_subtasks(self, subtask_graph) -> None:
        """Test reachability through subtask references."""
        assert is_circular_dependency(subtask_graph, "2.1", 3)
        assert not is_circular_dependency(subtask_graph, 3, "2.3")


def test_count_all_dependencies(subtask_graph) -> None:
    """Test dependency entries are counted across tasks and subtasks."""
    assert count_all_dependencies(subtask_graph) == 4
