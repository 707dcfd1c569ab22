"""Integration tests for the validate -> fix -> select workflow.

These tests drive the engine the way a caller does: load a task file,
repair it, pick work, mark work done and pick again.
"""

import json

import pytest

from taskgraph.dependencies import (
    IssueKind,
    TaskGraph,
    TaskStatus,
    add_dependency,
    cleanup_subtask_dependencies,
    remove_dependency,
    select_next,
    validate,
    validate_and_fix_dependencies,
)

pytestmark = pytest.mark.integration


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def project_graph() -> TaskGraph:
    """A small project with a few corrupt references."""
    return TaskGraph.model_validate_json(
        json.dumps(
            {
                "tasks": [
                    {"id": 1, "title": "Initialize project", "status": "done"},
                    {
                        "id": 2,
                        "title": "Create User model",
                        "priority": "high",
                        "dependencies": [1, "1", 17],
                    },
                    {
                        "id": 3,
                        "title": "Implement auth service",
                        "status": "in-progress",
                        "dependencies": [1],
                        "subtasks": [
                            {"id": 1, "title": "Hash passwords", "dependencies": ["2.9"]},
                            {"id": 2, "title": "Login endpoint", "dependencies": [1]},
                        ],
                    },
                    {
                        "id": 4,
                        "title": "Create API endpoints",
                        "dependencies": [2, "3.2", 4],
                    },
                ]
            }
        )
    )


# =============================================================================
# TEST WORKFLOW
# =============================================================================


class TestDependencyWorkflow:
    """End-to-end dependency maintenance."""

    def test_repair_then_select(self, project_graph: TaskGraph) -> None:
        """Test a corrupt graph is repaired and then scheduled."""
        kinds = {issue.kind for issue in validate(project_graph)}
        assert kinds == {IssueKind.MISSING_DEPENDENCY, IssueKind.SELF_DEPENDENCY}

        result = validate_and_fix_dependencies(project_graph)

        assert result.changed
        assert result.residual_issues == []
        assert validate(project_graph) == []
        assert project_graph.get_task(2).dependencies == [1]
        assert project_graph.get_task(4).dependencies == [2, "3.2"]

        assert project_graph.get_task(3).get_subtask(1).dependencies == []

        selected = [t.id for t in select_next(project_graph, 5)]
        assert selected == ["2", "3.1"]

    def test_progress_unlocks_work(self, project_graph: TaskGraph) -> None:
        """Test finishing tasks makes their dependents ready."""
        validate_and_fix_dependencies(project_graph)

        project_graph.get_task(2).status = TaskStatus.DONE
        project_graph.get_task(3).get_subtask(1).status = TaskStatus.DONE

        selected = [t.id for t in select_next(project_graph, 5)]
        assert selected == ["3.2"]

        remove_dependency(project_graph, 4, "3.2")
        selected = [t.id for t in select_next(project_graph, 5)]
        assert selected == ["3.2", "4"]

    def test_fix_is_idempotent(self, project_graph: TaskGraph) -> None:
        """Test running the fixer twice changes nothing the second time."""
        validate_and_fix_dependencies(project_graph)
        snapshot = project_graph.to_dict()

        assert not validate_and_fix_dependencies(project_graph)
        assert project_graph.to_dict() == snapshot

    def test_cross_type_dependency(self, make_graph) -> None:
        """Test a task depending on a done subtask, then on a deleted one."""
        graph = make_graph(
            {"id": 1, "dependencies": ["2.1"]},
            {"id": 2, "status": "in-progress", "subtasks": [{"id": 1, "status": "done"}]},
        )

        assert "1" in [t.id for t in select_next(graph, 3)]

        graph.get_task(2).subtasks.clear()
        assert [i.kind for i in validate(graph)] == [IssueKind.MISSING_DEPENDENCY]

        actions = cleanup_subtask_dependencies(graph)

        assert [a.subject_id for a in actions] == ["1"]
        assert graph.get_task(1).dependencies == []
        assert validate(graph) == []

    def test_edit_round_trip(self, tmp_path, project_graph: TaskGraph) -> None:
        """Test edits survive serialization."""
        validate_and_fix_dependencies(project_graph)
        add_dependency(project_graph, 2, 4)

        path = tmp_path / "tasks.json"
        path.write_text(json.dumps(project_graph.to_dict(), indent=2))
        reloaded = TaskGraph.model_validate_json(path.read_text())

        assert reloaded.get_task(2).dependencies == [1, 4]
        assert reloaded.get_task(3).get_subtask(2).dependencies == [1]
        assert [i.kind for i in validate(reloaded)] == [IssueKind.CIRCULAR_DEPENDENCY]
