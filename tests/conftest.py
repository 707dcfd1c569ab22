"""Pytest configuration and shared fixtures."""

import json
import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from loguru import logger

from taskgraph.dependencies.models import TaskGraph

# Set test environment
os.environ.setdefault("TASKGRAPH_LOG_LEVEL", "DEBUG")


@pytest.fixture
def mock_settings() -> Generator:
    """Provide fresh settings for testing."""
    from taskgraph.core.config import clear_settings_cache

    # Clear any cached settings
    clear_settings_cache()

    yield

    # Clear again after test
    clear_settings_cache()


@pytest.fixture
def reset_logger() -> Generator:
    """Drop handlers added during a test (the CLI reconfigures loguru)."""
    yield
    logger.remove()


@pytest.fixture
def make_graph() -> Callable[..., TaskGraph]:
    """Build a TaskGraph from plain task dictionaries."""

    def _make(*tasks: dict[str, Any]) -> TaskGraph:
        return TaskGraph.model_validate({"tasks": list(tasks)})

    return _make


@pytest.fixture
def linear_chain_graph(make_graph: Callable[..., TaskGraph]) -> TaskGraph:
    """Tasks 1 (done) <- 2 <- 3."""
    return make_graph(
        {"id": 1, "title": "Initialize project", "status": "done"},
        {"id": 2, "title": "Create models", "dependencies": [1]},
        {"id": 3, "title": "Create API endpoints", "dependencies": [2]},
    )


@pytest.fixture
def frontier_graph(make_graph: Callable[..., TaskGraph]) -> TaskGraph:
    """Tasks 1 and 2 are independent; 3 needs both."""
    return make_graph(
        {"id": 1, "title": "Write parser"},
        {"id": 2, "title": "Write lexer"},
        {"id": 3, "title": "Wire up compiler", "dependencies": [1, 2]},
    )


@pytest.fixture
def cyclic_graph(make_graph: Callable[..., TaskGraph]) -> TaskGraph:
    """Tasks 1 -> 2 -> 3 -> 1."""
    return make_graph(
        {"id": 1, "dependencies": [2]},
        {"id": 2, "dependencies": [3]},
        {"id": 3, "dependencies": [1]},
    )


@pytest.fixture
def subtask_graph(make_graph: Callable[..., TaskGraph]) -> TaskGraph:
    """Task 2 is in progress with a subtask chain; task 3 waits on subtask 2.1."""
    return make_graph(
        {"id": 1, "title": "Set up repository", "status": "done", "priority": "high"},
        {
            "id": 2,
            "title": "Implement auth service",
            "status": "in-progress",
            "priority": "high",
            "dependencies": [1],
            "subtasks": [
                {"id": 1, "title": "Password hashing", "status": "done"},
                {"id": 2, "title": "Login endpoint", "dependencies": [1]},
                {"id": 3, "title": "Logout endpoint", "dependencies": [2]},
            ],
        },
        {"id": 3, "title": "Write auth docs", "priority": "low", "dependencies": ["2.1"]},
    )


@pytest.fixture
def tasks_file(tmp_path: Path) -> Callable[..., Path]:
    """Write task dictionaries to a tasks.json under tmp_path."""

    def _write(*tasks: dict[str, Any]) -> Path:
        path = tmp_path / "tasks.json"
        path.write_text(json.dumps({"tasks": list(tasks)}, indent=2), encoding="utf-8")
        return path

    return _write


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
