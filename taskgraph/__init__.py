"""
taskgraph - Dependency graph engine for development tasks.

Validates, repairs and schedules tasks and subtasks linked by dependencies.
"""

__version__ = "0.1.0"

from taskgraph.dependencies import (
    TaskGraph,
    select_next,
    validate,
    validate_and_fix_dependencies,
)

__all__ = [
    "TaskGraph",
    "__version__",
    "select_next",
    "validate",
    "validate_and_fix_dependencies",
]
