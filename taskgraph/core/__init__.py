"""Core module - configuration, logging and exceptions."""

from taskgraph.core.config import Settings, clear_settings_cache, get_settings
from taskgraph.core.exceptions import (
    CircularDependencyError,
    InvalidConcurrencyError,
    InvalidReferenceError,
    SelfDependencyError,
    TaskGraphError,
    TaskNotFoundError,
)
from taskgraph.core.logging import configure_logging

__all__ = [
    "CircularDependencyError",
    "InvalidConcurrencyError",
    "InvalidReferenceError",
    "SelfDependencyError",
    "Settings",
    "TaskGraphError",
    "TaskNotFoundError",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
]
