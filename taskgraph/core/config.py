"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskgraph.dependencies.models import SelectionConfig, TaskPriority, TaskStatus


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TASKGRAPH_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (forces DEBUG console output)",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path, rotated daily",
    )

    # Task file
    tasks_file: str = Field(
        default="tasks/tasks.json",
        description="Default tasks file used by the CLI",
    )

    # Selection
    default_concurrency: int = Field(
        default=1,
        ge=1,
        description="Number of tasks returned by `next` when not specified",
    )
    max_concurrency: int = Field(
        default=10,
        ge=1,
        le=10,
        description="Hard cap for concurrent task selection",
    )
    default_priority: TaskPriority = Field(
        default=TaskPriority.MEDIUM,
        description="Priority assumed for tasks without one",
    )
    completed_statuses: list[TaskStatus] = Field(
        default_factory=lambda: [TaskStatus.DONE],
        description="Statuses that satisfy a dependency",
    )
    eligible_parent_statuses: list[TaskStatus] = Field(
        default_factory=lambda: [TaskStatus.IN_PROGRESS],
        description="Parent statuses whose subtasks may be selected",
    )

    def selection_config(self) -> SelectionConfig:
        """Build the engine's selection configuration from these settings."""
        return SelectionConfig(
            max_concurrency=self.max_concurrency,
            default_priority=self.default_priority,
            completed_statuses=frozenset(self.completed_statuses),
            eligible_parent_statuses=frozenset(self.eligible_parent_statuses),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.max_concurrency
        10
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
