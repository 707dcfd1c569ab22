"""Exceptions raised by the taskgraph engine.

Validation findings are never raised; they are returned as ``Issue`` data.
Only single-edge mutations and selection input checks fail with these.
"""

# =============================================================================
# EXCEPTIONS
# =============================================================================


class TaskGraphError(Exception):
    """Base exception for taskgraph errors."""

    pass


class InvalidReferenceError(TaskGraphError, ValueError):
    """A task reference could not be parsed into a canonical form."""

    def __init__(self, reference: object, reason: str = "malformed task reference"):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Invalid task reference {reference!r}: {reason}")


class TaskNotFoundError(TaskGraphError, LookupError):
    """A referenced task or subtask does not exist in the graph."""

    def __init__(self, reference: object):
        self.reference = reference
        super().__init__(f"Task {reference} not found")


class SelfDependencyError(TaskGraphError):
    """A task or subtask was asked to depend on itself."""

    def __init__(self, reference: object):
        self.reference = reference
        super().__init__(f"Task {reference} cannot depend on itself")


class CircularDependencyError(TaskGraphError):
    """Adding a dependency would close a cycle."""

    def __init__(self, subject: object, dependency: object):
        self.subject = subject
        self.dependency = dependency
        super().__init__(
            f"Cannot add dependency {dependency} to task {subject} "
            "as it would create a circular dependency"
        )


class InvalidConcurrencyError(TaskGraphError, ValueError):
    """Concurrency for task selection is not a positive integer."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Invalid concurrency value: {value!r}. "
            "Concurrency must be a positive integer."
        )
