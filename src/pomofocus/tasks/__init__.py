"""Task tracking."""

from pomofocus.tasks.models import Task, TaskNotFoundError, TaskValidationError
from pomofocus.tasks.store import TaskStats, TaskStore

__all__ = ["Task", "TaskNotFoundError", "TaskStats", "TaskStore", "TaskValidationError"]
