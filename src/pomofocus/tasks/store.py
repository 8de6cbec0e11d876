"""Ordered task list with per-task Pomodoro progress and a single selection."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Sequence

from pomofocus.storage.persistence import TASKS_KEY, PersistenceAdapter
from pomofocus.tasks.models import (
    DEFAULT_COLOR,
    Task,
    TaskNotFoundError,
    TaskValidationError,
    validate_estimate,
    validate_title,
)

logger = logging.getLogger(__name__)


@dataclass
class TaskStats:
    """Counts across the whole task list."""
    total: int = 0
    completed: int = 0
    remaining: int = 0
    total_estimated: int = 0
    total_completed_pomodoros: int = 0
    remaining_pomodoros: int = 0


class TaskStore:
    """Owns the task list and the active task selection.

    The store never touches statistics. Callers that need to count a task
    completion use the return value of ``toggle_completion``.

    Usage:
        store = TaskStore(persistence)
        store.load()
        task = store.add("Write report", estimated_pomodoros=3)
        store.select(task.id)
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._persistence = persistence
        self._clock = clock
        self._tasks: list[Task] = []
        self._selected_task_id: str | None = None

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def selected_task_id(self) -> str | None:
        return self._selected_task_id

    @property
    def selected_task(self) -> Task | None:
        if self._selected_task_id is None:
            return None
        return self._find(self._selected_task_id)

    @property
    def active_tasks(self) -> list[Task]:
        return [task for task in self._tasks if not task.is_completed]

    @property
    def completed_tasks(self) -> list[Task]:
        return [task for task in self._tasks if task.is_completed]

    def load(self) -> list[Task]:
        """Load persisted tasks. Unreadable entries are dropped."""
        data = self._persistence.load(TASKS_KEY, [])
        tasks: list[Task] = []
        if not isinstance(data, list):
            logger.error("Stored task list is malformed, starting empty")
            data = []

        for item in data:
            try:
                tasks.append(Task.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping unreadable task {item!r}: {e}")

        self._tasks = tasks
        if self._selected_task_id and self._find(self._selected_task_id) is None:
            self._selected_task_id = None
        logger.debug(f"Loaded {len(tasks)} tasks")
        return self.tasks

    def get(self, task_id: str) -> Task:
        task = self._find(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def add(self, title: str, estimated_pomodoros: int = 1, color: str | None = None) -> Task:
        """Append a new task.

        Raises:
            TaskValidationError: title empty or longer than 100 characters, or
                estimate outside 1-10. The list is left unchanged.
        """
        task = Task(
            id=uuid.uuid4().hex,
            title=validate_title(title),
            estimated_pomodoros=validate_estimate(estimated_pomodoros),
            created_at=self._clock(),
            color=color or DEFAULT_COLOR,
        )
        self._tasks.append(task)
        self._save()
        logger.info(f"Task added: {task.title} ({task.estimated_pomodoros} pomodoros)")
        return task

    def edit(
        self,
        task_id: str,
        *,
        title: str | None = None,
        estimated_pomodoros: int | None = None,
        color: str | None = None,
    ) -> Task:
        """Change title, estimate or color. Only the given fields are re-validated."""
        task = self.get(task_id)
        changes: dict[str, object] = {}
        if title is not None:
            changes["title"] = validate_title(title)
        if estimated_pomodoros is not None:
            changes["estimated_pomodoros"] = validate_estimate(estimated_pomodoros)
        if color is not None:
            changes["color"] = color

        updated = replace(task, **changes)
        self._put(updated)
        self._save()
        return updated

    def remove(self, task_id: str) -> Task:
        task = self.get(task_id)
        self._tasks = [t for t in self._tasks if t.id != task_id]
        if self._selected_task_id == task_id:
            self._selected_task_id = None
        self._save()
        logger.info(f"Task removed: {task.title}")
        return task

    def toggle_completion(self, task_id: str) -> bool:
        """Flip a task's completion flag.

        Returns True only when the task moved into the completed state.
        Reopening a task keeps its completed pomodoros.
        """
        task = self.get(task_id)
        is_completed = not task.is_completed
        updated = replace(
            task,
            is_completed=is_completed,
            completed_at=self._clock() if is_completed else None,
        )
        self._put(updated)
        self._save()
        return is_completed

    def select(self, task_id: str | None) -> None:
        """Set the active task, or clear it with None."""
        if task_id is not None:
            self.get(task_id)
        self._selected_task_id = task_id

    def reorder(self, new_order: Sequence[str | Task]) -> None:
        """Replace the ordering with a full permutation of the current tasks."""
        ids = [item.id if isinstance(item, Task) else item for item in new_order]
        if len(ids) != len(set(ids)) or set(ids) != {task.id for task in self._tasks}:
            raise TaskValidationError("Reorder must list every existing task exactly once")

        by_id = {task.id: task for task in self._tasks}
        self._tasks = [by_id[task_id] for task_id in ids]
        self._save()

    def increment_pomodoro(self, task_id: str) -> Task | None:
        """Credit one finished focus session to a task.

        A missing task is not an error: it may have been removed while the
        session was running.
        """
        task = self._find(task_id)
        if task is None:
            logger.warning(f"Cannot credit pomodoro, task no longer exists: {task_id}")
            return None

        updated = replace(task, completed_pomodoros=task.completed_pomodoros + 1)
        self._put(updated)
        self._save()
        return updated

    def stats(self) -> TaskStats:
        completed = len(self.completed_tasks)
        return TaskStats(
            total=len(self._tasks),
            completed=completed,
            remaining=len(self._tasks) - completed,
            total_estimated=sum(t.estimated_pomodoros for t in self._tasks),
            total_completed_pomodoros=sum(t.completed_pomodoros for t in self._tasks),
            remaining_pomodoros=sum(t.remaining_pomodoros for t in self.active_tasks),
        )

    def _find(self, task_id: str) -> Task | None:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def _put(self, updated: Task) -> None:
        self._tasks = [updated if t.id == updated.id else t for t in self._tasks]

    def _save(self) -> None:
        self._persistence.save(TASKS_KEY, [task.to_dict() for task in self._tasks])

