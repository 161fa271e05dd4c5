"""
Task queue for running operations in the background.

Provides a TaskQueue class that manages:
- Placing tasks on a worker thread pool
- Tracking submitted, succeeded, failed and cancelled tasks
- Waiting for all queued tasks to finish
- Orderly shutdown that cancels tasks still waiting for a worker
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime

from contact_ops.errors import TaskCancelledError
from contact_ops.operations.task import Task

logger = logging.getLogger(__name__)

# Default number of worker threads
DEFAULT_MAX_WORKERS = 4


class QueueError(Exception):
    """Raised when a task cannot be placed on the queue."""

    pass


@dataclass
class QueueStats:
    """
    Statistics from queue operation.

    Tracks how many tasks were submitted and how they finished.
    """

    started_at: datetime = field(default_factory=datetime.now)
    submitted_count: int = 0
    success_count: int = 0
    error_count: int = 0
    cancelled_count: int = 0
    last_finished_at: datetime | None = None
    last_error: str | None = None


class TaskQueue:
    """
    Runs tasks on a pool of worker threads.

    Usage:
        with TaskQueue(max_workers=2) as queue:
            queue.add_task(task)
            queue.wait_until_all_finished(timeout=30)

    Attributes:
        name: Queue name used for worker thread names and logs
        stats: Queue statistics
    """

    def __init__(self, name: str = "contact-ops", max_workers: int = DEFAULT_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.name = name
        self.stats = QueueStats()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=name
        )
        self._lock = threading.Lock()
        self._pending: list[Task] = []
        self._all_finished = threading.Condition(self._lock)
        self._shutdown = False

    def __enter__(self) -> TaskQueue:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)

    @property
    def pending_tasks(self) -> list[Task]:
        with self._lock:
            return list(self._pending)

    def add_task(self, task: Task) -> Task:
        """
        Place a task on the queue.

        Raises:
            QueueError: If the queue has been shut down
        """
        with self._lock:
            if self._shutdown:
                raise QueueError(f"Queue '{self.name}' is shut down")
            self._pending.append(task)
            self.stats.submitted_count += 1

        task.add_completion_callback(self._task_did_finish)
        logger.debug(f"Queued task '{task.name}' on '{self.name}'")
        self._executor.submit(task.start)
        return task

    def add_tasks(self, tasks: Iterable[Task]) -> list[Task]:
        return [self.add_task(t) for t in tasks]

    def _task_did_finish(self, task: Task) -> None:
        with self._all_finished:
            if task in self._pending:
                self._pending.remove(task)
            self.stats.last_finished_at = datetime.now()
            if isinstance(task.error, TaskCancelledError):
                self.stats.cancelled_count += 1
            elif task.error is not None:
                self.stats.error_count += 1
                self.stats.last_error = str(task.error)
            else:
                self.stats.success_count += 1
            self._all_finished.notify_all()

        if task.error is not None and not isinstance(task.error, TaskCancelledError):
            logger.warning(f"Task '{task.name}' failed: {task.error}")
        else:
            logger.debug(f"Task '{task.name}' completed")

    def wait_until_all_finished(self, timeout: float | None = None) -> bool:
        """
        Block until every queued task has finished.

        Returns:
            True if all tasks finished, False if the timeout elapsed first.
        """
        with self._all_finished:
            return self._all_finished.wait_for(lambda: not self._pending, timeout)

    def cancel_all(self) -> None:
        """Cancel every task that has not finished yet."""
        for task in self.pending_tasks:
            task.cancel()

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting tasks and release the worker threads.

        Args:
            wait: If True, block until running tasks have been handed off.
                  If False, tasks that have not finished are cancelled.
        """
        with self._lock:
            self._shutdown = True
        if not wait:
            self.cancel_all()
        self._executor.shutdown(wait=wait)
        logger.debug(f"Queue '{self.name}' shut down")


__all__ = ["TaskQueue", "QueueStats", "QueueError", "DEFAULT_MAX_WORKERS"]
