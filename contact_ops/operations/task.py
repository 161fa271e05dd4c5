"""
Task primitive for running units of work.

A Task has a human-readable name, an execute() hook and a terminal finish()
call. It produces exactly one outcome: the first call to finish() wins and
every later call is ignored. Cancellation finishes a task that has not
finished yet with TaskCancelledError.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable

from contact_ops.errors import TaskCancelledError
from contact_ops.utils.logging import task_context

logger = logging.getLogger(__name__)


class TaskState(enum.Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    FINISHED = "finished"


class Task:
    """
    Base class for a single-shot unit of work.

    Subclasses override execute() and must eventually call finish(), either
    synchronously or from a callback on another thread.

    Attributes:
        name: Human-readable name used in logs
        error: The error the task finished with, or None

    Usage:
        task = MyTask()
        task.add_completion_callback(lambda t: print(t.error))
        task.start()
        task.wait(timeout=30)
    """

    def __init__(self, name: str | None = None):
        self.name = name or type(self).__name__
        self.error: BaseException | None = None
        self._state = TaskState.PENDING
        self._cancelled = False
        self._lock = threading.Lock()
        self._finished_event = threading.Event()
        self._completion_callbacks: list[Callable[[Task], None]] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self._state.value})"

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._state is TaskState.FINISHED

    @property
    def succeeded(self) -> bool:
        return self.finished and self.error is None

    @property
    def errors(self) -> list[BaseException]:
        return [self.error] if self.error is not None else []

    def add_completion_callback(self, callback: Callable[[Task], None]) -> None:
        """
        Register a callback invoked once with the task after it finishes.

        If the task has already finished, the callback runs immediately.
        """
        with self._lock:
            if self._state is not TaskState.FINISHED:
                self._completion_callbacks.append(callback)
                return
        callback(self)

    def start(self) -> None:
        """
        Run the task on the calling thread.

        A task that was cancelled before starting finishes without executing.
        Starting a task twice raises RuntimeError.
        """
        with self._lock:
            if self._cancelled:
                return
            if self._state is not TaskState.PENDING:
                raise RuntimeError(f"Task '{self.name}' has already been started")
            self._state = TaskState.EXECUTING

        with task_context(self.name):
            logger.debug("Executing")
            try:
                self.execute()
            except Exception as e:
                logger.error(f"Task '{self.name}' raised from execute(): {e}")
                self.finish(e)

    def execute(self) -> None:
        """Do the work. The default finishes immediately."""
        self.finish()

    def finish(self, error: BaseException | None = None) -> None:
        """
        Record the outcome of the task.

        Only the first call has an effect; later calls are logged and ignored.
        """
        with self._lock:
            if self._state is TaskState.FINISHED:
                logger.debug(
                    f"Task '{self.name}' already finished; ignoring finish({error!r})"
                )
                return
            self._state = TaskState.FINISHED
            self.error = error
            callbacks = list(self._completion_callbacks)
            self._completion_callbacks.clear()

        if error is None:
            logger.debug(f"Task '{self.name}' finished")
        else:
            logger.debug(f"Task '{self.name}' finished with error: {error}")

        self._finished_event.set()
        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.warning(f"Completion callback for '{self.name}' failed: {e}")

    def cancel(self) -> None:
        """
        Cancel the task.

        An unfinished task finishes with TaskCancelledError. Cancelling a
        finished task has no effect.
        """
        with self._lock:
            if self._state is TaskState.FINISHED:
                return
            self._cancelled = True
        with task_context(self.name):
            logger.info("Cancelled")
            self.finish(TaskCancelledError(f"Task '{self.name}' was cancelled"))

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the task finishes.

        Returns:
            True if the task finished, False if the timeout elapsed first.
        """
        return self._finished_event.wait(timeout)


__all__ = ["Task", "TaskState"]
