"""
Unit tests for the task primitive and the task queue.

Tests single-outcome finishing, cancellation, completion callbacks and
running tasks on worker threads.
"""

import threading

import pytest

from contact_ops.errors import TaskCancelledError
from contact_ops.operations import QueueError, Task, TaskQueue, TaskState


class CountingTask(Task):
    """Task that counts executions and optionally fails."""

    def __init__(self, name=None, error=None, finish=True):
        super().__init__(name=name)
        self.executions = 0
        self._error = error
        self._finish = finish

    def execute(self):
        self.executions += 1
        if self._error is not None:
            raise self._error
        if self._finish:
            self.finish()


class TestTaskLifecycle:
    """Tests for starting and finishing tasks."""

    def test_default_name(self):
        """Test that the class name is used when no name is given."""
        assert CountingTask().name == "CountingTask"

    def test_start_executes_and_finishes(self):
        """Test that starting a task runs execute and records success."""
        task = CountingTask(name="work")

        task.start()

        assert task.executions == 1
        assert task.state is TaskState.FINISHED
        assert task.succeeded
        assert task.errors == []

    def test_default_execute_finishes(self):
        """Test that the base execute finishes immediately."""
        task = Task()

        task.start()

        assert task.succeeded

    def test_execute_exception_becomes_error(self):
        """Test that an exception raised by execute finishes the task with it."""
        error = ValueError("boom")
        task = CountingTask(error=error)

        task.start()

        assert task.error is error
        assert task.errors == [error]
        assert not task.succeeded

    def test_start_twice_raises(self):
        """Test that a task cannot be started twice."""
        task = CountingTask()
        task.start()

        with pytest.raises(RuntimeError, match="already been started"):
            task.start()

    def test_stays_executing_until_finished(self):
        """Test that a task that does not finish in execute stays executing."""
        task = CountingTask(finish=False)

        task.start()

        assert task.state is TaskState.EXECUTING
        assert not task.finished


class TestFinishOnce:
    """Tests for the single-outcome guarantee."""

    def test_first_finish_wins(self):
        """Test that later finish calls do not change the outcome."""
        task = CountingTask(finish=False)
        task.start()

        task.finish(ValueError("first"))
        task.finish()
        task.finish(RuntimeError("third"))

        assert str(task.error) == "first"

    def test_callbacks_fire_once(self):
        """Test that completion callbacks fire exactly once."""
        task = CountingTask(finish=False)
        calls = []
        task.add_completion_callback(calls.append)
        task.start()

        task.finish()
        task.finish()

        assert calls == [task]

    def test_callback_added_after_finish_runs_immediately(self):
        """Test that a late callback is invoked right away."""
        task = CountingTask()
        task.start()
        calls = []

        task.add_completion_callback(calls.append)

        assert calls == [task]

    def test_failing_callback_does_not_block_others(self):
        """Test that an exception in one callback does not stop the rest."""
        task = CountingTask()
        calls = []

        def broken(_):
            raise RuntimeError("callback failure")

        task.add_completion_callback(broken)
        task.add_completion_callback(calls.append)
        task.start()

        assert calls == [task]


class TestCancellation:
    """Tests for cancelling tasks."""

    def test_cancel_before_start(self):
        """Test that a cancelled task never executes."""
        task = CountingTask()

        task.cancel()
        task.start()

        assert task.executions == 0
        assert task.cancelled
        assert isinstance(task.error, TaskCancelledError)

    def test_cancel_while_executing(self):
        """Test that cancelling a running task finishes it cancelled."""
        task = CountingTask(finish=False)
        task.start()

        task.cancel()
        task.finish()

        assert isinstance(task.error, TaskCancelledError)

    def test_cancel_after_finish_is_noop(self):
        """Test that cancelling a finished task keeps its outcome."""
        task = CountingTask()
        task.start()

        task.cancel()

        assert task.succeeded
        assert not task.cancelled


class TestWait:
    """Tests for waiting on tasks."""

    def test_wait_times_out(self):
        """Test that wait returns False when the task does not finish."""
        task = CountingTask(finish=False)
        task.start()

        assert task.wait(timeout=0.01) is False

    def test_wait_for_finish_on_other_thread(self):
        """Test that wait returns once another thread finishes the task."""
        task = CountingTask(finish=False)
        task.start()

        threading.Timer(0.01, task.finish).start()

        assert task.wait(timeout=5) is True
        assert task.succeeded


class TestTaskQueue:
    """Tests for running tasks on the queue."""

    def test_invalid_worker_count(self):
        """Test that max_workers must be positive."""
        with pytest.raises(ValueError):
            TaskQueue(max_workers=0)

    def test_runs_tasks_on_worker_threads(self):
        """Test that queued tasks run and the stats record them."""
        tasks = [CountingTask(name=f"t{i}") for i in range(5)]

        with TaskQueue(max_workers=2) as queue:
            queue.add_tasks(tasks)
            assert queue.wait_until_all_finished(timeout=5)

        assert all(t.succeeded for t in tasks)
        assert queue.stats.submitted_count == 5
        assert queue.stats.success_count == 5
        assert queue.pending_tasks == []

    def test_failed_tasks_counted(self):
        """Test that failures are counted and the last error is kept."""
        with TaskQueue() as queue:
            queue.add_task(CountingTask(error=ValueError("bad input")))
            assert queue.wait_until_all_finished(timeout=5)

        assert queue.stats.error_count == 1
        assert queue.stats.last_error == "bad input"

    def test_cancel_all(self):
        """Test that unfinished tasks are cancelled and counted."""
        task = CountingTask(finish=False)

        with TaskQueue() as queue:
            queue.add_task(task)
            task.wait(timeout=0.05)
            queue.cancel_all()
            assert queue.wait_until_all_finished(timeout=5)

        assert isinstance(task.error, TaskCancelledError)
        assert queue.stats.cancelled_count == 1

    def test_add_after_shutdown_raises(self):
        """Test that a shut-down queue rejects new tasks."""
        queue = TaskQueue()
        queue.shutdown()

        with pytest.raises(QueueError):
            queue.add_task(CountingTask())
