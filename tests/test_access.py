"""
Unit tests for the access gate.

Tests the authorization state machine: immediate success, denial and
restriction, and asynchronous access requests resolved on another thread.
"""

import threading
from concurrent.futures import Future
from unittest.mock import MagicMock

import pytest

from contact_ops.errors import (
    AccessRequestFailedError,
    AccessRequestUnknownError,
    DomainTaskFailedError,
    PermissionDeniedError,
    PermissionRestrictedError,
    StoreQueryError,
    TaskCancelledError,
)
from contact_ops.operations.access import AccessGate
from contact_ops.store import (
    AccessResponse,
    AuthorizationStatus,
    EntityType,
    InMemoryContactStore,
)
from contact_ops.utils.logging import current_task_name


class RecordingGate(AccessGate):
    """Gate whose domain task records each invocation."""

    def __init__(self, store, error=None):
        super().__init__(store)
        self.calls = 0
        self.calling_threads = []
        self._error = error

    def execute_domain_task(self):
        self.calls += 1
        self.calling_threads.append(threading.current_thread().name)
        if self._error is not None:
            raise self._error


class TestAuthorizedStatus:
    """Tests for stores that already granted access."""

    def test_domain_task_runs_once_without_request(self):
        """Test that an authorized store runs the domain task immediately."""
        store = InMemoryContactStore(status=AuthorizationStatus.AUTHORIZED)
        gate = RecordingGate(store)

        gate.start()

        assert gate.calls == 1
        assert gate.succeeded
        assert gate.error is None
        assert store.access_requests == 0

    def test_authorization_status_recorded(self):
        """Test that the observed status is kept on the gate."""
        store = InMemoryContactStore(status=AuthorizationStatus.AUTHORIZED)
        gate = RecordingGate(store)

        gate.start()

        assert gate.authorization_status is AuthorizationStatus.AUTHORIZED

    def test_default_domain_task_is_noop(self):
        """Test that a bare gate finishes successfully."""
        gate = AccessGate(InMemoryContactStore())

        gate.start()

        assert gate.succeeded
        assert gate.name == "Contacts Access"

    def test_status_queried_for_entity_type(self):
        """Test that the gate asks about its configured entity type."""
        store = MagicMock()
        store.authorization_status.return_value = AuthorizationStatus.AUTHORIZED
        gate = AccessGate(store, entity_type=EntityType.CONTACTS)

        gate.start()

        store.authorization_status.assert_called_once_with(EntityType.CONTACTS)
        store.request_access.assert_not_called()


class TestTerminalStatuses:
    """Tests for denied and restricted authorization."""

    def test_denied_finishes_with_permission_denied(self):
        """Test that denied status never runs the domain task."""
        store = InMemoryContactStore(status=AuthorizationStatus.DENIED)
        gate = RecordingGate(store)

        gate.start()

        assert gate.calls == 0
        assert isinstance(gate.error, PermissionDeniedError)
        assert store.access_requests == 0

    def test_restricted_finishes_with_permission_restricted(self):
        """Test that restricted status never runs the domain task."""
        store = InMemoryContactStore(status=AuthorizationStatus.RESTRICTED)
        gate = RecordingGate(store)

        gate.start()

        assert gate.calls == 0
        assert isinstance(gate.error, PermissionRestrictedError)


class TestAccessRequest:
    """Tests for the not-determined branch."""

    def test_granted_request_runs_domain_task(self):
        """Test that a granted request runs the domain task once."""
        store = InMemoryContactStore(
            status=AuthorizationStatus.NOT_DETERMINED,
            access_response=AccessResponse(granted=True),
        )
        gate = RecordingGate(store)

        gate.start()

        assert store.access_requests == 1
        assert gate.calls == 1
        assert gate.succeeded

    def test_domain_task_waits_for_async_resolution(self):
        """Test that the domain task runs only after the callback fires."""
        store = MagicMock()
        store.authorization_status.return_value = AuthorizationStatus.NOT_DETERMINED
        future = Future()
        store.request_access.return_value = future
        gate = RecordingGate(store)

        gate.start()

        assert gate.calls == 0
        assert not gate.finished

        future.set_result(AccessResponse(granted=True))

        assert gate.calls == 1
        assert gate.succeeded

    def test_resolution_on_background_thread(self):
        """Test that a resolution delivered on another thread finishes the gate."""
        store = InMemoryContactStore(
            status=AuthorizationStatus.NOT_DETERMINED,
            resolve_access_async=True,
            access_delay=0.05,
        )
        gate = RecordingGate(store)

        gate.start()

        assert gate.wait(timeout=5)
        assert gate.succeeded
        assert gate.calls == 1
        assert gate.calling_threads == ["contact-ops-access"]

    def test_refused_request_with_error(self):
        """Test that a refused request carrying an error wraps it."""
        cause = RuntimeError("user closed the consent screen")
        store = InMemoryContactStore(
            status=AuthorizationStatus.NOT_DETERMINED,
            access_response=AccessResponse(granted=False, error=cause),
        )
        gate = RecordingGate(store)

        gate.start()

        assert gate.calls == 0
        assert isinstance(gate.error, AccessRequestFailedError)
        assert gate.error.underlying is cause
        assert gate.error.__cause__ is cause

    def test_refused_request_without_error(self):
        """Test that a refused request without a cause is an unknown failure."""
        store = InMemoryContactStore(
            status=AuthorizationStatus.NOT_DETERMINED,
            access_response=AccessResponse(granted=False),
        )
        gate = RecordingGate(store)

        gate.start()

        assert gate.calls == 0
        assert isinstance(gate.error, AccessRequestUnknownError)

    def test_future_exception_treated_as_failed_request(self):
        """Test that a future raising an exception is a failed request."""
        store = MagicMock()
        store.authorization_status.return_value = AuthorizationStatus.NOT_DETERMINED
        future = Future()
        store.request_access.return_value = future
        gate = RecordingGate(store)

        gate.start()
        future.set_exception(OSError("browser unavailable"))

        assert gate.calls == 0
        assert isinstance(gate.error, AccessRequestFailedError)
        assert isinstance(gate.error.underlying, OSError)

    def test_resolving_thread_logs_under_task_name(self):
        """Test that work after an off-thread resolution is attributed to the task."""
        store = MagicMock()
        store.authorization_status.return_value = AuthorizationStatus.NOT_DETERMINED
        future = Future()
        store.request_access.return_value = future
        gate = RecordingGate(store)
        seen = []
        gate.execute_domain_task = lambda: seen.append(current_task_name())

        gate.start()
        resolver = threading.Thread(
            target=future.set_result, args=(AccessResponse(granted=True),)
        )
        resolver.start()
        resolver.join()

        assert gate.succeeded
        assert seen == ["Contacts Access"]

    def test_request_access_raising_is_failed_request(self):
        """Test that request_access raising finishes with a failed request."""
        store = MagicMock()
        store.authorization_status.return_value = AuthorizationStatus.NOT_DETERMINED
        store.request_access.side_effect = RuntimeError("executor shut down")
        gate = RecordingGate(store)

        gate.start()

        assert gate.finished
        assert gate.calls == 0
        assert isinstance(gate.error, AccessRequestFailedError)
        assert isinstance(gate.error.underlying, RuntimeError)

    def test_status_query_raising_is_failed_request(self):
        """Test that a failing status query never reaches the domain task."""
        store = MagicMock()
        store.authorization_status.side_effect = OSError("token unreadable")
        gate = RecordingGate(store)

        gate.start()

        assert gate.finished
        assert gate.calls == 0
        assert gate.authorization_status is None
        assert isinstance(gate.error, AccessRequestFailedError)
        store.request_access.assert_not_called()

    def test_cancel_while_waiting_skips_domain_task(self):
        """Test that cancelling before resolution prevents the domain task."""
        store = MagicMock()
        store.authorization_status.return_value = AuthorizationStatus.NOT_DETERMINED
        future = Future()
        store.request_access.return_value = future
        gate = RecordingGate(store)

        gate.start()
        gate.cancel()
        future.set_result(AccessResponse(granted=True))

        assert gate.calls == 0
        assert isinstance(gate.error, TaskCancelledError)


class TestDomainTaskFailure:
    """Tests for errors raised by the domain task."""

    def test_domain_error_wrapped(self):
        """Test that a domain task error finishes the gate wrapped."""
        cause = StoreQueryError("query failed")
        gate = RecordingGate(InMemoryContactStore(), error=cause)

        gate.start()

        assert gate.calls == 1
        assert isinstance(gate.error, DomainTaskFailedError)
        assert gate.error.underlying is cause

    def test_finish_called_exactly_once(self):
        """Test that completion callbacks fire once on failure."""
        gate = RecordingGate(InMemoryContactStore(), error=ValueError("bad"))
        outcomes = []
        gate.add_completion_callback(lambda t: outcomes.append(t.error))

        gate.start()
        gate.finish()

        assert len(outcomes) == 1
        assert isinstance(outcomes[0], DomainTaskFailedError)


@pytest.mark.parametrize(
    "status, expected",
    [
        (AuthorizationStatus.DENIED, PermissionDeniedError),
        (AuthorizationStatus.RESTRICTED, PermissionRestrictedError),
    ],
)
def test_terminal_statuses_share_permission_base(status, expected):
    """Test that both terminal errors derive from ContactsPermissionError."""
    from contact_ops.errors import ContactsPermissionError

    gate = AccessGate(InMemoryContactStore(status=status))
    gate.start()

    assert isinstance(gate.error, expected)
    assert isinstance(gate.error, ContactsPermissionError)
