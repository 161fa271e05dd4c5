"""
Authorization gate for contact operations.

AccessGate wraps a task in a permission check. On execute() it:
- Queries the store's authorization status for the entity type
- Requests access when the status is not yet determined and waits for
  the request's single resolution
- Fails immediately when access is denied or restricted
- Otherwise runs the domain task and finishes with its outcome

The gate finishes exactly once whichever branch is taken.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future

from contact_ops.errors import (
    AccessRequestFailedError,
    AccessRequestUnknownError,
    DomainTaskFailedError,
    PermissionDeniedError,
    PermissionRestrictedError,
)
from contact_ops.operations.task import Task
from contact_ops.store.base import (
    AccessResponse,
    AuthorizationStatus,
    ContactStore,
    EntityType,
)
from contact_ops.utils.logging import task_context

logger = logging.getLogger(__name__)


class AccessGate(Task):
    """
    Task that only runs its domain task once access has been granted.

    Attributes:
        store: Store the authorization check and domain task run against
        entity_type: Kind of entity access is requested for
        authorization_status: Status observed when the task executed

    Usage:
        class Audit(AccessGate):
            def execute_domain_task(self) -> None:
                ...

        task = Audit(store)
        task.start()
    """

    def __init__(
        self,
        store: ContactStore,
        entity_type: EntityType = EntityType.CONTACTS,
        name: str | None = None,
    ):
        super().__init__(name=name or "Contacts Access")
        self.store = store
        self.entity_type = entity_type
        self.authorization_status: AuthorizationStatus | None = None

    def execute(self) -> None:
        try:
            status = self.store.authorization_status(self.entity_type)
        except Exception as e:
            logger.debug(f"Authorization status failed: {e}")
            self.finish(AccessRequestFailedError(e))
            return
        self.authorization_status = status
        logger.debug(f"Authorization status is {status.value}")

        if status is AuthorizationStatus.NOT_DETERMINED:
            logger.info(f"Requesting {self.entity_type.value} access")
            try:
                future = self.store.request_access(self.entity_type)
            except Exception as e:
                self.access_request_did_complete(AccessResponse(granted=False, error=e))
                return
            future.add_done_callback(self._access_request_future_did_resolve)
        elif status is AuthorizationStatus.AUTHORIZED:
            self.access_request_did_complete(AccessResponse(granted=True))
        elif status is AuthorizationStatus.DENIED:
            self.finish(PermissionDeniedError())
        elif status is AuthorizationStatus.RESTRICTED:
            self.finish(PermissionRestrictedError())

    def _access_request_future_did_resolve(
        self, future: Future[AccessResponse]
    ) -> None:
        try:
            response = future.result()
        except Exception as e:
            response = AccessResponse(granted=False, error=e)
        with task_context(self.name):
            logger.debug(f"Access request resolved: granted={response.granted}")
            self.access_request_did_complete(response)

    def access_request_did_complete(self, response: AccessResponse) -> None:
        """Continue after the access request resolved."""
        if self.cancelled or self.finished:
            logger.debug("Finished before access was resolved")
            return

        if not response.granted:
            if response.error is not None:
                self.finish(AccessRequestFailedError(response.error))
            else:
                self.finish(AccessRequestUnknownError())
            return

        try:
            self.execute_domain_task()
        except Exception as e:
            logger.debug(f"Domain task failed: {e}")
            self.finish(DomainTaskFailedError(e))
            return
        self.finish()

    def execute_domain_task(self) -> None:
        """Operation-specific work, run only after access is confirmed."""
        pass


__all__ = ["AccessGate"]
