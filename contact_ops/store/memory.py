"""
In-memory address-book store.

Thread-safe ContactStore implementation used for tests and for embedding the
operations in programs that keep their own contact data. Supports:
- Configurable authorization status and access-request outcome
- Synchronous or background-thread resolution of access requests
- All-or-nothing application of save requests
- A record of every executed save request for inspection
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Iterable
from concurrent.futures import Future

from contact_ops.errors import (
    ContactNotFoundError,
    StoreMutationError,
)
from contact_ops.models import (
    Contact,
    ContactPredicate,
    Container,
    ContainerPredicate,
    Group,
    GroupPredicate,
)
from contact_ops.store.base import (
    AccessResponse,
    AuthorizationStatus,
    ContactStore,
    EntityType,
    FetchRequest,
    MutationKind,
    SaveRequest,
)

# Identifier of the container created when none is supplied
DEFAULT_CONTAINER_IDENTIFIER = "local"

logger = logging.getLogger(__name__)


class InMemoryContactStore(ContactStore):
    """
    ContactStore backed by in-process dictionaries.

    Attributes:
        status: Authorization status reported for every entity type
        access_response: Outcome delivered when access is requested
        resolve_access_async: If True, resolve access requests on a new thread
        access_delay: Seconds the background thread waits before resolving
        executed_save_requests: Every save request applied, in order
        access_requests: Number of access requests received

    Usage:
        store = InMemoryContactStore(
            contacts=[Contact("c1", display_name="Ada")],
            status=AuthorizationStatus.AUTHORIZED,
        )
        store.add_group(Group(name="Favorites"))
    """

    def __init__(
        self,
        contacts: Iterable[Contact] = (),
        groups: Iterable[Group] = (),
        containers: Iterable[Container] | None = None,
        status: AuthorizationStatus = AuthorizationStatus.AUTHORIZED,
        access_response: AccessResponse | None = None,
        resolve_access_async: bool = False,
        access_delay: float = 0.0,
    ):
        self._lock = threading.RLock()
        self._containers: list[Container] = (
            list(containers)
            if containers is not None
            else [Container(DEFAULT_CONTAINER_IDENTIFIER, name="Local")]
        )
        if not self._containers:
            raise ValueError("InMemoryContactStore needs at least one container")

        self._contacts: dict[str, Contact] = {}
        for contact in contacts:
            self._contacts[contact.identifier] = contact

        self._groups: list[Group] = []
        self._members: dict[str, list[str]] = {}
        for group in groups:
            self.add_group(group)

        self.status = status
        self.access_response = access_response or AccessResponse(granted=True)
        self.resolve_access_async = resolve_access_async
        self.access_delay = access_delay
        self.executed_save_requests: list[SaveRequest] = []
        self.access_requests = 0

    # ------------------------------------------------------------------
    # Seeding and inspection helpers
    # ------------------------------------------------------------------

    def add_contact(self, contact: Contact) -> None:
        with self._lock:
            self._contacts[contact.identifier] = contact

    def add_group(self, group: Group, members: Iterable[str] = ()) -> Group:
        """Insert a group directly, assigning an identifier if it has none."""
        with self._lock:
            if not group.identifier:
                group.identifier = self._new_group_identifier()
            if group.container_identifier is None:
                group.container_identifier = self.default_container_identifier()
            self._groups.append(group)
            self._members[group.identifier] = list(dict.fromkeys(members))
            return group

    def members_of(self, group_identifier: str) -> list[str]:
        with self._lock:
            return list(self._members.get(group_identifier, []))

    def group_names(self) -> list[str]:
        with self._lock:
            return [g.name for g in self._groups]

    def _new_group_identifier(self) -> str:
        return f"group-{uuid.uuid4().hex[:12]}"

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorization_status(self, entity_type: EntityType) -> AuthorizationStatus:
        return self.status

    def request_access(self, entity_type: EntityType) -> Future[AccessResponse]:
        future: Future[AccessResponse] = Future()
        with self._lock:
            self.access_requests += 1

        def resolve() -> None:
            if self.access_delay > 0:
                time.sleep(self.access_delay)
            response = self.access_response
            with self._lock:
                self.status = (
                    AuthorizationStatus.AUTHORIZED
                    if response.granted
                    else AuthorizationStatus.DENIED
                )
            logger.debug(f"Resolving {entity_type.value} access request: {response}")
            future.set_result(response)

        if self.resolve_access_async:
            threading.Thread(
                target=resolve, name="contact-ops-access", daemon=True
            ).start()
        else:
            resolve()
        return future

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def default_container_identifier(self) -> str:
        return self._containers[0].identifier

    def containers_matching(
        self, predicate: ContainerPredicate | None = None
    ) -> list[Container]:
        with self._lock:
            if predicate is None:
                return list(self._containers)
            return [c for c in self._containers if predicate.matches(c)]

    def groups_matching(self, predicate: GroupPredicate | None = None) -> list[Group]:
        with self._lock:
            if predicate is None:
                return list(self._groups)
            return [g for g in self._groups if predicate.matches(g)]

    def unified_contact_with_identifier(
        self, identifier: str, keys: Iterable[str]
    ) -> Contact:
        with self._lock:
            contact = self._contacts.get(identifier)
        if contact is None:
            raise ContactNotFoundError(identifier)
        return contact.restricted_to(keys)

    def unified_contacts_matching(
        self, predicate: ContactPredicate, keys: Iterable[str]
    ) -> list[Contact]:
        keys = frozenset(keys)
        with self._lock:
            candidates = list(self._contacts.values())
        return [c.restricted_to(keys) for c in candidates if predicate.matches(c)]

    def enumerate_contacts(
        self, fetch_request: FetchRequest, callback: Callable[[Contact], None]
    ) -> None:
        with self._lock:
            candidates = list(self._contacts.values())
        predicate = fetch_request.predicate
        for contact in candidates:
            if predicate is None or predicate.matches(contact):
                callback(contact.restricted_to(fetch_request.keys))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def execute_save_request(self, save_request: SaveRequest) -> None:
        """
        Apply a save request atomically.

        Every mutation is validated before any is applied, so a failing
        request leaves the store unchanged.

        Raises:
            StoreMutationError: If any mutation is invalid
        """
        with self._lock:
            self._validate(save_request)

            for mutation in save_request:
                group = mutation.group
                if mutation.kind is MutationKind.ADD_GROUP:
                    group.identifier = self._new_group_identifier()
                    group.container_identifier = mutation.container_identifier
                    self._groups.append(group)
                    self._members[group.identifier] = []
                elif mutation.kind is MutationKind.DELETE_GROUP:
                    identifier = group.require_identifier()
                    self._groups = [
                        g for g in self._groups if g.identifier != identifier
                    ]
                    self._members.pop(identifier, None)
                elif mutation.kind is MutationKind.ADD_MEMBER:
                    assert mutation.contact is not None
                    members = self._members[group.require_identifier()]
                    if mutation.contact.identifier not in members:
                        members.append(mutation.contact.identifier)
                elif mutation.kind is MutationKind.REMOVE_MEMBER:
                    assert mutation.contact is not None
                    members = self._members[group.require_identifier()]
                    if mutation.contact.identifier in members:
                        members.remove(mutation.contact.identifier)

            self.executed_save_requests.append(save_request)

        logger.debug(f"Executed save request with {len(save_request)} mutation(s)")

    def _validate(self, save_request: SaveRequest) -> None:
        container_ids = {c.identifier for c in self._containers}
        known_groups = {g.identifier for g in self._groups}
        pending_groups: set[int] = set()
        deleted_groups: set[int] = set()

        for mutation in save_request:
            group = mutation.group
            if id(group) in deleted_groups:
                raise StoreMutationError(
                    f"Group '{group.name}' is deleted earlier in the same request"
                )

            if mutation.kind is MutationKind.ADD_GROUP:
                if group.identifier:
                    raise StoreMutationError(
                        f"Group '{group.name}' is already saved as {group.identifier}"
                    )
                if mutation.container_identifier not in container_ids:
                    raise StoreMutationError(
                        f"Unknown container: {mutation.container_identifier}"
                    )
                pending_groups.add(id(group))
                continue

            if id(group) in pending_groups:
                # Added earlier in this same request
                if mutation.kind is MutationKind.DELETE_GROUP:
                    deleted_groups.add(id(group))
                continue

            identifier = group.require_identifier()
            if identifier not in known_groups:
                raise StoreMutationError(f"Group not found: {identifier}")

            if mutation.kind is MutationKind.DELETE_GROUP:
                deleted_groups.add(id(group))
                known_groups.discard(identifier)
                continue

            if mutation.kind in (MutationKind.ADD_MEMBER, MutationKind.REMOVE_MEMBER):
                if mutation.contact is None:
                    raise StoreMutationError("Membership change without a contact")
                if mutation.contact.identifier not in self._contacts:
                    raise StoreMutationError(
                        f"Contact not found: {mutation.contact.identifier}"
                    )
