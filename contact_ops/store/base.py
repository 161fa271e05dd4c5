"""
Store capability contract for contact operations.

Defines the minimal set of operations an address-book store must provide:
- Authorization status lookup and an asynchronous access request
- Container, group and contact queries
- Contact enumeration
- Submission of batched mutations as a SaveRequest

Stores are always passed to operations explicitly; nothing in this package
constructs a store on its own.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import NamedTuple

from contact_ops.models import (
    MINIMAL_KEYS,
    Contact,
    ContactPredicate,
    Container,
    ContainerPredicate,
    Group,
    GroupPredicate,
)


class EntityType(enum.Enum):
    """Kind of address-book entity an operation targets."""

    CONTACTS = "contacts"


class AuthorizationStatus(enum.Enum):
    """Authorization state of the current process for an entity type."""

    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    RESTRICTED = "restricted"


class AccessResponse(NamedTuple):
    """Single resolution of an access request."""

    granted: bool
    error: BaseException | None = None


@dataclass(frozen=True)
class FetchRequest:
    """Describes which contacts to enumerate and which keys to populate."""

    keys: frozenset[str] = MINIMAL_KEYS
    predicate: ContactPredicate | None = None

    @classmethod
    def for_identifiers(
        cls, identifiers: Iterable[str], keys: Iterable[str] = MINIMAL_KEYS
    ) -> FetchRequest:
        return cls(
            keys=frozenset(keys),
            predicate=ContactPredicate.with_identifiers(identifiers),
        )


class MutationKind(enum.Enum):
    ADD_GROUP = "add_group"
    DELETE_GROUP = "delete_group"
    ADD_MEMBER = "add_member"
    REMOVE_MEMBER = "remove_member"


@dataclass(frozen=True)
class Mutation:
    """One pending change held by a SaveRequest."""

    kind: MutationKind
    group: Group
    contact: Contact | None = None
    container_identifier: str | None = None


@dataclass
class SaveRequest:
    """
    Accumulator of pending mutations submitted to a store as one unit.

    An empty SaveRequest is valid and executing it is a no-op.

    Usage:
        save = SaveRequest()
        save.add_member(contact, to_group=group)
        store.execute_save_request(save)
    """

    mutations: list[Mutation] = field(default_factory=list)

    def add_group(self, group: Group, to_container: str) -> None:
        self.mutations.append(
            Mutation(MutationKind.ADD_GROUP, group, container_identifier=to_container)
        )

    def delete_group(self, group: Group) -> None:
        self.mutations.append(Mutation(MutationKind.DELETE_GROUP, group))

    def add_member(self, contact: Contact, to_group: Group) -> None:
        self.mutations.append(Mutation(MutationKind.ADD_MEMBER, to_group, contact))

    def remove_member(self, contact: Contact, from_group: Group) -> None:
        self.mutations.append(
            Mutation(MutationKind.REMOVE_MEMBER, from_group, contact)
        )

    @property
    def is_empty(self) -> bool:
        return not self.mutations

    def of_kind(self, kind: MutationKind) -> list[Mutation]:
        return [m for m in self.mutations if m.kind is kind]

    def __len__(self) -> int:
        return len(self.mutations)

    def __iter__(self) -> Iterator[Mutation]:
        return iter(self.mutations)


class ContactStore(ABC):
    """
    Abstract address-book store.

    Query methods raise StoreQueryError (or ContactNotFoundError) on failure;
    execute_save_request raises StoreMutationError. Implementations are
    responsible for their own internal thread safety.
    """

    @abstractmethod
    def authorization_status(self, entity_type: EntityType) -> AuthorizationStatus:
        """Return the current authorization status for the entity type."""

    @abstractmethod
    def request_access(self, entity_type: EntityType) -> Future[AccessResponse]:
        """
        Ask for access to the entity type.

        Returns a future resolved exactly once, possibly on another thread.
        A future that raises is treated as a failed request carrying that
        exception.
        """

    @abstractmethod
    def default_container_identifier(self) -> str:
        """Return the identifier of the store's default container."""

    @abstractmethod
    def containers_matching(
        self, predicate: ContainerPredicate | None = None
    ) -> list[Container]:
        """List containers, all of them when predicate is None."""

    @abstractmethod
    def groups_matching(self, predicate: GroupPredicate | None = None) -> list[Group]:
        """List groups in store order, all of them when predicate is None."""

    @abstractmethod
    def unified_contact_with_identifier(
        self, identifier: str, keys: Iterable[str]
    ) -> Contact:
        """Fetch one contact, raising ContactNotFoundError if it is missing."""

    @abstractmethod
    def unified_contacts_matching(
        self, predicate: ContactPredicate, keys: Iterable[str]
    ) -> list[Contact]:
        """Fetch every contact the predicate selects."""

    @abstractmethod
    def enumerate_contacts(
        self, fetch_request: FetchRequest, callback: Callable[[Contact], None]
    ) -> None:
        """Invoke callback for each contact selected by the fetch request."""

    @abstractmethod
    def execute_save_request(self, save_request: SaveRequest) -> None:
        """Apply every mutation in the save request."""


__all__ = [
    "EntityType",
    "AuthorizationStatus",
    "AccessResponse",
    "FetchRequest",
    "MutationKind",
    "Mutation",
    "SaveRequest",
    "ContactStore",
]
