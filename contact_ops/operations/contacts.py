"""
Contact and group operations.

ContactsOperation provides container and group helpers built only from the
ContactStore primitives. ContactsTask is the single task type that runs one
domain behavior behind the access gate:

- FetchContacts: resolve one or many contacts
- FetchOrCreateGroup: resolve a named group, optionally creating it
- DeleteGroup: delete the first group with a name
- AddMembers: resolve or create a group, then add contacts to it
- RemoveMembers: resolve a group, then remove contacts from it

Group lookups by name return the first match in store order. Names are not
unique and nothing here prevents two concurrent tasks from both creating a
group with the same name.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import NamedTuple, Protocol

from contact_ops.models import (
    ALL_CONTACT_KEYS,
    MINIMAL_KEYS,
    Contact,
    ContactPredicate,
    Container,
    ContainerID,
    ContainerPredicate,
    Group,
)
from contact_ops.operations.access import AccessGate
from contact_ops.store.base import ContactStore, EntityType, FetchRequest, SaveRequest

logger = logging.getLogger(__name__)


class ContactsOperation:
    """
    Container and group helpers for one store and container.

    Store errors raised by any helper propagate unchanged.

    Attributes:
        store: Store the helpers query and mutate
        container_id: Container the helpers act within
    """

    def __init__(self, store: ContactStore, container_id: ContainerID | None = None):
        self.store = store
        self.container_id = container_id or ContainerID.default()

    @property
    def container_identifier(self) -> str:
        if self.container_id.identifier is not None:
            return self.container_id.identifier
        return self.store.default_container_identifier()

    def containers_matching(
        self, predicate: ContainerPredicate | None
    ) -> list[Container]:
        return self.store.containers_matching(predicate)

    def container(self) -> Container | None:
        """Return the container for this operation, or None if none matches."""
        predicate = ContainerPredicate.with_identifiers([self.container_identifier])
        containers = self.containers_matching(predicate)
        return containers[0] if containers else None

    def all_groups(self) -> list[Group]:
        return self.store.groups_matching(None)

    def groups_named(self, name: str) -> list[Group]:
        """All groups with exactly this name, in store order."""
        return [g for g in self.all_groups() if g.name == name]

    def first_group_named(self, name: str) -> Group | None:
        groups = self.groups_named(name)
        return groups[0] if groups else None

    def create_group_with_name(self, name: str) -> Group:
        """
        Create a group in this operation's container.

        Returns:
            The locally constructed group. Its identifier is populated by
            stores that assign one on save.
        """
        group = Group(name=name)
        save = SaveRequest()
        save.add_group(group, to_container=self.container_identifier)
        self.store.execute_save_request(save)
        logger.info(f"Created group '{name}' in {self.container_identifier}")
        return group

    def remove_group_with_name(self, name: str) -> None:
        """Delete the first group with this name. Does nothing if there is none."""
        group = self.first_group_named(name)
        if group is None:
            logger.debug(f"No group named '{name}' to remove")
            return

        save = SaveRequest()
        save.delete_group(group)
        self.store.execute_save_request(save)
        logger.info(f"Removed group '{name}' ({group.identifier})")

    def add_contacts_with_identifiers(
        self, contact_ids: Sequence[str], to_group_named: str
    ) -> None:
        """
        Add contacts to the named group, creating the group if needed.

        All memberships are submitted in a single save request. Does nothing
        when contact_ids is empty.
        """
        if not contact_ids:
            return

        group = self.first_group_named(to_group_named)
        if group is None:
            group = self.create_group_with_name(to_group_named)

        save = SaveRequest()
        self.store.enumerate_contacts(
            FetchRequest.for_identifiers(contact_ids, MINIMAL_KEYS),
            lambda contact: save.add_member(contact, to_group=group),
        )
        self.store.execute_save_request(save)
        logger.info(f"Added {len(save)} contact(s) to group '{to_group_named}'")

    def remove_contacts_with_identifiers(
        self, contact_ids: Sequence[str], from_group_named: str
    ) -> None:
        """
        Remove contacts from the named group in a single save request.

        Does nothing when contact_ids is empty or no such group exists.
        """
        if not contact_ids:
            return

        group = self.first_group_named(from_group_named)
        if group is None:
            logger.debug(f"No group named '{from_group_named}'; nothing to remove")
            return

        save = SaveRequest()
        self.store.enumerate_contacts(
            FetchRequest.for_identifiers(contact_ids, MINIMAL_KEYS),
            lambda contact: save.remove_member(contact, from_group=group),
        )
        self.store.execute_save_request(save)
        logger.info(f"Removed {len(save)} contact(s) from group '{from_group_named}'")


# =============================================================================
# Domain behaviors
# =============================================================================


class BehaviorResult(NamedTuple):
    contacts: Sequence[Contact] = ()
    group: Group | None = None


class DomainBehavior(Protocol):
    @property
    def default_name(self) -> str: ...

    def run(self, operation: ContactsOperation) -> BehaviorResult: ...


@dataclass(frozen=True)
class FetchContacts:
    """Resolve the contacts a predicate selects."""

    predicate: ContactPredicate
    keys: frozenset[str] = ALL_CONTACT_KEYS

    @property
    def default_name(self) -> str:
        return "Get Contacts"

    def run(self, operation: ContactsOperation) -> BehaviorResult:
        store = operation.store
        identifier = self.predicate.single_identifier
        if identifier is not None:
            contact = store.unified_contact_with_identifier(identifier, self.keys)
            return BehaviorResult(contacts=[contact])
        return BehaviorResult(
            contacts=store.unified_contacts_matching(self.predicate, self.keys)
        )


@dataclass(frozen=True)
class FetchOrCreateGroup:
    """Resolve the first group with a name, creating it if allowed."""

    group_name: str
    create_if_necessary: bool = True

    @property
    def default_name(self) -> str:
        return "Get Contacts Group"

    def run(self, operation: ContactsOperation) -> BehaviorResult:
        group = operation.first_group_named(self.group_name)
        if group is None and self.create_if_necessary:
            group = operation.create_group_with_name(self.group_name)
        return BehaviorResult(group=group)


@dataclass(frozen=True)
class DeleteGroup:
    """Delete the first group with a name, if there is one."""

    group_name: str

    @property
    def default_name(self) -> str:
        return "Remove Contacts Group"

    def run(self, operation: ContactsOperation) -> BehaviorResult:
        operation.remove_group_with_name(self.group_name)
        return BehaviorResult()


@dataclass(frozen=True)
class AddMembers:
    """Resolve or create a group, then add contacts to it."""

    group_name: str
    contact_ids: tuple[str, ...] = field(default=())
    create_if_necessary: bool = True

    @property
    def default_name(self) -> str:
        return f"Add Contacts to Group: {self.group_name}"

    def run(self, operation: ContactsOperation) -> BehaviorResult:
        result = FetchOrCreateGroup(self.group_name, self.create_if_necessary).run(
            operation
        )
        operation.add_contacts_with_identifiers(self.contact_ids, self.group_name)
        return result


@dataclass(frozen=True)
class RemoveMembers:
    """Resolve a group without creating it, then remove contacts from it."""

    group_name: str
    contact_ids: tuple[str, ...] = field(default=())

    @property
    def default_name(self) -> str:
        return f"Remove Contacts from Group: {self.group_name}"

    def run(self, operation: ContactsOperation) -> BehaviorResult:
        result = FetchOrCreateGroup(self.group_name, create_if_necessary=False).run(
            operation
        )
        operation.remove_contacts_with_identifiers(self.contact_ids, self.group_name)
        return result


# =============================================================================
# Task
# =============================================================================


class ContactsTask(AccessGate):
    """
    Runs one domain behavior against a store once access is granted.

    Attributes:
        behavior: The domain behavior selected at construction
        operation: Container and group helpers bound to the store
        contacts: Contacts resolved by a FetchContacts behavior
        group: Group resolved or created by a group behavior, if any

    Usage:
        task = ContactsTask(store, AddMembers("Favorites", ("c1", "c2")))
        task.start()
        task.wait()
        if task.error is None:
            print(task.group)
    """

    def __init__(
        self,
        store: ContactStore,
        behavior: DomainBehavior,
        container_id: ContainerID | None = None,
        entity_type: EntityType = EntityType.CONTACTS,
        name: str | None = None,
    ):
        super().__init__(
            store, entity_type=entity_type, name=name or behavior.default_name
        )
        self.behavior = behavior
        self.operation = ContactsOperation(store, container_id)
        self.contacts: list[Contact] = []
        self.group: Group | None = None

    @property
    def container_id(self) -> ContainerID:
        return self.operation.container_id

    @property
    def contact(self) -> Contact | None:
        return self.contacts[0] if self.contacts else None

    def execute_domain_task(self) -> None:
        result = self.behavior.run(self.operation)
        self.contacts = list(result.contacts)
        self.group = result.group


# =============================================================================
# Factories
# =============================================================================


def get_contacts(
    store: ContactStore,
    predicate: ContactPredicate,
    keys: Iterable[str] = ALL_CONTACT_KEYS,
    container_id: ContainerID | None = None,
    entity_type: EntityType = EntityType.CONTACTS,
) -> ContactsTask:
    """Build a task resolving the contacts a predicate selects."""
    return ContactsTask(
        store,
        FetchContacts(predicate, frozenset(keys)),
        container_id=container_id,
        entity_type=entity_type,
    )


def get_contact(
    store: ContactStore,
    identifier: str,
    keys: Iterable[str] = ALL_CONTACT_KEYS,
    container_id: ContainerID | None = None,
    entity_type: EntityType = EntityType.CONTACTS,
) -> ContactsTask:
    """Build a task resolving a single contact by identifier."""
    return get_contacts(
        store,
        ContactPredicate.with_identifiers([identifier]),
        keys,
        container_id=container_id,
        entity_type=entity_type,
    )


def get_contacts_group(
    store: ContactStore,
    group_name: str,
    create_if_necessary: bool = True,
    container_id: ContainerID | None = None,
    entity_type: EntityType = EntityType.CONTACTS,
) -> ContactsTask:
    return ContactsTask(
        store,
        FetchOrCreateGroup(group_name, create_if_necessary),
        container_id=container_id,
        entity_type=entity_type,
    )


def remove_contacts_group(
    store: ContactStore,
    group_name: str,
    container_id: ContainerID | None = None,
    entity_type: EntityType = EntityType.CONTACTS,
) -> ContactsTask:
    return ContactsTask(
        store,
        DeleteGroup(group_name),
        container_id=container_id,
        entity_type=entity_type,
    )


def add_contacts_to_group(
    store: ContactStore,
    group_name: str,
    contact_ids: Iterable[str],
    create_if_necessary: bool = True,
    container_id: ContainerID | None = None,
    entity_type: EntityType = EntityType.CONTACTS,
) -> ContactsTask:
    return ContactsTask(
        store,
        AddMembers(group_name, tuple(contact_ids), create_if_necessary),
        container_id=container_id,
        entity_type=entity_type,
    )


def remove_contacts_from_group(
    store: ContactStore,
    group_name: str,
    contact_ids: Iterable[str],
    container_id: ContainerID | None = None,
    entity_type: EntityType = EntityType.CONTACTS,
) -> ContactsTask:
    return ContactsTask(
        store,
        RemoveMembers(group_name, tuple(contact_ids)),
        container_id=container_id,
        entity_type=entity_type,
    )


__all__ = [
    "ContactsOperation",
    "ContactsTask",
    "BehaviorResult",
    "DomainBehavior",
    "FetchContacts",
    "FetchOrCreateGroup",
    "DeleteGroup",
    "AddMembers",
    "RemoveMembers",
    "get_contacts",
    "get_contact",
    "get_contacts_group",
    "remove_contacts_group",
    "add_contacts_to_group",
    "remove_contacts_from_group",
]
