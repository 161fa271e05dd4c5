"""
contact_ops.operations - Permission-gated contact operations

Task primitive, task queue, access gate and the contact/group operations
built on top of them.
"""

from contact_ops.operations.access import AccessGate
from contact_ops.operations.contacts import (
    AddMembers,
    BehaviorResult,
    ContactsOperation,
    ContactsTask,
    DeleteGroup,
    DomainBehavior,
    FetchContacts,
    FetchOrCreateGroup,
    RemoveMembers,
    add_contacts_to_group,
    get_contact,
    get_contacts,
    get_contacts_group,
    remove_contacts_from_group,
    remove_contacts_group,
)
from contact_ops.operations.queue import (
    DEFAULT_MAX_WORKERS,
    QueueError,
    QueueStats,
    TaskQueue,
)
from contact_ops.operations.task import Task, TaskState

__all__ = [
    "Task",
    "TaskState",
    "TaskQueue",
    "QueueStats",
    "QueueError",
    "DEFAULT_MAX_WORKERS",
    "AccessGate",
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
