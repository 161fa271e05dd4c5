"""
contact_ops.models - Address-book value types

Contacts, groups, containers and the predicates that select them.
"""

from contact_ops.models.contact import (
    ALL_CONTACT_KEYS,
    DISPLAY_NAME_KEY,
    EMAIL_KEY,
    FAMILY_NAME_KEY,
    GIVEN_NAME_KEY,
    IDENTIFIER_KEY,
    MINIMAL_KEYS,
    NOTE_KEY,
    ORGANIZATION_KEY,
    PHONE_KEY,
    Contact,
    ContactPredicate,
)
from contact_ops.models.container import Container, ContainerID, ContainerPredicate
from contact_ops.models.group import Group, GroupPredicate

__all__ = [
    "Contact",
    "ContactPredicate",
    "Container",
    "ContainerID",
    "ContainerPredicate",
    "Group",
    "GroupPredicate",
    "ALL_CONTACT_KEYS",
    "MINIMAL_KEYS",
    "IDENTIFIER_KEY",
    "DISPLAY_NAME_KEY",
    "GIVEN_NAME_KEY",
    "FAMILY_NAME_KEY",
    "EMAIL_KEY",
    "PHONE_KEY",
    "ORGANIZATION_KEY",
    "NOTE_KEY",
]
