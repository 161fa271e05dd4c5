"""
contact_ops.store - Address-book store implementations

The ContactStore contract plus in-memory and Google People API stores.
"""

from contact_ops.store.base import (
    AccessResponse,
    AuthorizationStatus,
    ContactStore,
    EntityType,
    FetchRequest,
    Mutation,
    MutationKind,
    SaveRequest,
)
from contact_ops.store.memory import DEFAULT_CONTAINER_IDENTIFIER, InMemoryContactStore

__all__ = [
    "AccessResponse",
    "AuthorizationStatus",
    "ContactStore",
    "EntityType",
    "FetchRequest",
    "Mutation",
    "MutationKind",
    "SaveRequest",
    "InMemoryContactStore",
    "DEFAULT_CONTAINER_IDENTIFIER",
]
