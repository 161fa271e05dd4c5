"""
Group data model and group selection predicates.

Group names are not unique. Any lookup by name returns matches in the order
the store lists them, so "first group named X" is only as stable as the
store's ordering.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from contact_ops.errors import UnsavedGroupError

# Group types as defined by Google People API
GROUP_TYPE_UNSPECIFIED = "GROUP_TYPE_UNSPECIFIED"
GROUP_TYPE_USER_CONTACT_GROUP = "USER_CONTACT_GROUP"
GROUP_TYPE_SYSTEM_CONTACT_GROUP = "SYSTEM_CONTACT_GROUP"


@dataclass
class Group:
    """
    Named collection of contacts within a container.

    Attributes:
        name: Display name of the group
        identifier: Store identifier, None until the group has been saved
        container_identifier: Container the group belongs to, if known
        etag: Store version tag, if the store uses one
        group_type: USER_CONTACT_GROUP or SYSTEM_CONTACT_GROUP

    Usage:
        # Locally constructed, not yet saved
        group = Group(name="Favorites")

        # After the store saved it, the identifier is populated
        group.require_identifier()
    """

    name: str
    identifier: str | None = None
    container_identifier: str | None = None
    etag: str | None = None
    group_type: str = GROUP_TYPE_USER_CONTACT_GROUP

    @classmethod
    def from_api_response(
        cls, group_data: dict[str, Any], container_identifier: str | None = None
    ) -> Group:
        """
        Create a Group from a Google People API contactGroup resource.

        Example API response structure::

            {
                'resourceName': 'contactGroups/123abc',
                'etag': 'xyz789',
                'name': 'My Custom Group',
                'groupType': 'USER_CONTACT_GROUP',
            }
        """
        return cls(
            name=group_data.get("name", ""),
            identifier=group_data.get("resourceName") or None,
            container_identifier=container_identifier,
            etag=group_data.get("etag") or None,
            group_type=group_data.get("groupType", GROUP_TYPE_UNSPECIFIED),
        )

    @property
    def is_saved(self) -> bool:
        return bool(self.identifier)

    def require_identifier(self) -> str:
        """
        Return the store identifier of a saved group.

        Raises:
            UnsavedGroupError: If the group has never been saved
        """
        if not self.identifier:
            raise UnsavedGroupError(
                f"Group '{self.name}' has no store identifier; save it first"
            )
        return self.identifier

    def is_system_group(self) -> bool:
        return self.group_type == GROUP_TYPE_SYSTEM_CONTACT_GROUP


@dataclass(frozen=True)
class GroupPredicate:
    """
    Selection criterion for groups. A None predicate selects all groups.

        GroupPredicate.with_identifiers(["contactGroups/1"])
        GroupPredicate.in_container("people/me")
    """

    identifiers: tuple[str, ...] = ()
    container_identifier: str | None = None

    @classmethod
    def with_identifiers(cls, identifiers: Iterable[str]) -> GroupPredicate:
        return cls(identifiers=tuple(dict.fromkeys(identifiers)))

    @classmethod
    def in_container(cls, container_identifier: str) -> GroupPredicate:
        return cls(container_identifier=container_identifier)

    def matches(self, group: Group) -> bool:
        if self.identifiers and group.identifier not in self.identifiers:
            return False
        if (
            self.container_identifier is not None
            and group.container_identifier != self.container_identifier
        ):
            return False
        return True
