"""
Unit tests for the in-memory store.

Tests queries, access-request resolution and all-or-nothing save requests.
"""

import pytest

from contact_ops.errors import (
    ContactNotFoundError,
    StoreMutationError,
    UnsavedGroupError,
)
from contact_ops.models import (
    ALL_CONTACT_KEYS,
    EMAIL_KEY,
    MINIMAL_KEYS,
    Contact,
    ContactPredicate,
    Container,
    ContainerPredicate,
    Group,
    GroupPredicate,
)
from contact_ops.store import (
    DEFAULT_CONTAINER_IDENTIFIER,
    AccessResponse,
    AuthorizationStatus,
    EntityType,
    FetchRequest,
    InMemoryContactStore,
    MutationKind,
    SaveRequest,
)


@pytest.fixture
def store():
    """Store with two contacts and no groups."""
    return InMemoryContactStore(
        contacts=[
            Contact(
                "c1",
                display_name="Ada Lovelace",
                emails=("ada@example.com",),
                fetched_keys=ALL_CONTACT_KEYS,
            ),
            Contact("c2", display_name="Grace Hopper", fetched_keys=ALL_CONTACT_KEYS),
        ]
    )


class TestInitialization:
    """Tests for store construction."""

    def test_default_container(self):
        """Test that a default container is created when none is given."""
        store = InMemoryContactStore()

        assert store.default_container_identifier() == DEFAULT_CONTAINER_IDENTIFIER
        assert [c.identifier for c in store.containers_matching()] == ["local"]

    def test_first_container_is_default(self):
        """Test that the first supplied container is the default."""
        store = InMemoryContactStore(containers=[Container("a"), Container("b")])

        assert store.default_container_identifier() == "a"

    def test_no_containers_rejected(self):
        """Test that a store needs at least one container."""
        with pytest.raises(ValueError):
            InMemoryContactStore(containers=[])

    def test_seeded_groups_get_identifiers(self):
        """Test that seeded groups are saved with identifiers."""
        store = InMemoryContactStore(groups=[Group("Family")])

        [group] = store.groups_matching()
        assert group.is_saved
        assert group.container_identifier == "local"


class TestQueries:
    """Tests for container, group and contact queries."""

    def test_containers_matching_predicate(self):
        """Test filtering containers by identifier."""
        store = InMemoryContactStore(containers=[Container("a"), Container("b")])

        result = store.containers_matching(ContainerPredicate.with_identifiers(["b"]))

        assert [c.identifier for c in result] == ["b"]

    def test_groups_matching_none_returns_all_in_order(self, store):
        """Test that a None predicate returns every group in insertion order."""
        first = store.add_group(Group("Work"))
        second = store.add_group(Group("Work"))

        assert store.groups_matching(None) == [first, second]

    def test_groups_matching_predicate(self, store):
        """Test filtering groups by identifier."""
        work = store.add_group(Group("Work"))
        store.add_group(Group("Home"))

        result = store.groups_matching(GroupPredicate.with_identifiers([work.identifier]))

        assert result == [work]

    def test_contact_with_identifier_restricted_to_keys(self, store):
        """Test that a fetched contact carries only the requested keys."""
        contact = store.unified_contact_with_identifier("c1", [EMAIL_KEY])

        assert contact.emails == ("ada@example.com",)
        assert contact.display_name == ""
        assert contact.fetched_keys == {EMAIL_KEY, "identifier"}

    def test_missing_contact_raises(self, store):
        """Test that an unknown identifier raises ContactNotFoundError."""
        with pytest.raises(ContactNotFoundError) as exc_info:
            store.unified_contact_with_identifier("nope", ALL_CONTACT_KEYS)

        assert exc_info.value.identifier == "nope"

    def test_contacts_matching_name(self, store):
        """Test selecting contacts by name."""
        result = store.unified_contacts_matching(
            ContactPredicate.matching_name("grace"), ALL_CONTACT_KEYS
        )

        assert [c.identifier for c in result] == ["c2"]

    def test_contacts_matching_unknown_identifiers_is_empty(self, store):
        """Test that identifiers with no records select nothing."""
        result = store.unified_contacts_matching(
            ContactPredicate.with_identifiers(["x", "y"]), ALL_CONTACT_KEYS
        )

        assert result == []

    def test_enumerate_contacts(self, store):
        """Test that enumeration calls back once per selected contact."""
        seen = []

        store.enumerate_contacts(
            FetchRequest.for_identifiers(["c2", "missing"]), seen.append
        )

        assert [c.identifier for c in seen] == ["c2"]
        assert seen[0].fetched_keys == MINIMAL_KEYS

    def test_enumerate_all_contacts(self, store):
        """Test that a request without predicate enumerates everything."""
        seen = []

        store.enumerate_contacts(FetchRequest(), seen.append)

        assert {c.identifier for c in seen} == {"c1", "c2"}


class TestAccessRequest:
    """Tests for access request resolution."""

    def test_granted_request_authorizes(self):
        """Test that a granted request changes the status to authorized."""
        store = InMemoryContactStore(status=AuthorizationStatus.NOT_DETERMINED)

        future = store.request_access(EntityType.CONTACTS)

        assert future.result(timeout=1) == AccessResponse(granted=True)
        assert store.authorization_status(EntityType.CONTACTS) is (
            AuthorizationStatus.AUTHORIZED
        )
        assert store.access_requests == 1

    def test_refused_request_denies(self):
        """Test that a refused request changes the status to denied."""
        store = InMemoryContactStore(
            status=AuthorizationStatus.NOT_DETERMINED,
            access_response=AccessResponse(granted=False),
        )

        store.request_access(EntityType.CONTACTS).result(timeout=1)

        assert store.status is AuthorizationStatus.DENIED

    def test_async_resolution(self):
        """Test that an async store resolves the future on another thread."""
        store = InMemoryContactStore(
            status=AuthorizationStatus.NOT_DETERMINED,
            resolve_access_async=True,
            access_delay=0.01,
        )

        future = store.request_access(EntityType.CONTACTS)

        assert future.result(timeout=5).granted


class TestExecuteSaveRequest:
    """Tests for applying save requests."""

    def test_add_group_assigns_identifier(self, store):
        """Test that saving a new group populates its identifier."""
        group = Group("Favorites")
        save = SaveRequest()
        save.add_group(group, to_container="local")

        store.execute_save_request(save)

        assert group.is_saved
        assert group.container_identifier == "local"
        assert store.group_names() == ["Favorites"]

    def test_add_group_and_members_in_one_request(self, store):
        """Test that members can be added to a group created in the same request."""
        group = Group("Favorites")
        save = SaveRequest()
        save.add_group(group, to_container="local")
        save.add_member(Contact("c1"), to_group=group)

        store.execute_save_request(save)

        assert store.members_of(group.identifier) == ["c1"]

    def test_membership_changes(self, store):
        """Test adding and removing members."""
        group = store.add_group(Group("Favorites"))
        add = SaveRequest()
        add.add_member(Contact("c1"), to_group=group)
        add.add_member(Contact("c2"), to_group=group)
        store.execute_save_request(add)

        remove = SaveRequest()
        remove.remove_member(Contact("c1"), from_group=group)
        store.execute_save_request(remove)

        assert store.members_of(group.identifier) == ["c2"]

    def test_adding_existing_member_is_idempotent(self, store):
        """Test that adding a member twice keeps one membership."""
        group = store.add_group(Group("Favorites"), members=["c1"])
        save = SaveRequest()
        save.add_member(Contact("c1"), to_group=group)

        store.execute_save_request(save)

        assert store.members_of(group.identifier) == ["c1"]

    def test_delete_group(self, store):
        """Test deleting a group."""
        group = store.add_group(Group("Old"))
        save = SaveRequest()
        save.delete_group(group)

        store.execute_save_request(save)

        assert store.groups_matching() == []

    def test_empty_request_is_noop(self, store):
        """Test that an empty save request succeeds and changes nothing."""
        save = SaveRequest()

        store.execute_save_request(save)

        assert save.is_empty
        assert store.executed_save_requests == [save]

    def test_unsaved_group_rejected(self, store):
        """Test that a membership change on an unsaved group fails."""
        save = SaveRequest()
        save.add_member(Contact("c1"), to_group=Group("Ghost"))

        with pytest.raises(UnsavedGroupError):
            store.execute_save_request(save)

    def test_unknown_container_rejected(self, store):
        """Test that adding a group to an unknown container fails."""
        save = SaveRequest()
        save.add_group(Group("Favorites"), to_container="elsewhere")

        with pytest.raises(StoreMutationError, match="Unknown container"):
            store.execute_save_request(save)

    def test_failing_request_applies_nothing(self, store):
        """Test that a request with one invalid mutation leaves the store unchanged."""
        group = store.add_group(Group("Favorites"))
        save = SaveRequest()
        save.add_member(Contact("c1"), to_group=group)
        save.add_member(Contact("missing"), to_group=group)

        with pytest.raises(StoreMutationError, match="missing"):
            store.execute_save_request(save)

        assert store.members_of(group.identifier) == []
        assert store.executed_save_requests == []

    def test_change_after_delete_in_same_request_rejected(self, store):
        """Test that a group deleted earlier in a request can't be changed later."""
        group = store.add_group(Group("Favorites"), members=["c1"])
        save = SaveRequest()
        save.delete_group(group)
        save.add_member(Contact("c2"), to_group=group)

        with pytest.raises(StoreMutationError, match="deleted earlier"):
            store.execute_save_request(save)

        assert store.group_names() == ["Favorites"]
        assert store.members_of(group.identifier) == ["c1"]

    def test_delete_then_change_by_identifier_rejected(self, store):
        """Test that a second Group object for a deleted identifier is rejected."""
        group = store.add_group(Group("Favorites"))
        save = SaveRequest()
        save.delete_group(group)
        save.add_member(
            Contact("c1"), to_group=Group("Favorites", identifier=group.identifier)
        )

        with pytest.raises(StoreMutationError, match="Group not found"):
            store.execute_save_request(save)

        assert store.group_names() == ["Favorites"]


class TestSaveRequest:
    """Tests for the SaveRequest accumulator."""

    def test_of_kind(self):
        """Test filtering pending mutations by kind."""
        group = Group("Favorites", identifier="g1")
        save = SaveRequest()
        save.add_member(Contact("c1"), to_group=group)
        save.remove_member(Contact("c2"), from_group=group)
        save.add_member(Contact("c3"), to_group=group)

        added = save.of_kind(MutationKind.ADD_MEMBER)

        assert len(save) == 3
        assert [m.contact.identifier for m in added] == ["c1", "c3"]
