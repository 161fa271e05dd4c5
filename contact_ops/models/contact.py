"""
Contact data model and contact selection predicates.

Contacts are never constructed by operations; they are returned by a store
with only the requested keys populated. Reading a key that was not fetched
raises KeyNotFetchedError instead of silently returning an empty value.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from contact_ops.errors import KeyNotFetchedError
from contact_ops.utils.normalization import normalize_string

# Keys that can be requested when fetching contacts
IDENTIFIER_KEY = "identifier"
DISPLAY_NAME_KEY = "displayName"
GIVEN_NAME_KEY = "givenName"
FAMILY_NAME_KEY = "familyName"
EMAIL_KEY = "emailAddresses"
PHONE_KEY = "phoneNumbers"
ORGANIZATION_KEY = "organizations"
NOTE_KEY = "note"

ALL_CONTACT_KEYS = frozenset(
    {
        IDENTIFIER_KEY,
        DISPLAY_NAME_KEY,
        GIVEN_NAME_KEY,
        FAMILY_NAME_KEY,
        EMAIL_KEY,
        PHONE_KEY,
        ORGANIZATION_KEY,
        NOTE_KEY,
    }
)

# Keys fetched for membership changes, where only the identifier matters
MINIMAL_KEYS = frozenset({IDENTIFIER_KEY})

# Predicate kinds
PREDICATE_IDENTIFIERS = "identifiers"
PREDICATE_NAME = "name"


@dataclass(frozen=True)
class Contact:
    """
    Contact record as returned by an address-book store.

    Attributes:
        identifier: Stable store identifier (e.g., "people/c12345")
        display_name: Full display name
        given_name: First name
        family_name: Last name
        emails: Email addresses
        phones: Phone numbers
        organizations: Organization names
        note: Free-form note
        fetched_keys: Keys the store populated for this record

    Usage:
        contact = store.unified_contact_with_identifier("people/c1", keys)
        contact.value(EMAIL_KEY)  # raises KeyNotFetchedError if not fetched
    """

    identifier: str
    display_name: str = ""
    given_name: str | None = None
    family_name: str | None = None
    emails: tuple[str, ...] = ()
    phones: tuple[str, ...] = ()
    organizations: tuple[str, ...] = ()
    note: str | None = None
    fetched_keys: frozenset[str] = field(default=MINIMAL_KEYS)

    @classmethod
    def from_api_response(
        cls, person: dict[str, Any], keys: Iterable[str] = ALL_CONTACT_KEYS
    ) -> Contact:
        """
        Create a Contact from a Google People API person resource.

        Args:
            person: Dictionary from the People API
            keys: Keys that were requested, recorded as fetched_keys

        Returns:
            Contact populated from the API response

        Example API response structure::

            {
                'resourceName': 'people/c12345',
                'etag': 'abc123',
                'names': [{'displayName': 'John Doe', ...}],
                'emailAddresses': [{'value': 'john@example.com'}],
                'phoneNumbers': [{'value': '+1234567890'}],
                'organizations': [{'name': 'Acme Corp'}],
                'biographies': [{'value': 'Some notes'}],
            }
        """
        names = person.get("names", [{}])
        primary_name = names[0] if names else {}

        display_name = primary_name.get("displayName", "")
        given_name = primary_name.get("givenName")
        family_name = primary_name.get("familyName")

        if not display_name and (given_name or family_name):
            display_name = " ".join(p for p in [given_name, family_name] if p)

        emails = tuple(
            e["value"] for e in person.get("emailAddresses", []) if e.get("value")
        )
        phones = tuple(
            p["value"] for p in person.get("phoneNumbers", []) if p.get("value")
        )
        organizations = tuple(
            o["name"] for o in person.get("organizations", []) if o.get("name")
        )

        biographies = person.get("biographies", [])
        note = biographies[0].get("value") if biographies else None

        return cls(
            identifier=person.get("resourceName", ""),
            display_name=display_name,
            given_name=given_name,
            family_name=family_name,
            emails=emails,
            phones=phones,
            organizations=organizations,
            note=note,
            fetched_keys=frozenset(keys) | MINIMAL_KEYS,
        )

    def value(self, key: str) -> Any:
        """
        Read a field by key, enforcing that it was fetched.

        Raises:
            KeyNotFetchedError: If the key was not requested from the store
        """
        if key not in ALL_CONTACT_KEYS:
            raise KeyError(key)
        if key not in self.fetched_keys:
            raise KeyNotFetchedError(
                f"Key '{key}' was not fetched for contact {self.identifier}"
            )
        attribute = {
            IDENTIFIER_KEY: "identifier",
            DISPLAY_NAME_KEY: "display_name",
            GIVEN_NAME_KEY: "given_name",
            FAMILY_NAME_KEY: "family_name",
            EMAIL_KEY: "emails",
            PHONE_KEY: "phones",
            ORGANIZATION_KEY: "organizations",
            NOTE_KEY: "note",
        }[key]
        return getattr(self, attribute)

    def restricted_to(self, keys: Iterable[str]) -> Contact:
        """Return a copy carrying only the given keys (identifier always kept)."""
        wanted = frozenset(keys) | MINIMAL_KEYS
        return Contact(
            identifier=self.identifier,
            display_name=self.display_name if DISPLAY_NAME_KEY in wanted else "",
            given_name=self.given_name if GIVEN_NAME_KEY in wanted else None,
            family_name=self.family_name if FAMILY_NAME_KEY in wanted else None,
            emails=self.emails if EMAIL_KEY in wanted else (),
            phones=self.phones if PHONE_KEY in wanted else (),
            organizations=self.organizations if ORGANIZATION_KEY in wanted else (),
            note=self.note if NOTE_KEY in wanted else None,
            fetched_keys=wanted,
        )

    def __repr__(self) -> str:
        return (
            f"Contact(identifier={self.identifier!r}, "
            f"display_name={self.display_name!r})"
        )


@dataclass(frozen=True)
class ContactPredicate:
    """
    Selection criterion for contact records.

    Use the constructors rather than the raw fields:

        ContactPredicate.with_identifiers(["people/c1", "people/c2"])
        ContactPredicate.matching_name("ada")
    """

    kind: str
    identifiers: tuple[str, ...] = ()
    name: str = ""

    @classmethod
    def with_identifiers(cls, identifiers: Iterable[str]) -> ContactPredicate:
        # Order preserving de-duplication
        unique = tuple(dict.fromkeys(identifiers))
        return cls(kind=PREDICATE_IDENTIFIERS, identifiers=unique)

    @classmethod
    def matching_name(cls, name: str) -> ContactPredicate:
        return cls(kind=PREDICATE_NAME, name=name)

    @property
    def single_identifier(self) -> str | None:
        """The identifier if this predicate selects exactly one, else None."""
        if self.kind == PREDICATE_IDENTIFIERS and len(self.identifiers) == 1:
            return self.identifiers[0]
        return None

    def matches(self, contact: Contact) -> bool:
        """Evaluate the predicate against a contact held in memory."""
        if self.kind == PREDICATE_IDENTIFIERS:
            return contact.identifier in self.identifiers

        needle = normalize_string(self.name)
        if not needle:
            return False
        candidates = (contact.display_name, contact.given_name, contact.family_name)
        return any(needle in normalize_string(c or "") for c in candidates)
