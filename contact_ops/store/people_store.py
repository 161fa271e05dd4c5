"""
Google People API store.

ContactStore implementation on top of the Google People API:
- Authorization derived from stored OAuth credentials
- Access requests run the OAuth consent flow on a worker thread
- Contact and group queries with pagination and batching
- Save requests mapped onto contactGroups create/delete/members.modify
- Exponential backoff retry logic for rate limits and server errors

The People API is not transactional. A save request is applied in order and
is only atomic per API call, so a failure part way through leaves the
earlier calls applied.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from contact_ops.auth.google_auth import GoogleAuth
from contact_ops.errors import (
    ContactNotFoundError,
    StoreError,
    StoreMutationError,
    StoreQueryError,
)
from contact_ops.models import (
    DISPLAY_NAME_KEY,
    EMAIL_KEY,
    FAMILY_NAME_KEY,
    GIVEN_NAME_KEY,
    IDENTIFIER_KEY,
    NOTE_KEY,
    ORGANIZATION_KEY,
    PHONE_KEY,
    Contact,
    ContactPredicate,
    Container,
    ContainerPredicate,
    Group,
    GroupPredicate,
)
from contact_ops.models.contact import PREDICATE_IDENTIFIERS
from contact_ops.store.base import (
    AccessResponse,
    AuthorizationStatus,
    ContactStore,
    EntityType,
    FetchRequest,
    MutationKind,
    SaveRequest,
)

# The authenticated user's contacts form a single container
PEOPLE_CONTAINER_IDENTIFIER = "people/me"
PEOPLE_CONTAINER_NAME = "Google Contacts"

# People API person fields for each contact key
KEY_TO_PERSON_FIELD = {
    IDENTIFIER_KEY: "metadata",
    DISPLAY_NAME_KEY: "names",
    GIVEN_NAME_KEY: "names",
    FAMILY_NAME_KEY: "names",
    EMAIL_KEY: "emailAddresses",
    PHONE_KEY: "phoneNumbers",
    ORGANIZATION_KEY: "organizations",
    NOTE_KEY: "biographies",
}

GROUP_FIELDS = "name,groupType,metadata"

# API limits
DEFAULT_PAGE_SIZE = 100
BATCH_GET_LIMIT = 200
SEARCH_PAGE_SIZE = 30
MODIFY_MEMBERS_LIMIT = 1000

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 60.0  # seconds

logger = logging.getLogger(__name__)


class RateLimitError(StoreError):
    """Raised when rate limit is exceeded and retries are exhausted."""

    pass


def person_fields_for(keys: Iterable[str]) -> str:
    """Translate contact keys into a People API personFields mask."""
    fields = {KEY_TO_PERSON_FIELD[k] for k in keys if k in KEY_TO_PERSON_FIELD}
    fields.add("metadata")
    return ",".join(sorted(fields))


def _chunks(items: list[str], size: int) -> Iterable[list[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class PeopleContactStore(ContactStore):
    """
    ContactStore backed by the Google People API.

    Attributes:
        auth: OAuth credential manager
        page_size: Number of records per page when listing

    Usage:
        store = PeopleContactStore(GoogleAuth())
        task = get_contacts_group(store, "Favorites")
        task.start()
    """

    def __init__(
        self,
        auth: GoogleAuth,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
    ):
        """
        Initialize the People API store.

        Args:
            auth: Credential manager supplying OAuth credentials
            page_size: Records per page when listing (default 100, max 1000)
            max_retries: Maximum retry attempts for failed API calls (default 5)
            initial_retry_delay: Initial backoff delay in seconds (default 1.0)
            max_retry_delay: Maximum backoff delay in seconds (default 60.0)
        """
        self.auth = auth
        self.page_size = min(page_size, 1000)  # API max is 1000
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._service: Any = None
        self._lock = threading.Lock()
        self._access_executor: ThreadPoolExecutor | None = None

    @property
    def service(self) -> Any:
        """
        Get or create the Google API service object.

        Raises:
            StoreQueryError: If there are no usable credentials or the
                             service cannot be created
        """
        with self._lock:
            if self._service is None:
                credentials = self.auth.get_credentials()
                if credentials is None:
                    raise StoreQueryError("No valid Google credentials available")
                try:
                    self._service = build(
                        "people", "v1", credentials=credentials, cache_discovery=False
                    )
                    logger.debug("Created People API service")
                except Exception as e:
                    logger.error(f"Failed to create People API service: {e}")
                    raise StoreQueryError(f"Failed to create API service: {e}") from e
            return self._service

    def _retry_with_backoff(
        self, operation: Callable[[], Any], operation_name: str
    ) -> Any:
        """
        Execute an operation with exponential backoff retry.

        Non-retryable HttpErrors are re-raised for the caller to map.

        Raises:
            RateLimitError: If retries are exhausted due to rate limits
            HttpError: For other API errors
        """
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            try:
                return operation()

            except HttpError as e:
                status_code = e.resp.status

                # Rate limit or quota exceeded - retry with backoff
                if status_code == 429:
                    if attempt < self.max_retries - 1:
                        logger.warning(
                            f"{operation_name} rate limited, retrying in "
                            f"{delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                        )
                        time.sleep(delay)
                        delay = min(delay * 2, self.max_retry_delay)
                        continue
                    raise RateLimitError(
                        f"Rate limit exceeded for {operation_name} "
                        f"after {self.max_retries} retries"
                    ) from e

                # Server error - retry with backoff
                if status_code >= 500 and attempt < self.max_retries - 1:
                    logger.warning(
                        f"{operation_name} server error ({status_code}), "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue

                logger.error(f"{operation_name} failed with status {status_code}: {e}")
                raise

        raise StoreError(f"{operation_name} failed after all retries")

    def _query(self, operation: Callable[[], Any], operation_name: str) -> Any:
        try:
            return self._retry_with_backoff(operation, operation_name)
        except HttpError as e:
            raise StoreQueryError(f"{operation_name} failed: {e}") from e

    def _mutate(self, operation: Callable[[], Any], operation_name: str) -> Any:
        try:
            return self._retry_with_backoff(operation, operation_name)
        except HttpError as e:
            raise StoreMutationError(f"{operation_name} failed: {e}") from e

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorization_status(self, entity_type: EntityType) -> AuthorizationStatus:
        return self.auth.authorization_status()

    def request_access(self, entity_type: EntityType) -> Future[AccessResponse]:
        with self._lock:
            if self._access_executor is None:
                self._access_executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="contact-ops-auth"
                )
            executor = self._access_executor
        return executor.submit(self._run_consent_flow)

    def _run_consent_flow(self) -> AccessResponse:
        try:
            self.auth.authenticate()
        except Exception as e:
            logger.warning(f"Access request failed: {e}")
            return AccessResponse(granted=False, error=e)

        with self._lock:
            self._service = None
        granted = self.auth.authorization_status() is AuthorizationStatus.AUTHORIZED
        return AccessResponse(granted=granted)

    def close(self) -> None:
        """Release the worker thread used for access requests."""
        with self._lock:
            executor, self._access_executor = self._access_executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def default_container_identifier(self) -> str:
        return PEOPLE_CONTAINER_IDENTIFIER

    def containers_matching(
        self, predicate: ContainerPredicate | None = None
    ) -> list[Container]:
        containers = [Container(PEOPLE_CONTAINER_IDENTIFIER, PEOPLE_CONTAINER_NAME)]
        if predicate is None:
            return containers
        return [c for c in containers if predicate.matches(c)]

    def groups_matching(self, predicate: GroupPredicate | None = None) -> list[Group]:
        logger.debug("Listing contact groups")

        groups: list[Group] = []
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "pageSize": self.page_size,
                "groupFields": GROUP_FIELDS,
            }
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.contactGroups().list(**p).execute()

            response = self._query(execute_list, "list_contact_groups")

            for group_data in response.get("contactGroups", []):
                if group_data.get("metadata", {}).get("deleted", False):
                    continue
                groups.append(
                    Group.from_api_response(group_data, PEOPLE_CONTAINER_IDENTIFIER)
                )

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        if predicate is not None:
            groups = [g for g in groups if predicate.matches(g)]

        logger.debug(f"Listed {len(groups)} contact groups")
        return groups

    def unified_contact_with_identifier(
        self, identifier: str, keys: Iterable[str]
    ) -> Contact:
        keys = frozenset(keys)
        logger.debug(f"Getting contact: {identifier}")

        def execute_get() -> Any:
            return (
                self.service.people()
                .get(resourceName=identifier, personFields=person_fields_for(keys))
                .execute()
            )

        try:
            response = self._retry_with_backoff(
                execute_get, f"get_contact({identifier})"
            )
        except HttpError as e:
            if e.resp.status == 404:
                raise ContactNotFoundError(identifier) from e
            raise StoreQueryError(f"get_contact({identifier}) failed: {e}") from e

        return Contact.from_api_response(response, keys)

    def unified_contacts_matching(
        self, predicate: ContactPredicate, keys: Iterable[str]
    ) -> list[Contact]:
        keys = frozenset(keys)
        if predicate.kind == PREDICATE_IDENTIFIERS:
            return self._batch_get(list(predicate.identifiers), keys)
        return self._search(predicate, keys)

    def _batch_get(self, identifiers: list[str], keys: frozenset[str]) -> list[Contact]:
        contacts: list[Contact] = []
        fields = person_fields_for(keys)

        for batch in _chunks(identifiers, BATCH_GET_LIMIT):

            def execute_batch_get(b: list[str] = batch) -> Any:
                return (
                    self.service.people()
                    .getBatchGet(resourceNames=b, personFields=fields)
                    .execute()
                )

            response = self._query(execute_batch_get, "get_batch_contacts")
            for item in response.get("responses", []):
                person = item.get("person")
                if person:
                    contacts.append(Contact.from_api_response(person, keys))
                else:
                    logger.debug(
                        f"Skipping unresolved contact {item.get('requestedResourceName')}"
                    )

        return contacts

    def _search(self, predicate: ContactPredicate, keys: frozenset[str]) -> list[Contact]:
        def execute_search() -> Any:
            return (
                self.service.people()
                .searchContacts(
                    query=predicate.name,
                    readMask=person_fields_for(keys),
                    pageSize=SEARCH_PAGE_SIZE,
                )
                .execute()
            )

        response = self._query(execute_search, "search_contacts")
        contacts = [
            Contact.from_api_response(result["person"], keys)
            for result in response.get("results", [])
            if result.get("person")
        ]
        return [c for c in contacts if predicate.matches(c)]

    def _list_connections(self, keys: frozenset[str]) -> Iterable[Contact]:
        page_token: str | None = None
        fields = person_fields_for(keys)

        while True:
            params: dict[str, Any] = {
                "resourceName": PEOPLE_CONTAINER_IDENTIFIER,
                "personFields": fields,
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.people().connections().list(**p).execute()

            response = self._query(execute_list, "list_contacts")
            for person in response.get("connections", []):
                yield Contact.from_api_response(person, keys)

            page_token = response.get("nextPageToken")
            if not page_token:
                break

    def enumerate_contacts(
        self, fetch_request: FetchRequest, callback: Callable[[Contact], None]
    ) -> None:
        keys = fetch_request.keys
        if fetch_request.predicate is None:
            contacts: Iterable[Contact] = self._list_connections(keys)
        else:
            contacts = self.unified_contacts_matching(fetch_request.predicate, keys)

        for contact in contacts:
            callback(contact)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def execute_save_request(self, save_request: SaveRequest) -> None:
        """
        Apply a save request.

        Group creations and deletions are applied first, in order, followed by
        one members.modify call per group.

        Raises:
            StoreMutationError: If any API call fails
        """
        if save_request.is_empty:
            logger.debug("Skipping empty save request")
            return

        for mutation in save_request.of_kind(MutationKind.ADD_GROUP):
            if mutation.container_identifier != PEOPLE_CONTAINER_IDENTIFIER:
                raise StoreMutationError(
                    f"Unknown container: {mutation.container_identifier}"
                )

        for mutation in save_request:
            if mutation.kind is MutationKind.ADD_GROUP:
                self._create_group(mutation.group)
            elif mutation.kind is MutationKind.DELETE_GROUP:
                self._delete_group(mutation.group.require_identifier())

        # Membership changes grouped per group, in first-seen order
        changes: dict[str, tuple[list[str], list[str]]] = {}
        for mutation in save_request:
            if mutation.contact is None:
                continue
            identifier = mutation.group.require_identifier()
            to_add, to_remove = changes.setdefault(identifier, ([], []))
            if mutation.kind is MutationKind.ADD_MEMBER:
                to_add.append(mutation.contact.identifier)
            elif mutation.kind is MutationKind.REMOVE_MEMBER:
                to_remove.append(mutation.contact.identifier)

        for group_identifier, (to_add, to_remove) in changes.items():
            self._modify_members(group_identifier, to_add, to_remove)

    def _create_group(self, group: Group) -> None:
        body = {"contactGroup": {"name": group.name}}

        def execute_create() -> Any:
            return self.service.contactGroups().create(body=body).execute()

        response = self._mutate(execute_create, f"create_contact_group({group.name})")
        group.identifier = response.get("resourceName")
        group.etag = response.get("etag")
        group.container_identifier = PEOPLE_CONTAINER_IDENTIFIER
        logger.info(f"Created contact group: {group.identifier} ({group.name})")

    def _delete_group(self, resource_name: str) -> None:
        def execute_delete() -> Any:
            return (
                self.service.contactGroups()
                .delete(resourceName=resource_name, deleteContacts=False)
                .execute()
            )

        self._mutate(execute_delete, f"delete_contact_group({resource_name})")
        logger.info(f"Deleted contact group: {resource_name}")

    def _modify_members(
        self, resource_name: str, to_add: list[str], to_remove: list[str]
    ) -> None:
        logger.debug(
            f"Modifying group members for {resource_name}: "
            f"adding {len(to_add)}, removing {len(to_remove)}"
        )
        add_batches = list(_chunks(to_add, MODIFY_MEMBERS_LIMIT))
        remove_batches = list(_chunks(to_remove, MODIFY_MEMBERS_LIMIT))

        for i in range(max(len(add_batches), len(remove_batches))):
            body: dict[str, list[str]] = {}
            if i < len(add_batches):
                body["resourceNamesToAdd"] = add_batches[i]
            if i < len(remove_batches):
                body["resourceNamesToRemove"] = remove_batches[i]

            def execute_modify(b: dict[str, list[str]] = body) -> Any:
                return (
                    self.service.contactGroups()
                    .members()
                    .modify(resourceName=resource_name, body=b)
                    .execute()
                )

            response = self._mutate(
                execute_modify, f"modify_group_members({resource_name})"
            )
            not_found = response.get("notFoundResourceNames", [])
            if not_found:
                logger.warning(
                    f"{len(not_found)} contact(s) not found while modifying "
                    f"{resource_name}"
                )


__all__ = [
    "PeopleContactStore",
    "RateLimitError",
    "person_fields_for",
    "PEOPLE_CONTAINER_IDENTIFIER",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_INITIAL_RETRY_DELAY",
    "DEFAULT_MAX_RETRY_DELAY",
]
