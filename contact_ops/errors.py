"""
Error taxonomy for contact operations.

Operations finish with at most one error. The access gate is the only place
where errors are normalized: permission failures and access-request failures
are raised as their own types, and anything raised while running the domain
task is wrapped in DomainTaskFailedError. Store errors propagate unchanged
until they reach the gate.
"""

from __future__ import annotations


class ContactsError(Exception):
    """Base exception for contact operation failures."""

    pass


class ContactsPermissionError(ContactsError):
    """Raised when the store refuses access to the requested entity type."""

    pass


class PermissionDeniedError(ContactsPermissionError):
    """Authorization for the entity type was explicitly denied."""

    def __init__(self, message: str = "Access to contacts was denied") -> None:
        super().__init__(message)


class PermissionRestrictedError(ContactsPermissionError):
    """Authorization is unavailable because of a policy restriction."""

    def __init__(self, message: str = "Access to contacts is restricted") -> None:
        super().__init__(message)


class AccessRequestFailedError(ContactsError):
    """The asynchronous access request failed with a reported cause."""

    def __init__(self, underlying: BaseException) -> None:
        super().__init__(f"Access request failed: {underlying}")
        self.underlying = underlying
        self.__cause__ = underlying


class AccessRequestUnknownError(ContactsError):
    """The asynchronous access request failed without reporting a cause."""

    def __init__(self) -> None:
        super().__init__("Access request failed for an unknown reason")


class DomainTaskFailedError(ContactsError):
    """Wraps any failure raised while running an operation's domain task."""

    def __init__(self, underlying: BaseException) -> None:
        super().__init__(f"{type(underlying).__name__}: {underlying}")
        self.underlying = underlying
        self.__cause__ = underlying


class TaskCancelledError(ContactsError):
    """The task was cancelled before it produced an outcome."""

    pass


class KeyNotFetchedError(ContactsError):
    """Raised when reading a contact key that the store did not populate."""

    pass


class StoreError(ContactsError):
    """Base exception for address-book store failures."""

    pass


class StoreQueryError(StoreError):
    """Raised when a store query fails."""

    pass


class ContactNotFoundError(StoreQueryError):
    """Raised when a contact identifier does not resolve to a record."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Contact not found: {identifier}")
        self.identifier = identifier


class StoreMutationError(StoreError):
    """Raised when a save request cannot be applied."""

    pass


class UnsavedGroupError(StoreMutationError):
    """Raised when a group without a store identifier is used for a mutation."""

    pass


__all__ = [
    "ContactsError",
    "ContactsPermissionError",
    "PermissionDeniedError",
    "PermissionRestrictedError",
    "AccessRequestFailedError",
    "AccessRequestUnknownError",
    "DomainTaskFailedError",
    "TaskCancelledError",
    "KeyNotFetchedError",
    "StoreError",
    "StoreQueryError",
    "ContactNotFoundError",
    "StoreMutationError",
    "UnsavedGroupError",
]
