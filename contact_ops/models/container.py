"""
Container data model and container selection predicates.

A container is the top-level storage boundary (for example an account) that
holds contacts and groups.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class Container:
    """Storage container as listed by a store."""

    identifier: str
    name: str = ""


@dataclass(frozen=True)
class ContainerID:
    """
    Identifies the container an operation acts within.

    ContainerID.default() defers to the store's default container;
    ContainerID.with_identifier("...") names one explicitly.
    """

    identifier: str | None = None

    @classmethod
    def default(cls) -> ContainerID:
        return cls()

    @classmethod
    def with_identifier(cls, identifier: str) -> ContainerID:
        if not identifier:
            raise ValueError("Container identifier must not be empty")
        return cls(identifier=identifier)

    @property
    def is_default(self) -> bool:
        return self.identifier is None

    def __str__(self) -> str:
        return self.identifier or "<default>"


@dataclass(frozen=True)
class ContainerPredicate:
    """Selects containers by identifier."""

    identifiers: tuple[str, ...] = ()

    @classmethod
    def with_identifiers(cls, identifiers: Iterable[str]) -> ContainerPredicate:
        return cls(identifiers=tuple(dict.fromkeys(identifiers)))

    def matches(self, container: Container) -> bool:
        return container.identifier in self.identifiers
