from abc import ABC, abstractmethod
from typing import Any

from core.errors import ConflictError

Item = dict[str, Any]


class DuplicateValueError(ConflictError):
    """A unique attribute value is already taken by another document."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"A document with this {field} already exists")


class DocumentStore(ABC):
    """Collection-oriented document persistence.

    Writes to existing documents are conditional on the stored ``version``;
    a mismatch raises ``ConcurrentModificationError``. Attributes listed in
    ``unique`` are enforced across the whole collection.
    """

    @abstractmethod
    def get(self, collection: str, item_id: str) -> Item | None: ...

    @abstractmethod
    def insert(self, collection: str, item: Item, unique: dict[str, str] | None = None) -> None: ...

    @abstractmethod
    def update(
        self,
        collection: str,
        item: Item,
        expected_version: int,
        unique: dict[str, str] | None = None,
        previous_unique: dict[str, str] | None = None,
    ) -> None: ...

    @abstractmethod
    def delete(self, collection: str, item_id: str, unique: dict[str, str] | None = None) -> None: ...

    @abstractmethod
    def query(self, collection: str, attribute: str, value: str) -> list[Item]:
        """Return every document whose ``attribute`` equals ``value``."""

    @abstractmethod
    def scan(self, collection: str) -> list[Item]: ...


def changed_unique(
    unique: dict[str, str] | None, previous_unique: dict[str, str] | None
) -> tuple[dict[str, str], dict[str, str]]:
    """Split unique values into (added, released) between two versions of a document."""
    unique = unique or {}
    previous_unique = previous_unique or {}
    added = {k: v for k, v in unique.items() if previous_unique.get(k) != v}
    released = {k: v for k, v in previous_unique.items() if unique.get(k) != v}
    return added, released
