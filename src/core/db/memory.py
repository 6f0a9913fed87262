"""Process-local document store for single-instance deployments and tests."""

import copy
import threading
from collections import defaultdict

from core.db.store import DocumentStore, DuplicateValueError, Item, changed_unique
from core.errors import ConcurrentModificationError, ConflictError


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._items: dict[str, dict[str, Item]] = defaultdict(dict)
        self._unique: dict[str, dict[tuple[str, str], str]] = defaultdict(dict)
        self._lock = threading.Lock()

    def get(self, collection: str, item_id: str) -> Item | None:
        with self._lock:
            item = self._items[collection].get(item_id)
            return copy.deepcopy(item) if item is not None else None

    def insert(self, collection: str, item: Item, unique: dict[str, str] | None = None) -> None:
        with self._lock:
            if item["id"] in self._items[collection]:
                raise ConflictError(f"Document {item['id']} already exists")
            self._claim(collection, item["id"], unique or {})
            self._items[collection][item["id"]] = copy.deepcopy(item)

    def update(
        self,
        collection: str,
        item: Item,
        expected_version: int,
        unique: dict[str, str] | None = None,
        previous_unique: dict[str, str] | None = None,
    ) -> None:
        with self._lock:
            stored = self._items[collection].get(item["id"])
            if stored is None or stored.get("version") != expected_version:
                raise ConcurrentModificationError(f"Document {item['id']} was modified concurrently")
            added, released = changed_unique(unique, previous_unique)
            self._claim(collection, item["id"], added)
            for field, value in released.items():
                self._unique[collection].pop((field, value), None)
            self._items[collection][item["id"]] = copy.deepcopy(item)

    def delete(self, collection: str, item_id: str, unique: dict[str, str] | None = None) -> None:
        with self._lock:
            self._items[collection].pop(item_id, None)
            for field, value in (unique or {}).items():
                self._unique[collection].pop((field, value), None)

    def query(self, collection: str, attribute: str, value: str) -> list[Item]:
        with self._lock:
            return [copy.deepcopy(i) for i in self._items[collection].values() if i.get(attribute) == value]

    def scan(self, collection: str) -> list[Item]:
        with self._lock:
            return [copy.deepcopy(i) for i in self._items[collection].values()]

    def _claim(self, collection: str, item_id: str, unique: dict[str, str]) -> None:
        owners = self._unique[collection]
        for field, value in unique.items():
            owner = owners.get((field, value))
            if owner is not None and owner != item_id:
                raise DuplicateValueError(field)
        for field, value in unique.items():
            owners[(field, value)] = item_id
