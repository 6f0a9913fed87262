"""Typed repositories mapping pydantic aggregates onto a DocumentStore."""

from typing import Generic, TypeVar

from core.db.store import DocumentStore
from core.models.base import Document, utcnow

ModelT = TypeVar("ModelT", bound=Document)


class Repository(Generic[ModelT]):
    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        model: type[ModelT],
        unique_fields: tuple[str, ...] = (),
        owner_attribute: str = "user",
    ) -> None:
        self._store = store
        self.collection = collection
        self._model = model
        self._unique_fields = unique_fields
        self._owner_attribute = owner_attribute

    def _unique(self, model: ModelT) -> dict[str, str]:
        return {field: str(getattr(model, field)) for field in self._unique_fields}

    def get(self, item_id: str) -> ModelT | None:
        item = self._store.get(self.collection, item_id)
        return self._model.model_validate(item) if item else None

    def owned(self, item_id: str) -> tuple[str, ModelT] | None:
        """Resolve a document id to (owner id, document)."""
        model = self.get(item_id)
        if model is None:
            return None
        return str(getattr(model, self._owner_attribute)), model

    def add(self, model: ModelT) -> ModelT:
        now = utcnow()
        model = model.model_copy(update={"version": 1, "created_at": now, "updated_at": now})
        self._store.insert(self.collection, model.to_document(), unique=self._unique(model) or None)
        return model

    def save(self, model: ModelT, previous: ModelT | None = None) -> ModelT:
        """Write ``model`` if the stored version still equals ``model.version``."""
        previous_unique = None
        if self._unique_fields:
            previous = previous or self.get(model.id)
            previous_unique = self._unique(previous) if previous else None

        updated = model.model_copy(update={"version": model.version + 1, "updated_at": utcnow()})
        self._store.update(
            self.collection,
            updated.to_document(),
            expected_version=model.version,
            unique=self._unique(updated) or None,
            previous_unique=previous_unique,
        )
        return updated

    def remove(self, model: ModelT) -> None:
        self._store.delete(self.collection, model.id, unique=self._unique(model) or None)

    def find_by(self, attribute: str, value: str) -> list[ModelT]:
        return [self._model.model_validate(i) for i in self._store.query(self.collection, attribute, value)]

    def find_one(self, attribute: str, value: str) -> ModelT | None:
        matches = self.find_by(attribute, value)
        return matches[0] if matches else None

    def list_by_owner(self, owner_id: str) -> list[ModelT]:
        return self.find_by(self._owner_attribute, owner_id)

    def all(self) -> list[ModelT]:
        return [self._model.model_validate(i) for i in self._store.scan(self.collection)]
