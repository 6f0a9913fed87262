"""Shared pydantic bases for API payloads and stored documents."""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Naive inputs (e.g. "2027-05-01") are interpreted as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]


def money(value: float) -> float:
    """Round a monetary value to cents."""
    return round(value + 0.0, 2)


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_json(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, **kwargs)

    def changes(self) -> dict[str, Any]:
        """Fields the client sent with a non-null value, as model attributes."""
        values = {name: getattr(self, name) for name in self.model_fields_set}
        return {name: value for name, value in values.items() if value is not None}


class Document(ApiModel):
    """A persisted aggregate root."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
    version: int = 0

    def to_document(self) -> dict[str, Any]:
        """Serialize for storage, computed fields excluded."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        for name in type(self).model_computed_fields:
            data.pop(name, None)
            data.pop(to_camel(name), None)
        return data
