"""Integration tests for the DynamoDB document store against DynamoDB Local."""

import time
import uuid

import pytest

from core.config import get_config
from core.db.repository import Repository
from core.db.store import DuplicateValueError
from core.errors import ConcurrentModificationError
from core.models.user import User
from core.services.rate_limit import DynamoRateLimitStore, SlidingWindowRateLimiter


def _user(**overrides):
    suffix = uuid.uuid4().hex[:8]
    fields = dict(
        first_name="Asha",
        last_name="Verma",
        email=f"asha-{suffix}@tripbook.io",
        phone=f"+1555{int(suffix, 16) % 10**9:09d}",
        password="$2b$04$hash",
    )
    fields.update(overrides)
    return User(**fields)


@pytest.fixture
def user_repository(dynamo_store):
    return Repository(dynamo_store, "users", User, unique_fields=("email", "phone"), owner_attribute="id")


@pytest.mark.integration
def test_put_and_get_document(dynamo_store):
    dynamo_store.insert("trips", {"id": "trip-001", "user": "user-001", "version": 1, "budget": {"totalBudget": 1200.5}})

    item = dynamo_store.get("trips", "trip-001")

    assert item["user"] == "user-001"
    assert item["budget"]["totalBudget"] == 1200.5


@pytest.mark.integration
def test_query_by_owner_index(dynamo_store):
    for trip_id in ("trip-101", "trip-102", "trip-103"):
        dynamo_store.insert("trips", {"id": trip_id, "user": "user-002", "version": 1})
    dynamo_store.insert("trips", {"id": "trip-104", "user": "user-003", "version": 1})

    items = dynamo_store.query("trips", "user", "user-002")

    assert sorted(i["id"] for i in items) == ["trip-101", "trip-102", "trip-103"]


@pytest.mark.integration
def test_stale_write_is_rejected(dynamo_store):
    dynamo_store.insert("payments", {"id": "pay-001", "user": "user-001", "trip": "trip-001", "version": 1})
    dynamo_store.update("payments", {"id": "pay-001", "user": "user-001", "trip": "trip-001", "version": 2}, 1)

    with pytest.raises(ConcurrentModificationError):
        dynamo_store.update("payments", {"id": "pay-001", "user": "user-001", "trip": "trip-001", "version": 2}, 1)


@pytest.mark.integration
def test_unique_email_across_users(user_repository):
    first = user_repository.add(_user())

    with pytest.raises(DuplicateValueError) as exc_info:
        user_repository.add(_user(email=first.email))
    assert exc_info.value.field == "email"

    assert user_repository.find_one("email", first.email).id == first.id


@pytest.mark.integration
def test_changing_phone_releases_old_value(user_repository):
    user = user_repository.add(_user())
    old_phone = user.phone
    user_repository.save(user.model_copy(update={"phone": "+15550001234"}))

    other = user_repository.add(_user(phone=old_phone))
    assert other.phone == old_phone


@pytest.mark.integration
def test_scan_hides_guard_items(user_repository):
    user = user_repository.add(_user())
    assert [u.id for u in user_repository.all()] == [user.id]


@pytest.mark.integration
def test_rate_limit_store_round_trip(dynamo_client):
    config = get_config()
    store = DynamoRateLimitStore(dynamo_client, config.rate_limit_table, window_ms=60000)
    limiter = SlidingWindowRateLimiter(store, max_requests=2, window_ms=60000)
    identity = f"ip:{uuid.uuid4()}"
    now = int(time.time() * 1000)

    limiter.check(identity, now_ms=now)
    limiter.check(identity, now_ms=now + 1)

    assert store.get(identity) == [now, now + 1]
    assert store.evict(identity, now) == [now + 1]
    dynamo_client.delete_item(TableName=config.rate_limit_table, Key={"identity": {"S": identity}})
