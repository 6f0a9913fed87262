"""Wiring of stores, repositories and providers for a Lambda execution environment."""

import logging
from dataclasses import dataclass
from functools import lru_cache

from core.auth.interface import TokenProvider, get_token_provider
from core.clients import get_dynamo_client
from core.config import Config, get_config
from core.db.dynamo import DynamoDocumentStore
from core.db.memory import InMemoryDocumentStore
from core.db.repository import Repository
from core.db.store import DocumentStore
from core.models.payment import Payment
from core.models.trip import Trip
from core.models.user import User
from core.services.rate_limit import (
    DynamoRateLimitStore,
    InMemoryRateLimitStore,
    RateLimitStore,
    SlidingWindowRateLimiter,
)

logger = logging.getLogger(__name__)

USERS = "users"
TRIPS = "trips"
PAYMENTS = "payments"


@dataclass
class Services:
    config: Config
    store: DocumentStore
    users: Repository[User]
    trips: Repository[Trip]
    payments: Repository[Payment]
    tokens: TokenProvider
    rate_limiter: SlidingWindowRateLimiter


def _document_store(config: Config) -> DocumentStore:
    if config.store_backend == "memory":
        return InMemoryDocumentStore()
    return DynamoDocumentStore(
        get_dynamo_client(),
        {USERS: config.users_table, TRIPS: config.trips_table, PAYMENTS: config.payments_table},
    )


def _rate_limit_store(config: Config) -> RateLimitStore:
    if config.rate_limit_backend == "dynamodb":
        return DynamoRateLimitStore(get_dynamo_client(), config.rate_limit_table, config.rate_limit_window_ms)
    return InMemoryRateLimitStore()


def build_services(
    config: Config,
    store: DocumentStore | None = None,
    rate_limit_store: RateLimitStore | None = None,
    tokens: TokenProvider | None = None,
) -> Services:
    tokens = tokens or get_token_provider(config)
    store = store or _document_store(config)
    return Services(
        config=config,
        store=store,
        users=Repository(store, USERS, User, unique_fields=("email", "phone"), owner_attribute="id"),
        trips=Repository(store, TRIPS, Trip),
        payments=Repository(store, PAYMENTS, Payment),
        tokens=tokens,
        rate_limiter=SlidingWindowRateLimiter(
            rate_limit_store or _rate_limit_store(config),
            max_requests=config.rate_limit_max,
            window_ms=config.rate_limit_window_ms,
        ),
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    config = get_config()
    logging.getLogger().setLevel(config.log_level)
    logger.info("Initializing services (store=%s, rate_limit=%s)", config.store_backend, config.rate_limit_backend)
    return build_services(config)
