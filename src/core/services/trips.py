"""Trip aggregate operations for the owning user."""

import logging
from typing import TYPE_CHECKING, Any

from core.errors import NotFoundError
from core.models.base import utcnow
from core.models.trip import (
    AccommodationsReplace,
    ItineraryReplace,
    TravelersAdd,
    Trip,
    TripCreate,
    TripStatus,
    TripType,
    TripUpdate,
    transition_trip_status,
    validate_trip,
    validate_trip_dates,
)
from core.services import stats
from core.services.listing import ListQuery, listing, sort_items

if TYPE_CHECKING:
    from core.services.container import Services

logger = logging.getLogger(__name__)


class TripListQuery(ListQuery):
    sort_by: str = "startDate"
    status: TripStatus | None = None
    trip_type: TripType | None = None


def load_owned(services: "Services", trip_id: str) -> tuple[str, Trip] | None:
    """Ownership loader for ``require_ownership``."""
    return services.trips.owned(trip_id)


def list_trips(
    services: "Services", user_id: str, query: TripListQuery
) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    trips = services.trips.list_by_owner(user_id)
    if query.status:
        trips = [t for t in trips if t.status == query.status]
    if query.trip_type:
        trips = [t for t in trips if t.trip_type == query.trip_type]
    return listing(trips, query, Trip.to_json)


def create_trip(services: "Services", user_id: str, payload: TripCreate) -> Trip:
    validate_trip_dates(payload.start_date, payload.end_date, now=utcnow())
    trip = validate_trip(Trip(user=user_id, **dict(payload)))
    trip = services.trips.add(trip)
    logger.info("Created trip %s for user %s", trip.id, user_id)
    return trip


def update_trip(services: "Services", trip: Trip, payload: TripUpdate) -> Trip:
    changes = payload.changes()
    if "status" in changes:
        changes["status"] = transition_trip_status(trip.status, changes["status"])
    updated = validate_trip(trip.model_copy(update=changes))
    return services.trips.save(updated)


def delete_trip(services: "Services", trip: Trip) -> None:
    services.trips.remove(trip)
    logger.info("Deleted trip %s", trip.id)


def add_travelers(services: "Services", trip: Trip, payload: TravelersAdd) -> Trip:
    return services.trips.save(trip.model_copy(update={"travelers": [*trip.travelers, *payload.travelers]}))


def replace_accommodations(services: "Services", trip: Trip, payload: AccommodationsReplace) -> Trip:
    updated = validate_trip(trip.model_copy(update={"accommodations": payload.accommodations}))
    return services.trips.save(updated)


def replace_itinerary(services: "Services", trip: Trip, payload: ItineraryReplace) -> Trip:
    updated = validate_trip(trip.model_copy(update={"itinerary": payload.itinerary}))
    return services.trips.save(updated)


def customer_trips(services: "Services", customer_id: str) -> list[Trip]:
    return sort_items(services.trips.list_by_owner(customer_id), "createdAt", "desc")


def booked_dates(services: "Services", user_id: str | None = None) -> dict[str, Any]:
    """Start dates of every non-cancelled trip; the caller's own dates are listed separately."""
    active = [t for t in services.trips.all() if t.status != TripStatus.CANCELLED]
    result: dict[str, Any] = {"bookedDates": sorted(t.start_date.isoformat() for t in active)}
    if user_id is not None:
        result["ownBookedDates"] = sorted(t.start_date.isoformat() for t in active if t.user == user_id)
    return result


def trip_overview(services: "Services", user_id: str) -> dict[str, Any]:
    return stats.trip_statistics(services.trips.list_by_owner(user_id))


def get_trip(services: "Services", trip_id: str, user_id: str) -> Trip:
    """Fetch a trip the user owns; anything else is reported as missing."""
    found = services.trips.owned(trip_id)
    if found is None or found[0] != user_id:
        raise NotFoundError("Trip not found or access denied")
    return found[1]
