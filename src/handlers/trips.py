"""Trip endpoints."""

from typing import Any

from core.auth.middleware import (
    apply_rate_limit,
    current_user,
    log_activity,
    optional_authenticate,
    require_ownership,
    require_roles,
)
from core.http import Request, Router, ok
from core.models.trip import AccommodationsReplace, ItineraryReplace, TravelersAdd, Trip, TripCreate, TripUpdate
from core.models.user import OWNER_ROLE
from core.services import trips
from core.services.container import Services, get_services

router = Router(middleware=[apply_rate_limit])


def _owned_trip(request: Request, services: Services) -> Trip:
    current_user(request, services)
    return require_ownership(request, lambda trip_id: trips.load_owned(services, trip_id))


@router.route("GET", "/trips")
def list_trips(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    page, pagination = trips.list_trips(services, user.id, request.parse_query(trips.TripListQuery))
    return ok(trips=page, pagination=pagination)


@router.route("POST", "/trips")
def create_trip(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    payload = request.parse(TripCreate)
    log_activity(request, "trip_create")
    trip = trips.create_trip(services, user.id, payload)
    return ok("Trip created successfully", status_code=201, trip=trip.to_json())


@router.route("GET", "/trips/stats/overview")
def trip_stats(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    return ok(**trips.trip_overview(services, user.id))


@router.route("GET", "/trips/customer/{customerId}")
def customer_trips(request: Request, services: Services) -> dict[str, Any]:
    current_user(request, services)
    require_roles(request, [OWNER_ROLE])
    found = trips.customer_trips(services, request.path_params["customerId"])
    return ok(trips=[t.to_json() for t in found])


@router.route("GET", "/trips/booked-dates")
def booked_dates(request: Request, services: Services) -> dict[str, Any]:
    user = optional_authenticate(request, services.users, services.tokens)
    return ok(**trips.booked_dates(services, user.id if user else None))


@router.route("GET", "/trips/{id}")
def get_trip(request: Request, services: Services) -> dict[str, Any]:
    trip = _owned_trip(request, services)
    return ok(trip=trip.to_json())


@router.route("PUT", "/trips/{id}")
def update_trip(request: Request, services: Services) -> dict[str, Any]:
    trip = _owned_trip(request, services)
    payload = request.parse(TripUpdate)
    log_activity(request, "trip_update")
    updated = trips.update_trip(services, trip, payload)
    return ok("Trip updated successfully", trip=updated.to_json())


@router.route("DELETE", "/trips/{id}")
def delete_trip(request: Request, services: Services) -> dict[str, Any]:
    trip = _owned_trip(request, services)
    log_activity(request, "trip_delete")
    trips.delete_trip(services, trip)
    return ok("Trip deleted successfully")


@router.route("POST", "/trips/{id}/travelers")
def add_travelers(request: Request, services: Services) -> dict[str, Any]:
    trip = _owned_trip(request, services)
    payload = request.parse(TravelersAdd)
    log_activity(request, "trip_add_travelers")
    updated = trips.add_travelers(services, trip, payload)
    return ok("Travelers added successfully", trip=updated.to_json())


@router.route("PUT", "/trips/{id}/accommodations")
def replace_accommodations(request: Request, services: Services) -> dict[str, Any]:
    trip = _owned_trip(request, services)
    payload = request.parse(AccommodationsReplace)
    log_activity(request, "trip_update_accommodations")
    updated = trips.replace_accommodations(services, trip, payload)
    return ok("Accommodations updated successfully", trip=updated.to_json())


@router.route("PUT", "/trips/{id}/itinerary")
def replace_itinerary(request: Request, services: Services) -> dict[str, Any]:
    trip = _owned_trip(request, services)
    payload = request.parse(ItineraryReplace)
    log_activity(request, "trip_update_itinerary")
    updated = trips.replace_itinerary(services, trip, payload)
    return ok("Itinerary updated successfully", trip=updated.to_json())


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    return router.dispatch(event, get_services())
