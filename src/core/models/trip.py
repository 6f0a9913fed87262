"""Trip aggregate: itinerary, accommodations, transportation and budget."""

import math
from datetime import date, datetime
from enum import Enum

from pydantic import Field, computed_field

from core.errors import InvalidStateError, ValidationError
from core.models.base import ApiModel, Document, UtcDatetime, money

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class TripStatus(str, Enum):
    DRAFT = "draft"
    PLANNED = "planned"
    BOOKED = "booked"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TripType(str, Enum):
    LEISURE = "leisure"
    BUSINESS = "business"
    ADVENTURE = "adventure"
    FAMILY = "family"
    ROMANTIC = "romantic"
    SOLO = "solo"
    GROUP = "group"


class BookingStatus(str, Enum):
    NOT_BOOKED = "not_booked"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Coordinates(ApiModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Destination(ApiModel):
    country: str = Field(..., min_length=2)
    city: str = Field(..., min_length=2)
    region: str | None = None
    coordinates: Coordinates | None = None


class Cost(ApiModel):
    amount: float = Field(0, ge=0)
    currency: str = "USD"


class TravelerPassport(ApiModel):
    number: str | None = None
    expiry_date: date | None = None
    issuing_country: str | None = None


class Traveler(ApiModel):
    first_name: str = Field(..., min_length=2)
    last_name: str = Field(..., min_length=2)
    date_of_birth: date
    gender: str = Field(..., pattern="^(male|female|other|prefer_not_to_say)$")
    nationality: str = Field(..., min_length=2)
    passport: TravelerPassport | None = None
    dietary_restrictions: list[str] = Field(default_factory=list)
    accessibility_needs: list[str] = Field(default_factory=list)
    relationship: str = Field("self", pattern="^(self|spouse|child|parent|sibling|friend|colleague)$")


class Location(ApiModel):
    name: str | None = None
    address: str | None = None
    coordinates: Coordinates | None = None


class Activity(ApiModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    start_time: str | None = Field(None, pattern=TIME_PATTERN)
    end_time: str | None = Field(None, pattern=TIME_PATTERN)
    location: Location | None = None
    cost: Cost | None = None
    category: str | None = Field(
        None, pattern="^(accommodation|transport|food|sightseeing|entertainment|shopping|other)$"
    )
    booking_status: BookingStatus = BookingStatus.NOT_BOOKED
    confirmation_number: str | None = None
    notes: str | None = None


class ItineraryDay(ApiModel):
    day: int = Field(..., ge=1)
    date: UtcDatetime
    activities: list[Activity] = Field(default_factory=list)
    notes: str | None = None


class AccommodationCost(Cost):
    total_amount: float = Field(0, ge=0)


class ContactInfo(ApiModel):
    phone: str | None = None
    email: str | None = None


class Accommodation(ApiModel):
    name: str = Field(..., min_length=2)
    type: str = Field(
        ..., pattern="^(hotel|hostel|apartment|resort|bed_and_breakfast|vacation_rental|camping)$"
    )
    address: str | None = None
    check_in: UtcDatetime
    check_out: UtcDatetime
    room_type: str | None = None
    number_of_rooms: int = Field(1, ge=1)
    guests: int = Field(1, ge=1)
    cost: AccommodationCost | None = None
    booking_status: BookingStatus = BookingStatus.NOT_BOOKED
    confirmation_number: str | None = None
    contact_info: ContactInfo | None = None
    amenities: list[str] = Field(default_factory=list)
    notes: str | None = None


class Place(ApiModel):
    name: str = Field(..., min_length=1)
    code: str | None = None
    address: str | None = None


class Baggage(ApiModel):
    checked_bags: int = Field(0, ge=0)
    carry_on_bags: int = Field(1, ge=0)
    weight: str | None = None


class TransportationLeg(ApiModel):
    type: str = Field(..., pattern="^(flight|train|bus|car_rental|taxi|cruise|ferry)$")
    departure_location: Place
    arrival_location: Place
    departure_date_time: UtcDatetime
    arrival_date_time: UtcDatetime
    carrier: str | None = None
    flight_number: str | None = None
    seat: str | None = None
    travel_class: str = Field(
        "economy", alias="class", pattern="^(economy|premium_economy|business|first|standard)$"
    )
    cost: Cost | None = None
    booking_status: BookingStatus = BookingStatus.NOT_BOOKED
    confirmation_number: str | None = None
    baggage: Baggage | None = None
    notes: str | None = None


class BudgetCategories(ApiModel):
    accommodation: float = 0
    transportation: float = 0
    food: float = 0
    activities: float = 0
    shopping: float = 0
    miscellaneous: float = 0

    def total(self) -> float:
        return money(
            self.accommodation
            + self.transportation
            + self.food
            + self.activities
            + self.shopping
            + self.miscellaneous
        )


class Budget(ApiModel):
    total_budget: float = Field(..., ge=0)
    currency: str = "USD"
    categories: BudgetCategories = Field(default_factory=BudgetCategories)
    actual_spent: BudgetCategories = Field(default_factory=BudgetCategories)


class TripContact(ApiModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    relationship: str = Field(..., min_length=1)
    location: str | None = None


class TravelDocument(ApiModel):
    name: str = Field(..., min_length=1)
    type: str = Field(
        ...,
        pattern="^(passport|visa|id_card|driver_license|insurance|vaccination|booking_confirmation|other)$",
    )
    document_number: str | None = None
    expiry_date: date | None = None
    issuing_authority: str | None = None
    file_path: str | None = None
    notes: str | None = None


class Trip(Document):
    user: str
    title: str = Field(..., min_length=3, max_length=100)
    description: str | None = Field(None, max_length=1000)
    destination: Destination
    start_date: UtcDatetime
    end_date: UtcDatetime
    status: TripStatus = TripStatus.DRAFT
    trip_type: TripType
    travelers: list[Traveler] = Field(default_factory=list)
    itinerary: list[ItineraryDay] = Field(default_factory=list)
    accommodations: list[Accommodation] = Field(default_factory=list)
    transportation: list[TransportationLeg] = Field(default_factory=list)
    budget: Budget
    emergency_contacts: list[TripContact] = Field(default_factory=list)
    documents: list[TravelDocument] = Field(default_factory=list)
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)
    is_public: bool = False
    tags: list[str] = Field(default_factory=list)
    rating: int | None = Field(None, ge=1, le=5)
    review: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> int:
        seconds = abs((self.end_date - self.start_date).total_seconds())
        return math.ceil(seconds / 86400)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_spent(self) -> float:
        return self.budget.actual_spent.total()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def budget_remaining(self) -> float:
        return money(self.budget.total_budget - self.total_spent)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_travelers(self) -> int:
        return len(self.travelers)


# --- Invariants ---


def validate_trip_dates(start_date: datetime, end_date: datetime, now: datetime | None = None) -> None:
    """Reject inverted ranges, and past start dates when ``now`` is given (creation)."""
    if end_date <= start_date:
        raise ValidationError("End date must be after start date")
    if now is not None and start_date < now:
        raise ValidationError("Start date cannot be in the past")


def validate_accommodations(
    start_date: datetime, end_date: datetime, accommodations: list[Accommodation]
) -> None:
    for accommodation in accommodations:
        if accommodation.check_out <= accommodation.check_in:
            raise ValidationError("Check-out date must be after check-in date")
        if accommodation.check_in < start_date or accommodation.check_out > end_date:
            raise ValidationError("Accommodation dates must be within trip dates")


def validate_itinerary(start_date: datetime, end_date: datetime, itinerary: list[ItineraryDay]) -> None:
    seen: set[int] = set()
    for day in itinerary:
        if day.day in seen:
            raise ValidationError(f"Itinerary day {day.day} is listed more than once")
        seen.add(day.day)
        if day.date < start_date or day.date > end_date:
            raise ValidationError(f"Itinerary day {day.day} date must be within trip dates")


def validate_transportation(legs: list[TransportationLeg]) -> None:
    for leg in legs:
        if leg.arrival_date_time <= leg.departure_date_time:
            raise ValidationError("Arrival must be after departure")


def validate_trip(trip: Trip) -> Trip:
    """Check every date invariant of the aggregate and return it with the itinerary ordered by day."""
    validate_trip_dates(trip.start_date, trip.end_date)
    validate_accommodations(trip.start_date, trip.end_date, trip.accommodations)
    validate_itinerary(trip.start_date, trip.end_date, trip.itinerary)
    validate_transportation(trip.transportation)
    return trip.model_copy(update={"itinerary": sorted(trip.itinerary, key=lambda d: d.day)})


_PROGRESSION = [
    TripStatus.DRAFT,
    TripStatus.PLANNED,
    TripStatus.BOOKED,
    TripStatus.IN_PROGRESS,
    TripStatus.COMPLETED,
]
_TERMINAL = {TripStatus.COMPLETED, TripStatus.CANCELLED}


def transition_trip_status(current: TripStatus, target: TripStatus) -> TripStatus:
    """Trips only move forward along the progression, or get cancelled before they end."""
    if target == current:
        return current
    if current in _TERMINAL:
        raise InvalidStateError(f"Cannot change status of a {current.value} trip")
    if target == TripStatus.CANCELLED:
        return target
    if _PROGRESSION.index(target) < _PROGRESSION.index(current):
        raise InvalidStateError(f"Cannot move trip from {current.value} back to {target.value}")
    return target


# --- Request payloads ---


class TripCreate(ApiModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str | None = Field(None, max_length=1000)
    destination: Destination
    start_date: UtcDatetime
    end_date: UtcDatetime
    trip_type: TripType
    budget: Budget
    status: TripStatus = TripStatus.DRAFT
    travelers: list[Traveler] = Field(default_factory=list)
    itinerary: list[ItineraryDay] = Field(default_factory=list)
    accommodations: list[Accommodation] = Field(default_factory=list)
    transportation: list[TransportationLeg] = Field(default_factory=list)
    emergency_contacts: list[TripContact] = Field(default_factory=list)
    documents: list[TravelDocument] = Field(default_factory=list)
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)
    is_public: bool = False
    tags: list[str] = Field(default_factory=list)


class TripUpdate(ApiModel):
    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, max_length=1000)
    destination: Destination | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    status: TripStatus | None = None
    trip_type: TripType | None = None
    budget: Budget | None = None
    transportation: list[TransportationLeg] | None = None
    emergency_contacts: list[TripContact] | None = None
    documents: list[TravelDocument] | None = None
    notes: str | None = None
    photos: list[str] | None = None
    is_public: bool | None = None
    tags: list[str] | None = None
    rating: int | None = Field(None, ge=1, le=5)
    review: str | None = None


class TravelersAdd(ApiModel):
    travelers: list[Traveler] = Field(..., min_length=1)


class AccommodationsReplace(ApiModel):
    accommodations: list[Accommodation]


class ItineraryReplace(ApiModel):
    itinerary: list[ItineraryDay]
