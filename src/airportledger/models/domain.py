from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class SeatClass(str, Enum):
    ECONOMY = "economy"
    BUSINESS = "business"
    FIRST = "first"


class FlightStatus(str, Enum):
    SCHEDULED = "scheduled"
    DELAYED = "delayed"
    BOARDING = "boarding"
    DEPARTED = "departed"
    IN_FLIGHT = "in_flight"
    ARRIVED = "arrived"
    CANCELLED = "cancelled"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    BOARDED = "boarded"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PassengerType(str, Enum):
    ADULT = "adult"
    CHILD = "child"
    INFANT = "infant"
    SENIOR = "senior"


class AircraftStatus(str, Enum):
    ACTIVE = "active"
    IN_FLIGHT = "in_flight"


class AuditAction(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_ADVANCED = "booking_advanced"
    FLIGHT_STATUS_CHANGED = "flight_status_changed"
    FLIGHT_DELAYED = "flight_delayed"
    FLIGHT_CANCELLED = "flight_cancelled"
    FLIGHT_ADDED = "flight_added"
    FLIGHT_REMOVED = "flight_removed"
    GATE_ASSIGNED = "gate_assigned"
    AIRCRAFT_ASSIGNED = "aircraft_assigned"
    AIRCRAFT_UNASSIGNED = "aircraft_unassigned"
    PRICING_CHANGED = "pricing_changed"
    PRICING_RULE_ADDED = "pricing_rule_added"
    PRICING_RULE_TOGGLED = "pricing_rule_toggled"


# Bookings in these states hold exactly one seat in their flight's class counter.
SEAT_HOLDING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN, BookingStatus.BOARDED})
TERMINAL_BOOKING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})
UNBOOKABLE_FLIGHT_STATUSES = frozenset(
    {FlightStatus.DEPARTED, FlightStatus.IN_FLIGHT, FlightStatus.ARRIVED, FlightStatus.CANCELLED}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Passenger(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str
    phone: str = ""
    date_of_birth: date
    passenger_type: PassengerType = PassengerType.ADULT

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Flight(BaseModel):
    flight_number: str
    airline: str = ""
    origin: str
    destination: str
    scheduled_departure: datetime
    scheduled_arrival: datetime
    actual_departure: datetime | None = None
    actual_arrival: datetime | None = None
    status: FlightStatus = FlightStatus.SCHEDULED
    delay: timedelta = timedelta(0)
    aircraft_id: str | None = None
    gate: str | None = None
    seat_capacity: dict[SeatClass, int]
    seats_remaining: dict[SeatClass, int] = Field(default_factory=dict)
    base_fares: dict[SeatClass, Decimal]
    route_multiplier: Decimal = Decimal("1")
    pricing_multiplier: Decimal = Decimal("1")

    def model_post_init(self, __context: Any) -> None:
        if not self.seats_remaining:
            self.seats_remaining = dict(self.seat_capacity)

    @property
    def departure(self) -> datetime:
        """Delay-adjusted departure instant."""
        return self.scheduled_departure + self.delay

    @property
    def arrival(self) -> datetime:
        """Delay-adjusted arrival instant."""
        return self.scheduled_arrival + self.delay

    @property
    def route(self) -> str:
        return f"{self.origin}-{self.destination}"

    @property
    def total_capacity(self) -> int:
        return sum(self.seat_capacity.values())

    @property
    def seats_sold(self) -> int:
        return sum(self.seat_capacity[seat_class] - self.seats_remaining.get(seat_class, 0) for seat_class in self.seat_capacity)


class Booking(BaseModel):
    booking_id: str = Field(default_factory=lambda: str(uuid4()))
    ticket_number: str
    flight_number: str
    passenger: Passenger
    seat_class: SeatClass
    price_paid: Decimal
    currency: str = "USD"
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: datetime = Field(default_factory=_utcnow)
    checked_in_at: datetime | None = None
    boarded_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def holds_seat(self) -> bool:
        return self.status in SEAT_HOLDING_STATUSES


class PricingRule(BaseModel):
    rule_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    route_pattern: str | None = None
    hours: tuple[int, int] | None = None
    multiplier: Decimal
    active: bool = True

    def applies_to_route(self, origin: str, destination: str) -> bool:
        if not self.route_pattern:
            return True
        route = f"{origin}-{destination}"
        pattern = self.route_pattern
        if "*" not in pattern:
            return route == pattern
        if pattern.startswith("*") and pattern.endswith("*"):
            return pattern.strip("*") in route
        if pattern.startswith("*"):
            return route.endswith(pattern[1:])
        if pattern.endswith("*"):
            return route.startswith(pattern[:-1])
        return False

    def applies_to_hour(self, hour: int) -> bool:
        if self.hours is None:
            return True
        start, end = self.hours
        return start <= hour <= end


class AuditEntry(BaseModel):
    entry_id: str = Field(default_factory=lambda: str(uuid4()))
    sequence: int
    timestamp: datetime
    actor: str
    role: str
    action: str
    target: str
    before: dict[str, Any] = Field(default_factory=dict)
    after: dict[str, Any] = Field(default_factory=dict)


class LedgerSnapshot(BaseModel):
    """Owned copy of the whole ledger handed to persistence collaborators."""

    taken_at: datetime = Field(default_factory=_utcnow)
    flights: list[Flight] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)
    aircraft: dict[str, AircraftStatus] = Field(default_factory=dict)
    pricing_rules: list[PricingRule] = Field(default_factory=list)
