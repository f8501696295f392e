from __future__ import annotations

import random
from datetime import datetime
from decimal import Decimal
from threading import Lock
from typing import Iterable

from airportledger.errors import AlreadyTerminal, FlightNotBookable, InvalidTransition, NotFound
from airportledger.inventory.seats import SeatInventory
from airportledger.lifecycle import state_machine
from airportledger.models.domain import (
    TERMINAL_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Flight,
    Passenger,
    SeatClass,
)

TICKET_PREFIX = "RIA"

_NEXT_STATUS = {
    BookingStatus.CONFIRMED: BookingStatus.CHECKED_IN,
    BookingStatus.CHECKED_IN: BookingStatus.BOARDED,
    BookingStatus.BOARDED: BookingStatus.COMPLETED,
}


class BookingLedger:
    """Ticket -> booking records plus the seat each live booking holds.

    Callers must hold the owning flight's guard around every mutating call;
    the ledger only protects its own ticket index.
    """

    def __init__(self, inventory: SeatInventory, rng: random.Random | None = None) -> None:
        self.inventory = inventory
        self._rng = rng or random.Random()
        self._bookings: dict[str, Booking] = {}
        self._by_flight: dict[str, list[str]] = {}
        self._index_lock = Lock()

    def reset(self) -> None:
        with self._index_lock:
            self._bookings.clear()
            self._by_flight.clear()

    def restore(self, bookings: Iterable[Booking]) -> None:
        with self._index_lock:
            for booking in bookings:
                self._bookings[booking.ticket_number] = booking.model_copy(deep=True)
                self._by_flight.setdefault(booking.flight_number, []).append(booking.ticket_number)

    def create_booking(
        self,
        flight: Flight,
        seat_class: SeatClass,
        passenger: Passenger,
        price_paid: Decimal,
        now: datetime,
        currency: str = "USD",
    ) -> Booking:
        bookable, reason = state_machine.is_bookable(flight.status, now, flight.departure)
        if not bookable:
            raise FlightNotBookable(flight.flight_number, reason)

        self.inventory.reserve(flight, seat_class)
        try:
            with self._index_lock:
                ticket_number = self._new_ticket_number()
                booking = Booking(
                    ticket_number=ticket_number,
                    flight_number=flight.flight_number,
                    passenger=passenger.model_copy(deep=True),
                    seat_class=seat_class,
                    price_paid=price_paid,
                    currency=currency,
                    created_at=now,
                )
                self._bookings[ticket_number] = booking
                self._by_flight.setdefault(flight.flight_number, []).append(ticket_number)
        except BaseException:
            self.inventory.release(flight, seat_class)
            raise
        return booking.model_copy(deep=True)

    def cancel_booking(
        self, ticket_number: str, flight: Flight, now: datetime, allow_boarded: bool = False
    ) -> tuple[BookingStatus, Booking]:
        """Release the seat and mark the booking Cancelled.

        Boarded bookings are only cancelled with ``allow_boarded``, which the
        flight cancellation cascade passes.
        """
        booking = self._require(ticket_number)
        previous = booking.status
        if previous in TERMINAL_BOOKING_STATUSES:
            raise AlreadyTerminal(ticket_number, previous.value)
        if previous == BookingStatus.BOARDED and not allow_boarded:
            raise InvalidTransition(f"Booking {ticket_number} has boarded and can no longer be cancelled")

        self.inventory.release(flight, booking.seat_class)
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = now
        return previous, booking.model_copy(deep=True)

    def advance_status(self, ticket_number: str, flight: Flight, now: datetime) -> tuple[BookingStatus, Booking]:
        booking = self._require(ticket_number)
        previous = booking.status
        target = _NEXT_STATUS.get(previous)
        if target is None:
            raise InvalidTransition(f"Booking {ticket_number} is {previous.value} and cannot advance")

        if target == BookingStatus.CHECKED_IN:
            if not state_machine.check_in_open(flight.status, now, flight.departure):
                raise InvalidTransition(f"Check-in is closed for {flight.flight_number} ({flight.status.value})")
            booking.checked_in_at = now
        elif target == BookingStatus.BOARDED:
            if not state_machine.boarding_open(flight.status):
                raise InvalidTransition(f"{flight.flight_number} is not boarding ({flight.status.value})")
            booking.boarded_at = now
        elif not state_machine.completion_open(flight.status):
            raise InvalidTransition(f"{flight.flight_number} has not arrived ({flight.status.value})")

        booking.status = target
        return previous, booking.model_copy(deep=True)

    def flight_number_for(self, ticket_number: str) -> str:
        return self._require(ticket_number).flight_number

    def get(self, ticket_number: str) -> Booking:
        return self._require(ticket_number).model_copy(deep=True)

    def for_flight(self, flight_number: str) -> list[Booking]:
        with self._index_lock:
            tickets = list(self._by_flight.get(flight_number, []))
            return [self._bookings[ticket].model_copy(deep=True) for ticket in tickets]

    def for_passenger(self, email: str) -> list[Booking]:
        needle = email.strip().lower()
        with self._index_lock:
            return [
                booking.model_copy(deep=True)
                for booking in self._bookings.values()
                if booking.passenger.email.lower() == needle
            ]

    def all(self) -> list[Booking]:
        with self._index_lock:
            return [booking.model_copy(deep=True) for booking in self._bookings.values()]

    def forget_flight(self, flight_number: str) -> None:
        with self._index_lock:
            for ticket in self._by_flight.pop(flight_number, []):
                self._bookings.pop(ticket, None)

    def _require(self, ticket_number: str) -> Booking:
        with self._index_lock:
            booking = self._bookings.get(ticket_number)
        if booking is None:
            raise NotFound("booking", ticket_number)
        return booking

    def _new_ticket_number(self) -> str:
        # Caller holds the index lock.
        if len(self._bookings) >= 1_000_000:
            raise InvalidTransition("Ticket number space exhausted")
        while True:
            candidate = f"{TICKET_PREFIX}{self._rng.randrange(1_000_000):06d}"
            if candidate not in self._bookings:
                return candidate
