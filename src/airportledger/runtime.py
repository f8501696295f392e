from __future__ import annotations

import random
from collections import Counter
from contextlib import contextmanager
from datetime import date, timedelta
from decimal import Decimal
from threading import Lock
from typing import Any, Iterator

from airportledger.access import SYSTEM_ACTOR, Actor, Capability
from airportledger.audit.trail import AuditPublisher, AuditReplay, AuditStore
from airportledger.bus.factory import build_audit_bus
from airportledger.bus.in_memory import InMemoryBus
from airportledger.clock import Clock, SystemClock
from airportledger.concurrency import FlightGuards
from airportledger.db.repositories import SnapshotStore
from airportledger.errors import (
    InvalidRequest,
    InvalidTransition,
    InventoryInvariantError,
    NotFound,
    PermissionDenied,
)
from airportledger.inventory.seats import SeatInventory
from airportledger.lifecycle import state_machine
from airportledger.lifecycle.scheduler import LifecycleScheduler, SweepReport
from airportledger.models.domain import (
    SEAT_HOLDING_STATUSES,
    AircraftStatus,
    AuditAction,
    AuditEntry,
    Booking,
    BookingStatus,
    Flight,
    FlightStatus,
    LedgerSnapshot,
    Passenger,
    PricingRule,
    SeatClass,
)
from airportledger.observability import get_logger
from airportledger.pricing.fares import FareEngine
from airportledger.settings import Settings
from airportledger.simulation.sample_data import generate_sample_ledger
from airportledger.stores.booking_ledger import BookingLedger

logger = get_logger(__name__)

_ASSIGNABLE_STATUSES = frozenset({FlightStatus.SCHEDULED, FlightStatus.DELAYED, FlightStatus.BOARDING})
_AIRBORNE_STATUSES = frozenset({FlightStatus.DEPARTED, FlightStatus.IN_FLIGHT})


def _money(value: Decimal) -> str:
    return str(value)


class LedgerRuntime:
    """
    Owns every flight, booking, pricing rule and aircraft status.

    All mutations of one flight run under that flight's fair guard, so booking
    requests, admin edits and the background sweep on the same flight are
    applied one at a time in arrival order. Reads return deep copies.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Clock | None = None,
        store: SnapshotStore | None = None,
        publisher: AuditPublisher | None = None,
        initial: LedgerSnapshot | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.clock = clock or SystemClock()
        self.store = store
        self.bus: InMemoryBus | None
        if publisher is None:
            self.bus, publisher = build_audit_bus(self.settings)
        else:
            self.bus = publisher if isinstance(publisher, InMemoryBus) else None
        self.audit = AuditStore(publisher=publisher)
        self.inventory = SeatInventory()
        self.ledger = BookingLedger(self.inventory, rng=rng)
        self.fares = FareEngine()
        self.scheduler = LifecycleScheduler(self, interval_seconds=self.settings.sweep_interval_seconds)
        self.boarding_window = timedelta(minutes=self.settings.boarding_window_minutes)
        self._flights: dict[str, Flight] = {}
        self._aircraft: dict[str, AircraftStatus] = {}
        self._registry_lock = Lock()
        self._guards = FlightGuards()
        self._load(initial)

    def _load(self, initial: LedgerSnapshot | None) -> None:
        snapshot = initial
        source = "initial"
        if snapshot is None and self.store is not None:
            snapshot = self.store.load()
            source = "store"
        if snapshot is None:
            snapshot = generate_sample_ledger(
                now=self.clock.now(),
                flights=self.settings.sample_flights,
                seed=self.settings.sample_seed,
            )
            source = "sample"

        with self._registry_lock:
            self._flights = {flight.flight_number: flight.model_copy(deep=True) for flight in snapshot.flights}
            self._aircraft = dict(snapshot.aircraft)
        self.ledger.reset()
        self.ledger.restore(snapshot.bookings)
        self.fares.replace_rules(snapshot.pricing_rules)

        issues = self.integrity_issues()
        for issue in issues:
            logger.warning("ledger_integrity_issue", issue=issue)
        logger.info(
            "ledger_loaded",
            source=source,
            flights=len(snapshot.flights),
            bookings=len(snapshot.bookings),
            issues=len(issues),
        )

    def authorize(self, actor: Actor, capability: Capability) -> None:
        if not actor.can(capability):
            logger.warning("permission_denied", actor=actor.name, role=actor.role.value, capability=capability.value)
            raise PermissionDenied(actor.name, capability.value)

    def _flight(self, flight_number: str) -> Flight:
        with self._registry_lock:
            flight = self._flights.get(flight_number)
        if flight is None:
            raise NotFound("flight", flight_number)
        return flight

    @contextmanager
    def _locked_flight(self, flight_number: str) -> Iterator[Flight]:
        # Unknown numbers fail here so they never get a guard.
        self._flight(flight_number)
        with self._guards.for_flight(flight_number):
            # Looked up again after acquiring: the flight may have been removed while we waited.
            yield self._flight(flight_number)

    def _record(
        self,
        actor: Actor,
        action: AuditAction,
        target: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        self.audit.record(
            actor=actor.name,
            action=action.value,
            target=target,
            before=before,
            after=after,
            role=actor.role.value,
            timestamp=self.clock.now(),
        )

    def _set_aircraft(self, registration: str | None, status: AircraftStatus) -> None:
        if not registration:
            return
        with self._registry_lock:
            self._aircraft[registration] = status

    def _release_aircraft(self, flight: Flight) -> None:
        """Mark the flight's aircraft Active unless another flight is airborne on it."""
        registration = flight.aircraft_id
        if not registration:
            return
        with self._registry_lock:
            for other in self._flights.values():
                if (
                    other.flight_number != flight.flight_number
                    and other.aircraft_id == registration
                    and other.status in _AIRBORNE_STATUSES
                ):
                    return
            self._aircraft[registration] = AircraftStatus.ACTIVE

    def _checkpoint(self, reason: str) -> None:
        if self.store is None or not self.settings.autosave:
            return
        try:
            self.store.save(self.snapshot())
        except Exception:
            logger.exception("checkpoint_failed", reason=reason)

    def flight_numbers(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._flights)

    def get_flight(self, flight_number: str) -> Flight:
        with self._locked_flight(flight_number) as flight:
            return flight.model_copy(deep=True)

    def list_flights(
        self,
        origin: str | None = None,
        destination: str | None = None,
        on_date: date | None = None,
        status: FlightStatus | None = None,
    ) -> list[Flight]:
        results: list[Flight] = []
        for flight_number in self.flight_numbers():
            try:
                flight = self.get_flight(flight_number)
            except NotFound:
                continue
            if origin and flight.origin != origin.upper():
                continue
            if destination and flight.destination != destination.upper():
                continue
            if on_date and flight.departure.date() != on_date:
                continue
            if status and flight.status != status:
                continue
            results.append(flight)
        return results

    def available_flights(self) -> list[Flight]:
        now = self.clock.now()
        return [
            flight
            for flight in self.list_flights()
            if state_machine.is_bookable(flight.status, now, flight.departure)[0]
            and any(remaining > 0 for remaining in flight.seats_remaining.values())
        ]

    def get_booking(self, ticket_number: str) -> Booking:
        return self.ledger.get(ticket_number)

    def bookings_for_flight(self, flight_number: str) -> list[Booking]:
        self._flight(flight_number)
        return self.ledger.for_flight(flight_number)

    def bookings_for_passenger(self, email: str) -> list[Booking]:
        return self.ledger.for_passenger(email)

    def quote_fare(self, flight_number: str, seat_class: SeatClass) -> Decimal:
        with self._locked_flight(flight_number) as flight:
            try:
                return self.fares.quote(flight, seat_class)
            except KeyError as exc:
                raise InvalidRequest(str(exc.args[0])) from exc

    def pricing_rules(self) -> list[PricingRule]:
        return self.fares.rules()

    def aircraft_status(self) -> dict[str, AircraftStatus]:
        with self._registry_lock:
            return dict(self._aircraft)

    def metrics(self) -> dict[str, Any]:
        flights = self.list_flights()
        bookings = self.ledger.all()
        live_flights = [flight for flight in flights if flight.status != FlightStatus.CANCELLED]
        capacity = sum(flight.total_capacity for flight in live_flights)
        sold = sum(flight.seats_sold for flight in live_flights)
        revenue = sum(
            (booking.price_paid for booking in bookings if booking.status != BookingStatus.CANCELLED),
            Decimal("0"),
        )
        flight_counts = Counter(flight.status.value for flight in flights)
        booking_counts = Counter(booking.status.value for booking in bookings)
        return {
            "generated_at": self.clock.now().isoformat(),
            "total_flights": len(flights),
            "flights_by_status": {status.value: flight_counts.get(status.value, 0) for status in FlightStatus},
            "total_bookings": len(bookings),
            "bookings_by_status": {status.value: booking_counts.get(status.value, 0) for status in BookingStatus},
            "revenue": _money(revenue),
            "currency": self.settings.currency,
            "seats_sold": sold,
            "seat_capacity": capacity,
            "load_factor": round(sold / capacity * 100, 2) if capacity else 0.0,
            "audit_entries": len(self.audit.replay()),
        }

    def integrity_issues(self) -> list[str]:
        """Seat counters that disagree with the bookings holding them, and flights behind the clock."""
        now = self.clock.now()
        issues: list[str] = []
        for flight_number in self.flight_numbers():
            try:
                with self._locked_flight(flight_number) as flight:
                    issues.extend(SeatInventory.check(flight))
                    held = Counter(
                        booking.seat_class
                        for booking in self.ledger.for_flight(flight_number)
                        if booking.status in SEAT_HOLDING_STATUSES
                    )
                    for seat_class, capacity in flight.seat_capacity.items():
                        expected = capacity - held.get(seat_class, 0)
                        remaining = flight.seats_remaining.get(seat_class, 0)
                        if remaining != expected:
                            issues.append(
                                f"{flight_number} {seat_class.value}: {remaining} remaining, bookings imply {expected}"
                            )
                    expected_status = state_machine.next_status(
                        flight.status, now, flight.departure, flight.arrival, self.boarding_window
                    )
                    if expected_status != flight.status:
                        issues.append(f"{flight_number}: {flight.status.value} should be {expected_status.value}")
            except NotFound:
                continue
        return issues

    def create_booking(self, actor: Actor, flight_number: str, seat_class: SeatClass, passenger: Passenger) -> Booking:
        self.authorize(actor, Capability.BOOK)
        with self._locked_flight(flight_number) as flight:
            now = self.clock.now()
            try:
                fare = self.fares.quote(flight, seat_class)
            except KeyError as exc:
                raise InvalidRequest(str(exc.args[0])) from exc
            try:
                booking = self.ledger.create_booking(
                    flight, seat_class, passenger, fare, now, currency=self.settings.currency
                )
            except InventoryInvariantError:
                logger.error("inventory_invariant_violated", flight_number=flight_number, operation="create_booking")
                raise
            self._record(
                actor,
                AuditAction.BOOKING_CREATED,
                booking.ticket_number,
                after={
                    "status": booking.status.value,
                    "flight_number": flight_number,
                    "seat_class": seat_class.value,
                    "price_paid": _money(booking.price_paid),
                    "seats_remaining": flight.seats_remaining[seat_class],
                },
            )
        logger.info(
            "booking_created",
            ticket_number=booking.ticket_number,
            flight_number=flight_number,
            seat_class=seat_class.value,
            price_paid=_money(booking.price_paid),
        )
        self._checkpoint("create_booking")
        return booking

    def cancel_booking(self, actor: Actor, ticket_number: str) -> Booking:
        self.authorize(actor, Capability.BOOK)
        flight_number = self.ledger.flight_number_for(ticket_number)
        with self._locked_flight(flight_number) as flight:
            current = self.ledger.get(ticket_number)
            seats_before = flight.seats_remaining.get(current.seat_class, 0)
            try:
                previous, booking = self.ledger.cancel_booking(ticket_number, flight, self.clock.now())
            except InventoryInvariantError:
                logger.error("inventory_invariant_violated", flight_number=flight_number, operation="cancel_booking")
                raise
            self._record(
                actor,
                AuditAction.BOOKING_CANCELLED,
                ticket_number,
                before={"status": previous.value, "seats_remaining": seats_before},
                after={"status": booking.status.value, "seats_remaining": flight.seats_remaining[booking.seat_class]},
            )
        logger.info("booking_cancelled", ticket_number=ticket_number, flight_number=flight_number)
        self._checkpoint("cancel_booking")
        return booking

    def advance_booking(self, actor: Actor, ticket_number: str) -> Booking:
        self.authorize(actor, Capability.BOOK)
        flight_number = self.ledger.flight_number_for(ticket_number)
        with self._locked_flight(flight_number) as flight:
            previous, booking = self.ledger.advance_status(ticket_number, flight, self.clock.now())
            self._record(
                actor,
                AuditAction.BOOKING_ADVANCED,
                ticket_number,
                before={"status": previous.value},
                after={"status": booking.status.value},
            )
        logger.info(
            "booking_advanced",
            ticket_number=ticket_number,
            from_status=previous.value,
            to_status=booking.status.value,
        )
        self._checkpoint("advance_booking")
        return booking

    def set_delay(self, actor: Actor, flight_number: str, minutes: int) -> Flight:
        self.authorize(actor, Capability.MANAGE_FLIGHTS)
        if minutes <= 0:
            raise InvalidRequest("Delay must be a positive number of minutes")
        with self._locked_flight(flight_number) as flight:
            if flight.status in state_machine.TERMINAL_FLIGHT_STATUSES:
                raise InvalidTransition(f"{flight_number} is {flight.status.value} and cannot be delayed")
            total = flight.delay + timedelta(minutes=minutes)
            if total > timedelta(minutes=self.settings.max_delay_minutes):
                raise InvalidRequest(
                    f"Total delay for {flight_number} would exceed {self.settings.max_delay_minutes} minutes"
                )
            before = {
                "status": flight.status.value,
                "departure": flight.departure.isoformat(),
                "arrival": flight.arrival.isoformat(),
                "delay_minutes": int(flight.delay.total_seconds() // 60),
            }
            flight.delay = total
            flight.status = state_machine.status_after_delay(flight.status)
            after = {
                "status": flight.status.value,
                "departure": flight.departure.isoformat(),
                "arrival": flight.arrival.isoformat(),
                "delay_minutes": int(flight.delay.total_seconds() // 60),
            }
            self._record(actor, AuditAction.FLIGHT_DELAYED, flight_number, before=before, after=after)
            result = flight.model_copy(deep=True)
        logger.info("flight_delayed", flight_number=flight_number, minutes=minutes, status=result.status.value)
        self._checkpoint("set_delay")
        return result

    def cancel_flight(self, actor: Actor, flight_number: str, reason: str = "") -> Flight:
        self.authorize(actor, Capability.MANAGE_FLIGHTS)
        with self._locked_flight(flight_number) as flight:
            if not state_machine.can_cancel(flight.status):
                raise InvalidTransition(f"{flight_number} is {flight.status.value} and cannot be cancelled")

            to_cancel = [
                booking
                for booking in self.ledger.for_flight(flight_number)
                if booking.status in SEAT_HOLDING_STATUSES
            ]
            releases = Counter(booking.seat_class for booking in to_cancel)
            for seat_class, count in releases.items():
                # Checked up front so the cascade cannot fail halfway through.
                if flight.seats_remaining.get(seat_class, 0) + count > flight.seat_capacity.get(seat_class, 0):
                    logger.error("inventory_invariant_violated", flight_number=flight_number, operation="cancel_flight")
                    raise InventoryInvariantError(
                        f"Cancelling {flight_number} would push {seat_class.value} past capacity"
                    )

            previous = flight.status
            now = self.clock.now()
            flight.status = FlightStatus.CANCELLED
            self._release_aircraft(flight)
            for booking in to_cancel:
                booking_before, cancelled = self.ledger.cancel_booking(
                    booking.ticket_number, flight, now, allow_boarded=True
                )
                self._record(
                    actor,
                    AuditAction.BOOKING_CANCELLED,
                    booking.ticket_number,
                    before={"status": booking_before.value},
                    after={"status": cancelled.status.value, "reason": f"flight {flight_number} cancelled"},
                )
            self._record(
                actor,
                AuditAction.FLIGHT_CANCELLED,
                flight_number,
                before={"status": previous.value},
                after={"status": flight.status.value, "reason": reason, "cancelled_bookings": len(to_cancel)},
            )
            result = flight.model_copy(deep=True)
        logger.info("flight_cancelled", flight_number=flight_number, cancelled_bookings=len(to_cancel), reason=reason)
        self._checkpoint("cancel_flight")
        return result

    def set_pricing_multiplier(self, actor: Actor, flight_number: str, multiplier: Decimal) -> Flight:
        self.authorize(actor, Capability.MANAGE_PRICING)
        multiplier = Decimal(multiplier)
        if multiplier <= 0:
            raise InvalidRequest("Pricing multiplier must be positive")
        with self._locked_flight(flight_number) as flight:
            previous = flight.pricing_multiplier
            flight.pricing_multiplier = multiplier
            self._record(
                actor,
                AuditAction.PRICING_CHANGED,
                flight_number,
                before={"pricing_multiplier": str(previous)},
                after={"pricing_multiplier": str(multiplier)},
            )
            result = flight.model_copy(deep=True)
        logger.info("pricing_changed", flight_number=flight_number, multiplier=str(multiplier))
        self._checkpoint("set_pricing_multiplier")
        return result

    def add_flight(self, actor: Actor, flight: Flight) -> Flight:
        self.authorize(actor, Capability.MANAGE_FLIGHTS)
        if flight.scheduled_arrival <= flight.scheduled_departure:
            raise InvalidRequest("Arrival must be after departure")
        if not flight.seat_capacity or any(capacity < 0 for capacity in flight.seat_capacity.values()):
            raise InvalidRequest("Seat capacity must be non-negative for every class offered")
        missing = [seat_class.value for seat_class in flight.seat_capacity if seat_class not in flight.base_fares]
        if missing:
            raise InvalidRequest(f"No base fare for {', '.join(missing)}")
        if any(fare <= 0 for fare in flight.base_fares.values()):
            raise InvalidRequest("Base fares must be positive")
        if flight.route_multiplier <= 0 or flight.pricing_multiplier <= 0:
            raise InvalidRequest("Multipliers must be positive")

        record = flight.model_copy(deep=True)
        record.status = FlightStatus.SCHEDULED
        record.delay = timedelta(0)
        record.actual_departure = None
        record.actual_arrival = None
        record.seats_remaining = dict(record.seat_capacity)

        with self._guards.for_flight(record.flight_number):
            with self._registry_lock:
                if record.flight_number in self._flights:
                    raise InvalidRequest(f"Flight {record.flight_number} already exists")
                self._flights[record.flight_number] = record
                if record.aircraft_id:
                    self._aircraft.setdefault(record.aircraft_id, AircraftStatus.ACTIVE)
            self._record(
                actor,
                AuditAction.FLIGHT_ADDED,
                record.flight_number,
                after={
                    "route": record.route,
                    "departure": record.departure.isoformat(),
                    "arrival": record.arrival.isoformat(),
                    "seat_capacity": {seat_class.value: seats for seat_class, seats in record.seat_capacity.items()},
                },
            )
            result = record.model_copy(deep=True)
        logger.info("flight_added", flight_number=record.flight_number, route=record.route)
        self._checkpoint("add_flight")
        return result

    def remove_flight(self, actor: Actor, flight_number: str) -> None:
        self.authorize(actor, Capability.MANAGE_FLIGHTS)
        with self._locked_flight(flight_number) as flight:
            holding = [booking for booking in self.ledger.for_flight(flight_number) if booking.holds_seat]
            if holding:
                raise InvalidTransition(
                    f"{flight_number} still has {len(holding)} active bookings; cancel the flight first"
                )
            with self._registry_lock:
                self._flights.pop(flight_number, None)
            self.ledger.forget_flight(flight_number)
            self.inventory.forget(flight_number)
            self._record(
                actor,
                AuditAction.FLIGHT_REMOVED,
                flight_number,
                before={"status": flight.status.value, "route": flight.route},
            )
        logger.info("flight_removed", flight_number=flight_number)
        self._checkpoint("remove_flight")

    def set_gate(self, actor: Actor, flight_number: str, gate: str) -> Flight:
        self.authorize(actor, Capability.MANAGE_FLIGHTS)
        gate = gate.strip().upper()
        if not gate:
            raise InvalidRequest("Gate must not be empty")
        with self._locked_flight(flight_number) as flight:
            if flight.status in state_machine.TERMINAL_FLIGHT_STATUSES:
                raise InvalidTransition(f"{flight_number} is {flight.status.value}")
            previous = flight.gate
            flight.gate = gate
            self._record(actor, AuditAction.GATE_ASSIGNED, flight_number, before={"gate": previous}, after={"gate": gate})
            result = flight.model_copy(deep=True)
        self._checkpoint("set_gate")
        return result

    def assign_aircraft(self, actor: Actor, flight_number: str, registration: str) -> Flight:
        self.authorize(actor, Capability.MANAGE_AIRCRAFT)
        registration = registration.strip().upper()
        if not registration:
            raise InvalidRequest("Aircraft registration must not be empty")
        with self._locked_flight(flight_number) as flight:
            if flight.status not in _ASSIGNABLE_STATUSES:
                raise InvalidTransition(f"Cannot change aircraft on {flight_number} while {flight.status.value}")
            with self._registry_lock:
                if self._aircraft.get(registration) == AircraftStatus.IN_FLIGHT:
                    raise InvalidTransition(f"Aircraft {registration} is in flight")
                self._aircraft.setdefault(registration, AircraftStatus.ACTIVE)
            previous = flight.aircraft_id
            flight.aircraft_id = registration
            self._record(
                actor,
                AuditAction.AIRCRAFT_ASSIGNED,
                flight_number,
                before={"aircraft_id": previous},
                after={"aircraft_id": registration},
            )
            result = flight.model_copy(deep=True)
        logger.info("aircraft_assigned", flight_number=flight_number, aircraft_id=registration)
        self._checkpoint("assign_aircraft")
        return result

    def unassign_aircraft(self, actor: Actor, flight_number: str) -> Flight:
        self.authorize(actor, Capability.MANAGE_AIRCRAFT)
        with self._locked_flight(flight_number) as flight:
            if flight.aircraft_id is None:
                raise InvalidRequest(f"{flight_number} has no aircraft assigned")
            if flight.status not in _ASSIGNABLE_STATUSES:
                raise InvalidTransition(f"Cannot change aircraft on {flight_number} while {flight.status.value}")
            previous = flight.aircraft_id
            flight.aircraft_id = None
            self._record(
                actor,
                AuditAction.AIRCRAFT_UNASSIGNED,
                flight_number,
                before={"aircraft_id": previous},
                after={"aircraft_id": None},
            )
            result = flight.model_copy(deep=True)
        logger.info("aircraft_unassigned", flight_number=flight_number, aircraft_id=previous)
        self._checkpoint("unassign_aircraft")
        return result

    def add_pricing_rule(self, actor: Actor, rule: PricingRule) -> PricingRule:
        self.authorize(actor, Capability.MANAGE_PRICING)
        if rule.multiplier <= 0:
            raise InvalidRequest("Pricing rule multiplier must be positive")
        if rule.hours is not None:
            start, end = rule.hours
            if not (0 <= start <= 23 and 0 <= end <= 23 and start <= end):
                raise InvalidRequest("Pricing rule hours must be an ordered pair within 0-23")
        try:
            added = self.fares.add_rule(rule)
        except ValueError as exc:
            raise InvalidRequest(str(exc)) from exc
        self._record(actor, AuditAction.PRICING_RULE_ADDED, added.rule_id, after=added.model_dump(mode="json"))
        logger.info("pricing_rule_added", rule_id=added.rule_id, name=added.name)
        self._checkpoint("add_pricing_rule")
        return added

    def set_pricing_rule_active(self, actor: Actor, rule_id: str, active: bool) -> PricingRule:
        self.authorize(actor, Capability.MANAGE_PRICING)
        try:
            before, after = self.fares.set_active(rule_id, active)
        except KeyError as exc:
            raise NotFound("pricing rule", rule_id) from exc
        self._record(
            actor,
            AuditAction.PRICING_RULE_TOGGLED,
            rule_id,
            before={"active": before.active},
            after={"active": after.active},
        )
        self._checkpoint("set_pricing_rule_active")
        return after

    def sweep_flight(self, flight_number: str, actor: Actor = SYSTEM_ACTOR) -> list[tuple[FlightStatus, FlightStatus]]:
        """Walk one flight to the status correct for now, auditing each step."""
        self.authorize(actor, Capability.RUN_LIFECYCLE)
        steps: list[tuple[FlightStatus, FlightStatus]] = []
        with self._locked_flight(flight_number) as flight:
            now = self.clock.now()
            path = state_machine.transition_path(
                flight.status, now, flight.departure, flight.arrival, self.boarding_window
            )
            for status in path:
                previous = flight.status
                flight.status = status
                if status == FlightStatus.DEPARTED:
                    flight.actual_departure = now
                    self._set_aircraft(flight.aircraft_id, AircraftStatus.IN_FLIGHT)
                elif status == FlightStatus.ARRIVED:
                    flight.actual_arrival = now
                    self._release_aircraft(flight)
                self._record(
                    actor,
                    AuditAction.FLIGHT_STATUS_CHANGED,
                    flight_number,
                    before={"status": previous.value},
                    after={"status": status.value},
                )
                steps.append((previous, status))
        if steps:
            logger.info(
                "flight_status_changed",
                flight_number=flight_number,
                path=[after.value for _, after in steps],
            )
            self._checkpoint("sweep")
        return steps

    def sweep_now(self, actor: Actor = SYSTEM_ACTOR) -> SweepReport:
        self.authorize(actor, Capability.RUN_LIFECYCLE)
        return self.scheduler.run_once()

    def start_scheduler(self) -> bool:
        return self.scheduler.start()

    def stop_scheduler(self) -> bool:
        return self.scheduler.stop()

    def audit_log(self) -> AuditReplay:
        return self.audit.replay()

    def audit_history(self, target: str) -> list[AuditEntry]:
        return self.audit.history(target)

    def snapshot(self) -> LedgerSnapshot:
        flights: list[Flight] = []
        bookings: list[Booking] = []
        for flight_number in self.flight_numbers():
            try:
                with self._locked_flight(flight_number) as flight:
                    flights.append(flight.model_copy(deep=True))
                    bookings.extend(self.ledger.for_flight(flight_number))
            except NotFound:
                continue
        return LedgerSnapshot(
            taken_at=self.clock.now(),
            flights=flights,
            bookings=bookings,
            aircraft=self.aircraft_status(),
            pricing_rules=self.fares.rules(),
        )

    def save(self) -> LedgerSnapshot:
        if self.store is None:
            raise InvalidRequest("No snapshot store configured")
        snapshot = self.snapshot()
        self.store.save(snapshot)
        logger.info("ledger_saved", flights=len(snapshot.flights), bookings=len(snapshot.bookings))
        return snapshot
