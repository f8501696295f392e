from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from airportledger.access import Actor, Capability, Role
from airportledger.db.repositories import SnapshotRepository
from airportledger.errors import (
    AlreadyTerminal,
    FlightNotBookable,
    InvalidRequest,
    InvalidTransition,
    InventoryInvariantError,
    LedgerError,
    NotFound,
    PermissionDenied,
    SeatUnavailable,
)
from airportledger.models.domain import Flight, FlightStatus, Passenger, PricingRule, SeatClass
from airportledger.observability import configure_logging
from airportledger.runtime import LedgerRuntime
from airportledger.settings import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def get_runtime() -> LedgerRuntime:
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    return LedgerRuntime(settings=settings, store=SnapshotRepository(settings.storage_backend))


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    runtime = get_runtime()
    runtime.start_scheduler()
    try:
        yield
    finally:
        runtime.stop_scheduler()


app = FastAPI(title="AirportLedger API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_actor(
    x_actor: str = Header(default="anonymous"),
    x_role: str = Header(default=Role.VIEWER.value),
) -> Actor:
    try:
        role = Role(x_role.strip().lower())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Unknown role {x_role!r}") from exc
    return Actor(name=x_actor.strip() or "anonymous", role=role)


def _http_error(exc: LedgerError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionDenied):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, AlreadyTerminal):
        return HTTPException(status_code=410, detail=str(exc))
    if isinstance(exc, (SeatUnavailable, FlightNotBookable, InvalidTransition)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, InvalidRequest):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, InventoryInvariantError):
        return HTTPException(status_code=500, detail="Seat inventory invariant violated")
    return HTTPException(status_code=400, detail=str(exc))


class BookingRequest(BaseModel):
    flight_number: str
    seat_class: SeatClass
    passenger: Passenger


class DelayRequest(BaseModel):
    minutes: int


class CancelFlightRequest(BaseModel):
    reason: str = ""


class PricingMultiplierRequest(BaseModel):
    multiplier: Decimal


class GateRequest(BaseModel):
    gate: str


class AircraftRequest(BaseModel):
    registration: str


class PricingRuleRequest(BaseModel):
    name: str
    route_pattern: str | None = None
    hours: tuple[int, int] | None = None
    multiplier: Decimal


class RuleActiveRequest(BaseModel):
    active: bool


class FlightRequest(BaseModel):
    flight_number: str
    airline: str = ""
    origin: str = Field(min_length=3, max_length=3)
    destination: str = Field(min_length=3, max_length=3)
    scheduled_departure: datetime
    scheduled_arrival: datetime
    aircraft_id: str | None = None
    gate: str | None = None
    seat_capacity: dict[SeatClass, int]
    base_fares: dict[SeatClass, Decimal]
    route_multiplier: Decimal = Decimal("1")


@app.get("/")
def root() -> dict[str, str]:
    return {"service": "airportledger-api", "status": "ok"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/flights")
def list_flights(
    origin: str | None = None,
    destination: str | None = None,
    on_date: date | None = None,
    status: FlightStatus | None = None,
    runtime: LedgerRuntime = Depends(get_runtime),
) -> list[dict[str, Any]]:
    flights = runtime.list_flights(origin=origin, destination=destination, on_date=on_date, status=status)
    return [flight.model_dump(mode="json") for flight in flights]


@app.get("/api/flights/available")
def available_flights(runtime: LedgerRuntime = Depends(get_runtime)) -> list[dict[str, Any]]:
    return [flight.model_dump(mode="json") for flight in runtime.available_flights()]


@app.get("/api/flights/{flight_number}")
def get_flight(flight_number: str, runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        return runtime.get_flight(flight_number).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.get("/api/flights/{flight_number}/bookings")
def flight_bookings(
    flight_number: str,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> list[dict[str, Any]]:
    try:
        runtime.authorize(actor, Capability.VIEW_REPORTS)
        return [booking.model_dump(mode="json") for booking in runtime.bookings_for_flight(flight_number)]
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.get("/api/flights/{flight_number}/fares/{seat_class}")
def quote_fare(flight_number: str, seat_class: SeatClass, runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        fare = runtime.quote_fare(flight_number, seat_class)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {
        "flight_number": flight_number,
        "seat_class": seat_class.value,
        "price": str(fare),
        "currency": runtime.settings.currency,
    }


@app.post("/api/bookings", status_code=201)
def create_booking(
    payload: BookingRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        booking = runtime.create_booking(actor, payload.flight_number, payload.seat_class, payload.passenger)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return booking.model_dump(mode="json")


@app.get("/api/bookings")
def passenger_bookings(email: str, runtime: LedgerRuntime = Depends(get_runtime)) -> list[dict[str, Any]]:
    return [booking.model_dump(mode="json") for booking in runtime.bookings_for_passenger(email)]


@app.get("/api/bookings/{ticket_number}")
def get_booking(ticket_number: str, runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        return runtime.get_booking(ticket_number).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/bookings/{ticket_number}/cancel")
def cancel_booking(
    ticket_number: str,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.cancel_booking(actor, ticket_number).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/bookings/{ticket_number}/advance")
def advance_booking(
    ticket_number: str,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.advance_booking(actor, ticket_number).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/admin/flights", status_code=201)
def add_flight(
    payload: FlightRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    flight = Flight.model_validate(
        {
            **payload.model_dump(),
            "origin": payload.origin.upper(),
            "destination": payload.destination.upper(),
        }
    )
    try:
        return runtime.add_flight(actor, flight).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/admin/flights/{flight_number}")
def remove_flight(
    flight_number: str,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, str]:
    try:
        runtime.remove_flight(actor, flight_number)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok"}


@app.post("/api/admin/flights/{flight_number}/delay")
def delay_flight(
    flight_number: str,
    payload: DelayRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.set_delay(actor, flight_number, payload.minutes).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/admin/flights/{flight_number}/cancel")
def cancel_flight(
    flight_number: str,
    payload: CancelFlightRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.cancel_flight(actor, flight_number, reason=payload.reason).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/admin/flights/{flight_number}/pricing")
def set_pricing_multiplier(
    flight_number: str,
    payload: PricingMultiplierRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.set_pricing_multiplier(actor, flight_number, payload.multiplier).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/admin/flights/{flight_number}/gate")
def set_gate(
    flight_number: str,
    payload: GateRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.set_gate(actor, flight_number, payload.gate).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.put("/api/admin/flights/{flight_number}/aircraft")
def assign_aircraft(
    flight_number: str,
    payload: AircraftRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.assign_aircraft(actor, flight_number, payload.registration).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/admin/flights/{flight_number}/aircraft")
def unassign_aircraft(
    flight_number: str,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.unassign_aircraft(actor, flight_number).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.get("/api/admin/aircraft")
def aircraft_status(runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, str]:
    return {registration: status.value for registration, status in runtime.aircraft_status().items()}


@app.get("/api/admin/pricing-rules")
def pricing_rules(runtime: LedgerRuntime = Depends(get_runtime)) -> list[dict[str, Any]]:
    return [rule.model_dump(mode="json") for rule in runtime.pricing_rules()]


@app.post("/api/admin/pricing-rules", status_code=201)
def add_pricing_rule(
    payload: PricingRuleRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    rule = PricingRule(**payload.model_dump())
    try:
        return runtime.add_pricing_rule(actor, rule).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/admin/pricing-rules/{rule_id}/active")
def set_pricing_rule_active(
    rule_id: str,
    payload: RuleActiveRequest,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        return runtime.set_pricing_rule_active(actor, rule_id, payload.active).model_dump(mode="json")
    except LedgerError as exc:
        raise _http_error(exc) from exc


@app.post("/api/admin/save")
def save_ledger(actor: Actor = Depends(get_actor), runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        runtime.authorize(actor, Capability.MANAGE_FLIGHTS)
        snapshot = runtime.save()
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {
        "taken_at": snapshot.taken_at.isoformat(),
        "flights": len(snapshot.flights),
        "bookings": len(snapshot.bookings),
    }


@app.post("/api/lifecycle/sweep")
def run_sweep(actor: Actor = Depends(get_actor), runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        report = runtime.sweep_now(actor)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    payload = asdict(report)
    payload["started_at"] = report.started_at.isoformat()
    payload["transitions"] = [
        {"flight_number": flight_number, "from": before.value, "to": after.value}
        for flight_number, before, after in report.transitions
    ]
    return payload


@app.get("/api/lifecycle/status")
def lifecycle_status(runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    report = runtime.scheduler.last_report
    return {
        "running": runtime.scheduler.running,
        "interval_seconds": runtime.scheduler.interval_seconds,
        "last_sweep_at": report.started_at.isoformat() if report else None,
    }


@app.get("/api/audit")
def audit_log(
    target: str | None = None,
    actor: Actor = Depends(get_actor),
    runtime: LedgerRuntime = Depends(get_runtime),
) -> list[dict[str, Any]]:
    try:
        runtime.authorize(actor, Capability.VIEW_REPORTS)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    entries = runtime.audit_history(target) if target else runtime.audit_log()
    return [entry.model_dump(mode="json") for entry in entries]


@app.get("/api/metrics")
def metrics(actor: Actor = Depends(get_actor), runtime: LedgerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        runtime.authorize(actor, Capability.VIEW_REPORTS)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return runtime.metrics()
