from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from airportledger.models.domain import AircraftStatus, Flight, LedgerSnapshot, PricingRule, SeatClass

AIRLINE = "Rust International Airways"

SAMPLE_ROUTES = [
    ("RIA101", "LAX", "JFK"),
    ("RIA201", "JFK", "LHR"),
    ("RIA301", "LHR", "CDG"),
    ("RIA401", "CDG", "NRT"),
    ("RIA501", "NRT", "DXB"),
    ("RIA601", "DXB", "LAX"),
    ("RIA701", "LAX", "CDG"),
    ("RIA801", "JFK", "NRT"),
    ("RIA901", "LHR", "DXB"),
    ("RIA001", "CDG", "LAX"),
]

# Registration -> total seats.
SAMPLE_AIRCRAFT = {
    "N123RIA": 189,
    "N456RIA": 180,
    "N789RIA": 442,
    "N101RIA": 596,
    "N202RIA": 189,
    "N303RIA": 180,
}

GATES = ["A1", "A2", "B3", "B4", "C5", "C6", "D7", "D8", "E9", "E10"]

BASE_FARES = {
    SeatClass.ECONOMY: Decimal("299.99"),
    SeatClass.BUSINESS: Decimal("899.99"),
    SeatClass.FIRST: Decimal("1999.99"),
}


def split_capacity(total: int) -> dict[SeatClass, int]:
    economy = int(total * 0.7)
    business = int(total * 0.25)
    return {
        SeatClass.ECONOMY: economy,
        SeatClass.BUSINESS: business,
        SeatClass.FIRST: total - economy - business,
    }


def default_pricing_rules() -> list[PricingRule]:
    return [
        PricingRule(name="Peak Hours Premium", hours=(6, 9), multiplier=Decimal("1.3")),
        PricingRule(name="Transatlantic Premium", route_pattern="*-LHR", multiplier=Decimal("1.2")),
    ]


def _jitter(rng: random.Random, fare: Decimal) -> Decimal:
    factor = Decimal(str(round(max(0.85, min(1.15, rng.gauss(1.0, 0.06))), 2)))
    return (fare * factor).quantize(Decimal("0.01"))


def generate_sample_ledger(
    now: datetime | None = None,
    flights: int = 8,
    seed: int | None = None,
) -> LedgerSnapshot:
    """Fresh ledger used when no persisted snapshot exists.

    Departures start two hours out and are spaced three hours apart so none of
    them is already inside its boarding window.
    """
    now = now or datetime.now(timezone.utc)
    rng = random.Random(seed if seed is not None else int(now.timestamp()))
    registrations = list(SAMPLE_AIRCRAFT)
    base_time = (now + timedelta(hours=2)).replace(second=0, microsecond=0)

    generated: list[Flight] = []
    for index, (flight_number, origin, destination) in enumerate(SAMPLE_ROUTES[: max(0, flights)]):
        registration = registrations[index % len(registrations)]
        departure = base_time + timedelta(hours=index * 3)
        generated.append(
            Flight(
                flight_number=flight_number,
                airline=AIRLINE,
                origin=origin,
                destination=destination,
                scheduled_departure=departure,
                scheduled_arrival=departure + timedelta(hours=8 + index % 4),
                aircraft_id=registration,
                gate=GATES[index % len(GATES)],
                seat_capacity=split_capacity(SAMPLE_AIRCRAFT[registration]),
                base_fares={seat_class: _jitter(rng, fare) for seat_class, fare in BASE_FARES.items()},
            )
        )

    return LedgerSnapshot(
        taken_at=now,
        flights=generated,
        aircraft={registration: AircraftStatus.ACTIVE for registration in registrations},
        pricing_rules=default_pricing_rules(),
    )
