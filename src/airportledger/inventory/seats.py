from __future__ import annotations

from threading import Lock

from airportledger.errors import InventoryInvariantError, SeatUnavailable
from airportledger.models.domain import Flight, SeatClass


class SeatInventory:
    """Per-flight, per-class seat counters.

    Counters live on the ``Flight`` record the caller owns; this class only
    guarantees that each reserve/release on one flight is indivisible relative
    to every other reserve/release on that flight.

    Inside ``LedgerRuntime`` every call already runs under the flight's guard,
    so these locks only matter when the inventory is used on its own.
    """

    def __init__(self) -> None:
        self._locks: dict[str, Lock] = {}
        self._registry_lock = Lock()

    def _lock_for(self, flight_number: str) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(flight_number)
            if lock is None:
                lock = Lock()
                self._locks[flight_number] = lock
            return lock

    def forget(self, flight_number: str) -> None:
        with self._registry_lock:
            self._locks.pop(flight_number, None)

    def reserve(self, flight: Flight, seat_class: SeatClass) -> int:
        """Take one seat; returns the seats left in that class."""
        with self._lock_for(flight.flight_number):
            if seat_class not in flight.seat_capacity:
                raise SeatUnavailable(flight.flight_number, seat_class.value)
            remaining = flight.seats_remaining.get(seat_class, 0)
            if remaining <= 0:
                raise SeatUnavailable(flight.flight_number, seat_class.value)
            flight.seats_remaining[seat_class] = remaining - 1
            return remaining - 1

    def release(self, flight: Flight, seat_class: SeatClass) -> int:
        with self._lock_for(flight.flight_number):
            capacity = flight.seat_capacity.get(seat_class, 0)
            remaining = flight.seats_remaining.get(seat_class, 0)
            if remaining + 1 > capacity:
                raise InventoryInvariantError(
                    f"Release on {flight.flight_number} {seat_class.value} would exceed capacity {capacity}"
                )
            flight.seats_remaining[seat_class] = remaining + 1
            return remaining + 1

    @staticmethod
    def check(flight: Flight) -> list[str]:
        """Describe every class whose counter is outside [0, capacity]."""
        issues: list[str] = []
        for seat_class, capacity in flight.seat_capacity.items():
            remaining = flight.seats_remaining.get(seat_class, 0)
            if not 0 <= remaining <= capacity:
                issues.append(f"{flight.flight_number} {seat_class.value}: {remaining}/{capacity}")
        return issues
