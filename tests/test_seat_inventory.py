from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from airportledger.errors import InventoryInvariantError, SeatUnavailable
from airportledger.inventory.seats import SeatInventory
from airportledger.models.domain import SeatClass
from factories import make_flight


def test_reserve_decrements_until_sold_out() -> None:
    flight = make_flight(capacity={SeatClass.ECONOMY: 2}, fares={SeatClass.ECONOMY: 100})
    inventory = SeatInventory()

    assert inventory.reserve(flight, SeatClass.ECONOMY) == 1
    assert inventory.reserve(flight, SeatClass.ECONOMY) == 0
    with pytest.raises(SeatUnavailable):
        inventory.reserve(flight, SeatClass.ECONOMY)
    assert flight.seats_remaining[SeatClass.ECONOMY] == 0


def test_reserve_unknown_class_is_unavailable() -> None:
    flight = make_flight(capacity={SeatClass.ECONOMY: 2}, fares={SeatClass.ECONOMY: 100})

    with pytest.raises(SeatUnavailable):
        SeatInventory().reserve(flight, SeatClass.FIRST)


def test_release_never_exceeds_capacity() -> None:
    flight = make_flight(capacity={SeatClass.ECONOMY: 1}, fares={SeatClass.ECONOMY: 100})
    inventory = SeatInventory()
    inventory.reserve(flight, SeatClass.ECONOMY)

    assert inventory.release(flight, SeatClass.ECONOMY) == 1
    with pytest.raises(InventoryInvariantError):
        inventory.release(flight, SeatClass.ECONOMY)
    assert flight.seats_remaining[SeatClass.ECONOMY] == 1


def test_check_reports_out_of_range_counters() -> None:
    flight = make_flight(capacity={SeatClass.ECONOMY: 3}, fares={SeatClass.ECONOMY: 100})
    assert SeatInventory.check(flight) == []

    flight.seats_remaining[SeatClass.ECONOMY] = 5

    assert SeatInventory.check(flight) == ["AL100 economy: 5/3"]


def test_concurrent_reservations_never_oversell() -> None:
    flight = make_flight(capacity={SeatClass.ECONOMY: 50}, fares={SeatClass.ECONOMY: 100})
    inventory = SeatInventory()

    def attempt(_: int) -> bool:
        try:
            inventory.reserve(flight, SeatClass.ECONOMY)
            return True
        except SeatUnavailable:
            return False

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(attempt, range(200)))

    assert sum(results) == 50
    assert flight.seats_remaining[SeatClass.ECONOMY] == 0
