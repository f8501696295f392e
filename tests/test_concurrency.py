from __future__ import annotations

import random
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from threading import Thread

from airportledger.clock import ManualClock
from airportledger.concurrency import FairLock, FlightGuards
from airportledger.errors import AlreadyTerminal, SeatUnavailable
from airportledger.models.domain import SEAT_HOLDING_STATUSES, SeatClass
from factories import NOW, PASSENGER, make_flight, make_passenger, make_runtime


def test_fair_lock_excludes_and_admits_in_arrival_order() -> None:
    lock = FairLock()
    order: list[int] = []
    lock.acquire()
    threads = []
    for index in range(5):
        thread = Thread(target=lambda index=index: _record_under(lock, order, index))
        thread.start()
        threads.append(thread)
        # Let each waiter take its ticket before the next one arrives.
        time.sleep(0.02)
    lock.release()
    for thread in threads:
        thread.join(timeout=2)

    assert order == [0, 1, 2, 3, 4]


def _record_under(lock: FairLock, order: list[int], index: int) -> None:
    with lock:
        order.append(index)


def test_flight_guards_hand_out_one_lock_per_flight() -> None:
    guards = FlightGuards()

    assert guards.for_flight("AL100") is guards.for_flight("AL100")
    assert guards.for_flight("AL100") is not guards.for_flight("AL200")


def test_concurrent_bookings_for_last_seat_exactly_one_wins() -> None:
    runtime = make_runtime(
        make_flight(departs_in=timedelta(minutes=31), capacity={SeatClass.ECONOMY: 1}, fares={SeatClass.ECONOMY: 99})
    )

    def attempt(index: int) -> bool:
        try:
            runtime.create_booking(PASSENGER, "AL100", SeatClass.ECONOMY, make_passenger(index))
            return True
        except SeatUnavailable:
            return False

    with ThreadPoolExecutor(max_workers=20) as pool:
        results = list(pool.map(attempt, range(20)))

    assert sum(results) == 1
    assert runtime.get_flight("AL100").seats_remaining[SeatClass.ECONOMY] == 0
    assert len(runtime.bookings_for_flight("AL100")) == 1


def test_mixed_traffic_keeps_seat_counts_consistent() -> None:
    clock = ManualClock(NOW)
    runtime = make_runtime(
        make_flight("AL100", capacity={SeatClass.ECONOMY: 30, SeatClass.BUSINESS: 5}),
        make_flight("AL200", departs_in=timedelta(minutes=40), capacity={SeatClass.ECONOMY: 20}, fares={SeatClass.ECONOMY: 80}),
        clock=clock,
    )
    rng = random.Random(3)
    plan = [
        ("AL100", rng.choice([SeatClass.ECONOMY, SeatClass.BUSINESS])) if rng.random() < 0.6 else ("AL200", SeatClass.ECONOMY)
        for _ in range(120)
    ]

    def book(index: int) -> None:
        flight_number, seat_class = plan[index]
        try:
            booking = runtime.create_booking(PASSENGER, flight_number, seat_class, make_passenger(index))
        except SeatUnavailable:
            return
        if index % 3 == 0:
            try:
                runtime.cancel_booking(PASSENGER, booking.ticket_number)
            except AlreadyTerminal:
                pass

    def sweep(_: int) -> None:
        runtime.sweep_now()

    with ThreadPoolExecutor(max_workers=12) as pool:
        list(pool.map(book, range(len(plan))))
        list(pool.map(sweep, range(10)))

    for flight_number in ("AL100", "AL200"):
        flight = runtime.get_flight(flight_number)
        holding = [booking for booking in runtime.bookings_for_flight(flight_number) if booking.status in SEAT_HOLDING_STATUSES]
        for seat_class, capacity in flight.seat_capacity.items():
            remaining = flight.seats_remaining[seat_class]
            assert 0 <= remaining <= capacity
            assert remaining == capacity - sum(1 for booking in holding if booking.seat_class == seat_class)
    assert runtime.integrity_issues() == []
