from __future__ import annotations

from threading import Event

import pytest

from airportledger.errors import NotFound
from airportledger.lifecycle.scheduler import LifecycleScheduler
from airportledger.models.domain import FlightStatus


class FakeTarget:
    def __init__(self) -> None:
        self.swept: list[str] = []
        self.ticked = Event()

    def flight_numbers(self) -> list[str]:
        return ["AL100", "AL200", "AL300", "AL400"]

    def sweep_flight(self, flight_number: str) -> list[tuple[FlightStatus, FlightStatus]]:
        self.swept.append(flight_number)
        self.ticked.set()
        if flight_number == "AL200":
            raise RuntimeError("corrupt record")
        if flight_number == "AL300":
            raise NotFound("flight", flight_number)
        if flight_number == "AL400":
            return [(FlightStatus.SCHEDULED, FlightStatus.BOARDING)]
        return []


def test_run_once_isolates_failures_per_flight() -> None:
    target = FakeTarget()
    scheduler = LifecycleScheduler(target, interval_seconds=60)

    report = scheduler.run_once()

    assert target.swept == ["AL100", "AL200", "AL300", "AL400"]
    assert report.failed == ["AL200"]
    assert report.flights_checked == 2
    assert report.transitions == [("AL400", FlightStatus.SCHEDULED, FlightStatus.BOARDING)]
    assert scheduler.last_report is report


def test_start_and_stop_are_idempotent() -> None:
    target = FakeTarget()
    scheduler = LifecycleScheduler(target, interval_seconds=0.05)

    assert scheduler.start() is True
    assert scheduler.start() is False
    assert target.ticked.wait(timeout=2)
    assert scheduler.running

    assert scheduler.stop() is True
    assert scheduler.stop() is False
    assert not scheduler.running


def test_scheduler_can_restart_after_stop() -> None:
    target = FakeTarget()
    scheduler = LifecycleScheduler(target, interval_seconds=0.05)
    scheduler.start()
    scheduler.stop()
    target.ticked.clear()

    assert scheduler.start() is True
    assert target.ticked.wait(timeout=2)
    scheduler.stop()


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        LifecycleScheduler(FakeTarget(), interval_seconds=0)
