"""Background sweep that moves flights along their time-driven lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from time import monotonic
from typing import Protocol

from airportledger.errors import NotFound
from airportledger.models.domain import FlightStatus
from airportledger.observability import get_logger

logger = get_logger(__name__)


class SweepTarget(Protocol):
    def flight_numbers(self) -> list[str]: ...

    def sweep_flight(self, flight_number: str) -> list[tuple[FlightStatus, FlightStatus]]: ...


@dataclass
class SweepReport:
    started_at: datetime
    flights_checked: int = 0
    transitions: list[tuple[str, FlightStatus, FlightStatus]] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class LifecycleScheduler:
    """
    Periodic sweep over every flight.

    Runs on its own daemon thread. A failure on one flight is logged and the
    sweep moves on to the next flight; a tick always runs to completion.
    """

    def __init__(self, target: SweepTarget, interval_seconds: float = 30, name: str = "lifecycle-sweep") -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.target = target
        self.interval_seconds = interval_seconds
        self.name = name
        self.last_report: SweepReport | None = None
        self._stop = Event()
        self._thread: Thread | None = None
        self._state_lock = Lock()
        self._sweep_lock = Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> bool:
        with self._state_lock:
            if self.running:
                logger.warning("scheduler_already_running", scheduler=self.name)
                return False
            self._stop.clear()
            self._thread = Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        logger.info("scheduler_started", scheduler=self.name, interval_seconds=self.interval_seconds)
        return True

    def stop(self, timeout: float | None = 5.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return False
            self._stop.set()
            self._thread = None
        thread.join(timeout)
        logger.info("scheduler_stopped", scheduler=self.name)
        return True

    def run_once(self) -> SweepReport:
        with self._sweep_lock:
            report = SweepReport(started_at=datetime.now(timezone.utc))
            started = monotonic()
            for flight_number in self.target.flight_numbers():
                try:
                    steps = self.target.sweep_flight(flight_number)
                except NotFound:
                    # Removed between listing and sweeping.
                    continue
                except Exception:
                    report.failed.append(flight_number)
                    logger.exception("flight_sweep_failed", scheduler=self.name, flight_number=flight_number)
                    continue
                report.flights_checked += 1
                report.transitions.extend((flight_number, before, after) for before, after in steps)
            report.duration_seconds = monotonic() - started
            self.last_report = report

        logger.info(
            "sweep_completed",
            scheduler=self.name,
            flights_checked=report.flights_checked,
            transitions=len(report.transitions),
            failed=len(report.failed),
            duration_seconds=round(report.duration_seconds, 4),
        )
        return report

    def _run(self) -> None:
        while not self._stop.is_set():
            started = monotonic()
            try:
                self.run_once()
            except Exception:
                logger.exception("sweep_crashed", scheduler=self.name)
            # Sleep for the rest of the interval; stop() wakes us early.
            self._stop.wait(max(0.0, self.interval_seconds - (monotonic() - started)))
