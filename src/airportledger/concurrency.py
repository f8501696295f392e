from __future__ import annotations

from threading import Condition, Lock
from types import TracebackType


class FairLock:
    """Ticket lock: waiters are admitted strictly in arrival order."""

    def __init__(self) -> None:
        self._cond = Condition(Lock())
        self._next_ticket = 0
        self._serving = 0

    def acquire(self) -> None:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while self._serving != ticket:
                self._cond.wait()

    def release(self) -> None:
        with self._cond:
            self._serving += 1
            self._cond.notify_all()

    def __enter__(self) -> FairLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class FlightGuards:
    """One FairLock per flight number, created on first use."""

    def __init__(self) -> None:
        self._guards: dict[str, FairLock] = {}
        self._lock = Lock()

    def for_flight(self, flight_number: str) -> FairLock:
        with self._lock:
            guard = self._guards.get(flight_number)
            if guard is None:
                guard = FairLock()
                self._guards[flight_number] = guard
            return guard

    def __len__(self) -> int:
        with self._lock:
            return len(self._guards)
