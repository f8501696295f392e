from __future__ import annotations

from datetime import datetime, timedelta

from airportledger.models.domain import UNBOOKABLE_FLIGHT_STATUSES, FlightStatus

BOARDING_WINDOW = timedelta(minutes=30)

# Scheduled and Delayed share a rank: neither is "further along" than the other.
_RANK = {
    FlightStatus.SCHEDULED: 0,
    FlightStatus.DELAYED: 0,
    FlightStatus.BOARDING: 1,
    FlightStatus.DEPARTED: 2,
    FlightStatus.IN_FLIGHT: 3,
    FlightStatus.ARRIVED: 4,
}

_FORWARD = [FlightStatus.BOARDING, FlightStatus.DEPARTED, FlightStatus.IN_FLIGHT, FlightStatus.ARRIVED]

TERMINAL_FLIGHT_STATUSES = frozenset({FlightStatus.ARRIVED, FlightStatus.CANCELLED})
PRE_BOARDING_STATUSES = frozenset({FlightStatus.SCHEDULED, FlightStatus.DELAYED})


def _target(now: datetime, dep: datetime, arr: datetime, boarding_window: timedelta) -> FlightStatus | None:
    if now >= arr:
        return FlightStatus.ARRIVED
    if now >= dep:
        # Departed is transient: a flight that departs is in flight straight away.
        return FlightStatus.IN_FLIGHT
    if now >= dep - boarding_window:
        return FlightStatus.BOARDING
    return None


def transition_path(
    current: FlightStatus,
    now: datetime,
    dep: datetime,
    arr: datetime,
    boarding_window: timedelta = BOARDING_WINDOW,
) -> list[FlightStatus]:
    """Every automatic step from ``current`` to the status correct for ``now``.

    Empty when the flight is already where it should be. Never moves backward
    and never leaves Cancelled or Arrived.
    """
    if current in TERMINAL_FLIGHT_STATUSES:
        return []
    target = _target(now, dep, arr, boarding_window)
    if target is None or _RANK[target] <= _RANK[current]:
        return []
    return [status for status in _FORWARD if _RANK[current] < _RANK[status] <= _RANK[target]]


def next_status(
    current: FlightStatus,
    now: datetime,
    dep: datetime,
    arr: datetime,
    boarding_window: timedelta = BOARDING_WINDOW,
) -> FlightStatus:
    path = transition_path(current, now, dep, arr, boarding_window)
    return path[-1] if path else current


def status_after_delay(current: FlightStatus) -> FlightStatus:
    """A delay only relabels flights that have not started boarding."""
    if current in PRE_BOARDING_STATUSES:
        return FlightStatus.DELAYED
    return current


def can_cancel(current: FlightStatus) -> bool:
    return current not in TERMINAL_FLIGHT_STATUSES


def is_bookable(current: FlightStatus, now: datetime, dep: datetime) -> tuple[bool, str]:
    if current in UNBOOKABLE_FLIGHT_STATUSES:
        return False, f"status is {current.value}"
    if now >= dep:
        return False, "departure time has passed"
    return True, ""


def check_in_open(current: FlightStatus, now: datetime, dep: datetime) -> bool:
    return current in {FlightStatus.SCHEDULED, FlightStatus.DELAYED, FlightStatus.BOARDING} and now < dep


def boarding_open(current: FlightStatus) -> bool:
    return current in {FlightStatus.BOARDING, FlightStatus.DEPARTED}


def completion_open(current: FlightStatus) -> bool:
    return current == FlightStatus.ARRIVED
