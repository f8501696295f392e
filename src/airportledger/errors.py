from __future__ import annotations


class LedgerError(Exception):
    """Base class for every error the ledger raises on purpose."""


class SeatUnavailable(LedgerError):
    def __init__(self, flight_number: str, seat_class: str) -> None:
        super().__init__(f"No {seat_class} seats available on {flight_number}")
        self.flight_number = flight_number
        self.seat_class = seat_class


class FlightNotBookable(LedgerError):
    def __init__(self, flight_number: str, reason: str) -> None:
        super().__init__(f"Flight {flight_number} is not bookable: {reason}")
        self.flight_number = flight_number
        self.reason = reason


class NotFound(LedgerError, KeyError):
    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} {identifier!r} not found")
        self.kind = kind
        self.identifier = identifier

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidTransition(LedgerError, ValueError):
    """An illegal lifecycle move requested by a user or admin."""


class AlreadyTerminal(InvalidTransition):
    def __init__(self, ticket_number: str, status: str) -> None:
        super().__init__(f"Booking {ticket_number} is already {status}")
        self.ticket_number = ticket_number
        self.status = status


class InvalidRequest(LedgerError, ValueError):
    """Admin input that can never be applied (bad multiplier, duplicate flight, ...)."""


class PermissionDenied(LedgerError):
    def __init__(self, actor: str, capability: str) -> None:
        super().__init__(f"{actor} lacks capability {capability}")
        self.actor = actor
        self.capability = capability


class InventoryInvariantError(LedgerError, RuntimeError):
    """Seat counters would leave [0, capacity]; indicates a double release bug."""
