from __future__ import annotations

from airportledger.models.domain import AuditAction


ACTION_TOPIC_MAP = {
    AuditAction.BOOKING_CREATED: "booking.lifecycle",
    AuditAction.BOOKING_CANCELLED: "booking.lifecycle",
    AuditAction.BOOKING_ADVANCED: "booking.lifecycle",
    AuditAction.FLIGHT_STATUS_CHANGED: "flight.lifecycle",
    AuditAction.FLIGHT_DELAYED: "flight.admin",
    AuditAction.FLIGHT_CANCELLED: "flight.admin",
    AuditAction.FLIGHT_ADDED: "flight.admin",
    AuditAction.FLIGHT_REMOVED: "flight.admin",
    AuditAction.GATE_ASSIGNED: "flight.admin",
    AuditAction.AIRCRAFT_ASSIGNED: "aircraft.admin",
    AuditAction.AIRCRAFT_UNASSIGNED: "aircraft.admin",
    AuditAction.PRICING_CHANGED: "pricing.admin",
    AuditAction.PRICING_RULE_ADDED: "pricing.admin",
    AuditAction.PRICING_RULE_TOGGLED: "pricing.admin",
}

DEFAULT_TOPIC = "ledger.audit"


def topic_for(action: str) -> str:
    try:
        return ACTION_TOPIC_MAP[AuditAction(action)]
    except ValueError:
        return DEFAULT_TOPIC
