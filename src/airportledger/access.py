from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Capability(str, Enum):
    BOOK = "book"
    MANAGE_FLIGHTS = "manage_flights"
    MANAGE_AIRCRAFT = "manage_aircraft"
    MANAGE_PRICING = "manage_pricing"
    VIEW_REPORTS = "view_reports"
    RUN_LIFECYCLE = "run_lifecycle"


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    FLIGHT_MANAGER = "flight_manager"
    AIRCRAFT_MANAGER = "aircraft_manager"
    FINANCE_MANAGER = "finance_manager"
    VIEWER = "viewer"
    PASSENGER = "passenger"
    SYSTEM = "system"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPER_ADMIN: frozenset(Capability),
    Role.FLIGHT_MANAGER: frozenset(
        {Capability.BOOK, Capability.MANAGE_FLIGHTS, Capability.VIEW_REPORTS, Capability.RUN_LIFECYCLE}
    ),
    Role.AIRCRAFT_MANAGER: frozenset({Capability.MANAGE_AIRCRAFT, Capability.VIEW_REPORTS}),
    Role.FINANCE_MANAGER: frozenset({Capability.MANAGE_PRICING, Capability.VIEW_REPORTS}),
    Role.VIEWER: frozenset({Capability.VIEW_REPORTS}),
    Role.PASSENGER: frozenset({Capability.BOOK}),
    Role.SYSTEM: frozenset({Capability.RUN_LIFECYCLE}),
}


@dataclass(frozen=True)
class Actor:
    name: str
    role: Role

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES[self.role]


SYSTEM_ACTOR = Actor(name="system", role=Role.SYSTEM)
