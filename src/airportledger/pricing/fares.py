from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from threading import Lock
from typing import Iterable

from airportledger.models.domain import Flight, PricingRule, SeatClass

CENT = Decimal("0.01")


def price(base_fare: Decimal, route_multiplier: Decimal, admin_multiplier: Decimal) -> Decimal:
    """Fare rounded to the cent, half up."""
    raw = Decimal(base_fare) * Decimal(route_multiplier) * Decimal(admin_multiplier)
    return raw.quantize(CENT, rounding=ROUND_HALF_UP)


def rule_multiplier(rules: Iterable[PricingRule], origin: str, destination: str, departure_hour: int) -> Decimal:
    multiplier = Decimal("1")
    for rule in rules:
        if rule.active and rule.applies_to_route(origin, destination) and rule.applies_to_hour(departure_hour):
            multiplier *= rule.multiplier
    return multiplier


class FareEngine:
    def __init__(self, rules: Iterable[PricingRule] | None = None) -> None:
        self._rules: dict[str, PricingRule] = {rule.rule_id: rule.model_copy() for rule in rules or []}
        self._lock = Lock()

    def rules(self) -> list[PricingRule]:
        with self._lock:
            return [rule.model_copy() for rule in self._rules.values()]

    def replace_rules(self, rules: Iterable[PricingRule]) -> None:
        with self._lock:
            self._rules = {rule.rule_id: rule.model_copy() for rule in rules}

    def add_rule(self, rule: PricingRule) -> PricingRule:
        with self._lock:
            if rule.rule_id in self._rules:
                raise ValueError(f"Pricing rule {rule.rule_id} already exists")
            self._rules[rule.rule_id] = rule.model_copy()
            return rule.model_copy()

    def set_active(self, rule_id: str, active: bool) -> tuple[PricingRule, PricingRule]:
        with self._lock:
            rule = self._rules[rule_id]
            before = rule.model_copy()
            rule.active = active
            return before, rule.model_copy()

    def route_multiplier(self, flight: Flight) -> Decimal:
        with self._lock:
            rules = list(self._rules.values())
        return flight.route_multiplier * rule_multiplier(rules, flight.origin, flight.destination, flight.departure.hour)

    def quote(self, flight: Flight, seat_class: SeatClass) -> Decimal:
        if seat_class not in flight.base_fares:
            raise KeyError(f"{flight.flight_number} has no {seat_class.value} fare")
        return price(flight.base_fares[seat_class], self.route_multiplier(flight), flight.pricing_multiplier)
