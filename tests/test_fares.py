from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from airportledger.models.domain import PricingRule, SeatClass
from airportledger.pricing.fares import FareEngine, price, rule_multiplier
from factories import make_flight


def test_price_rounds_half_up_to_the_cent() -> None:
    assert price(Decimal("100.005"), Decimal("1"), Decimal("1")) == Decimal("100.01")
    assert price(Decimal("299.99"), Decimal("1.2"), Decimal("1.1")) == Decimal("395.99")
    assert price(Decimal("10"), Decimal("1"), Decimal("1")) == Decimal("10.00")


@pytest.mark.parametrize(
    ("pattern", "origin", "destination", "expected"),
    [
        ("LAX-JFK", "LAX", "JFK", True),
        ("LAX-JFK", "JFK", "LAX", False),
        ("*-LHR", "JFK", "LHR", True),
        ("*-LHR", "LHR", "CDG", False),
        ("LAX-*", "LAX", "NRT", True),
        ("*JFK*", "JFK", "NRT", True),
        ("*JFK*", "LHR", "CDG", False),
        (None, "CDG", "NRT", True),
    ],
)
def test_pricing_rule_route_patterns(pattern: str | None, origin: str, destination: str, expected: bool) -> None:
    rule = PricingRule(name="rule", route_pattern=pattern, multiplier=Decimal("1.1"))
    assert rule.applies_to_route(origin, destination) is expected


def test_rule_multiplier_combines_active_matching_rules_only() -> None:
    rules = [
        PricingRule(name="peak", hours=(6, 9), multiplier=Decimal("1.3")),
        PricingRule(name="london", route_pattern="*-LHR", multiplier=Decimal("1.2")),
        PricingRule(name="off", multiplier=Decimal("5"), active=False),
    ]

    assert rule_multiplier(rules, "JFK", "LHR", 7) == Decimal("1.56")
    assert rule_multiplier(rules, "JFK", "LHR", 10) == Decimal("1.2")
    assert rule_multiplier(rules, "LAX", "JFK", 12) == Decimal("1")


def test_fare_engine_quote_uses_route_rules_and_admin_multiplier() -> None:
    flight = make_flight(
        departs_in=timedelta(hours=19),
        destination="LHR",
        route_multiplier=Decimal("1.5"),
        pricing_multiplier=Decimal("1.1"),
    )
    engine = FareEngine([PricingRule(name="london", route_pattern="*-LHR", multiplier=Decimal("1.2"))])

    # 100.00 x (1.5 x 1.2) x 1.1
    assert engine.quote(flight, SeatClass.ECONOMY) == Decimal("198.00")


def test_fare_engine_quote_rejects_class_without_fare() -> None:
    flight = make_flight(capacity={SeatClass.ECONOMY: 5}, fares={SeatClass.ECONOMY: Decimal("50")})

    with pytest.raises(KeyError):
        FareEngine().quote(flight, SeatClass.FIRST)


def test_fare_engine_rule_management() -> None:
    rule = PricingRule(name="peak", multiplier=Decimal("2"))
    engine = FareEngine()
    engine.add_rule(rule)
    flight = make_flight()

    assert engine.quote(flight, SeatClass.ECONOMY) == Decimal("200.00")

    before, after = engine.set_active(rule.rule_id, False)

    assert before.active is True
    assert after.active is False
    assert engine.quote(flight, SeatClass.ECONOMY) == Decimal("100.00")
    with pytest.raises(ValueError):
        engine.add_rule(rule)


def test_fare_engine_returns_copies_of_rules() -> None:
    engine = FareEngine([PricingRule(name="peak", multiplier=Decimal("2"))])

    engine.rules()[0].active = False

    assert engine.rules()[0].active is True
