from __future__ import annotations

from airportledger.bus.fanout import FanoutBus
from airportledger.bus.in_memory import InMemoryBus
from airportledger.bus.kafka import KafkaBus
from airportledger.settings import Settings


def build_transport_bus(settings: Settings) -> KafkaBus | None:
    if settings.bus_backend == "memory":
        return None
    if settings.bus_backend == "kafka":
        return KafkaBus(bootstrap_servers=settings.kafka_bootstrap_servers, client_id=settings.kafka_client_id)
    raise ValueError("Unsupported AIRPORTLEDGER_BUS_BACKEND. Use 'memory' or 'kafka'.")


def build_audit_bus(settings: Settings) -> tuple[InMemoryBus, InMemoryBus | FanoutBus]:
    """Return the local snapshot bus and the bus the audit store should publish to."""
    snapshot_bus = InMemoryBus()
    transport_bus = build_transport_bus(settings)
    if transport_bus is None:
        return snapshot_bus, snapshot_bus
    return snapshot_bus, FanoutBus([snapshot_bus, transport_bus])
