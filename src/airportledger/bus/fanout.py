from __future__ import annotations

from typing import Iterable

from airportledger.audit.trail import AuditPublisher
from airportledger.models.domain import AuditEntry


class FanoutBus:
    def __init__(self, buses: Iterable[AuditPublisher]) -> None:
        self._buses = list(buses)

    def publish(self, entry: AuditEntry) -> None:
        for bus in self._buses:
            bus.publish(entry)

    def close(self) -> None:
        for bus in self._buses:
            close = getattr(bus, "close", None)
            if callable(close):
                close()
