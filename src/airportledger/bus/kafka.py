from __future__ import annotations

import json
from typing import Iterable

from kafka import KafkaProducer

from airportledger.bus.routing import topic_for
from airportledger.models.domain import AuditEntry


class KafkaBus:
    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str = "airportledger-producer",
        producer: KafkaProducer | None = None,
    ) -> None:
        self._owns_producer = producer is None
        self._producer = producer or KafkaProducer(
            bootstrap_servers=bootstrap_servers,
            client_id=client_id,
            linger_ms=10,
            acks="all",
            value_serializer=lambda payload: json.dumps(payload).encode("utf-8"),
            key_serializer=lambda key: key.encode("utf-8"),
        )

    def publish(self, entry: AuditEntry) -> None:
        payload = entry.model_dump(mode="json")
        # Keyed by target so every change to one flight or ticket lands on one partition.
        self._producer.send(topic_for(entry.action), key=entry.target, value=payload)

    def publish_many(self, entries: Iterable[AuditEntry]) -> None:
        for entry in entries:
            self.publish(entry)
        self._producer.flush()

    def close(self) -> None:
        if self._owns_producer:
            self._producer.flush()
            self._producer.close()
