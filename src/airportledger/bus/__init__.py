from .factory import build_audit_bus, build_transport_bus
from .fanout import FanoutBus
from .in_memory import InMemoryBus
from .kafka import KafkaBus

__all__ = ["InMemoryBus", "KafkaBus", "FanoutBus", "build_audit_bus", "build_transport_bus"]
