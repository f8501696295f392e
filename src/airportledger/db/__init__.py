from .repositories import (
    SnapshotRepository,
    SnapshotStore,
    StorageBackend,
    reset_memory_backend,
)

__all__ = [
    "SnapshotRepository",
    "SnapshotStore",
    "StorageBackend",
    "reset_memory_backend",
]
