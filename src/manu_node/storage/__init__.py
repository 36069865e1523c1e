"""Node persistence.

Public entrypoints:
- `NodeStore`: JSON-file backed collection with id/title lookups.
- `NodeStoreError` and its subclasses: the failures `NodeStore` raises.
"""

from manu_node.storage.errors import (
    AmbiguousError,
    NodeStoreError,
    NotFoundError,
    SerializationError,
    StorageIOError,
)
from manu_node.storage.store import NodeStore

__all__ = [
    "AmbiguousError",
    "NodeStore",
    "NodeStoreError",
    "NotFoundError",
    "SerializationError",
    "StorageIOError",
]
