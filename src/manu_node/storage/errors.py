"""Errors raised by :class:`manu_node.storage.store.NodeStore`.

Each error also derives from the closest builtin so callers that only know
about `OSError` / `ValueError` / `LookupError` still catch it.
"""

from __future__ import annotations


class NodeStoreError(Exception):
    """Base class for all store failures."""


class StorageIOError(NodeStoreError, OSError):
    """The data directory or nodes file could not be created, read or written."""


class SerializationError(NodeStoreError, ValueError):
    """The nodes file does not hold a valid node collection."""


class NotFoundError(NodeStoreError, LookupError):
    """No node matched the requested id or title."""


class AmbiguousError(NodeStoreError, LookupError):
    """A title lookup matched more than one node."""

    def __init__(self, title: str, ids: list[str]) -> None:
        super().__init__(f"multiple nodes found with title '{title}'")
        self.title = title
        self.ids = ids
