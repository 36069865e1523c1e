"""JSON-file storage for :class:`manu_node.node.entities.Node`.

The whole collection lives in one JSON document (a list of node objects) under
the store's data directory. Every operation re-reads the file; nothing is
cached between calls, so the file is the only source of truth.

Design notes / invariants:
- Order on disk is insertion order. `save_node` replaces an existing node in
  place and appends new ones at the end; `delete_node` keeps the order of the
  remaining nodes.
- `load()` holds the lock in shared mode. `save()` and the compound mutations
  (`save_node`, `update_node`, `delete_node`) hold it exclusively across their
  whole read-modify-write sequence, so no load or other mutation can observe or
  interleave with the intermediate state.
- Parsing is strict: invalid JSON, a non-list document, an invalid node, or a
  duplicate id raises `SerializationError` with path context instead of
  skipping data.
- Title uniqueness is advisory: `is_title_unique()` answers the question, but
  `save_node()`/`update_node()` never reject a duplicate title. Lookups by
  title surface collisions as `AmbiguousError`.
- Writes go through a temporary file in the same directory followed by an
  atomic replace, so a failed write leaves the previous file intact.
- The lock is per store instance and per process. Separate processes (or
  separate `NodeStore` objects for the same path) are not coordinated.
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import Iterable
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from manu_node.node.entities import Node
from manu_node.storage.errors import (
    AmbiguousError,
    NotFoundError,
    SerializationError,
    StorageIOError,
)
from manu_node.storage.rwlock import ReadWriteLock

if TYPE_CHECKING:
    from manu_node.config import Config

logger = getLogger(__name__)

DEFAULT_NODES_FILE = "nodes.json"


class NodeStore:
    """Concurrency-safe load/save and queries over the node collection.

    Args:
        data_dir: Directory holding the nodes file. Created (with parents) if
            missing.
        filename: Name of the JSON file inside `data_dir`.
        encoding: File encoding used for reading/writing.

    Raises:
        StorageIOError: If `data_dir` cannot be created.
    """

    path: Path
    encoding: str

    def __init__(
        self,
        data_dir: str | Path,
        *,
        filename: str = DEFAULT_NODES_FILE,
        encoding: str = "utf-8",
    ) -> None:
        data_dir = Path(data_dir)
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                f"failed to create data directory {data_dir}: {e}"
            ) from e
        self.path = data_dir / filename
        self.encoding = encoding
        self._lock = ReadWriteLock()

    @classmethod
    def from_config(cls, config: Config) -> NodeStore:
        return cls(config.data_dir, filename=config.nodes_file)

    def load(self) -> list[Node]:
        """Return every node in file order.

        A missing or empty file counts as an empty collection.

        Raises:
            StorageIOError: If the file exists but cannot be read.
            SerializationError: If the file content is not a node collection.
        """

        with self._lock.read():
            return self._read_unlocked()

    def save(self, nodes: Iterable[Node]) -> None:
        """Replace the file content with `nodes` (in the given order).

        Raises:
            SerializationError: If two nodes share an id; nothing is written.
            StorageIOError: If the file cannot be written.
        """

        with self._lock.write():
            self._write_unlocked(list(nodes))

    def save_node(self, node: Node) -> None:
        """Insert `node`, or replace the stored node with the same id in place."""

        with self._lock.write():
            nodes = self._read_unlocked()
            for idx, existing in enumerate(nodes):
                if existing.id_ == node.id_:
                    nodes[idx] = node
                    logger.debug(f"Replacing node {node.id_} at position {idx}")
                    break
            else:
                nodes.append(node)
                logger.debug(f"Appending node {node.id_}")
            self._write_unlocked(nodes)

    def get_node(self, id_: str) -> Node:
        """Return the node whose id is exactly `id_`.

        Raises:
            NotFoundError: If no node has that id.
        """

        for node in self.load():
            if node.id_ == id_:
                return node
        raise NotFoundError(f"node with ID {id_} not found")

    def get_node_by_title(self, title: str) -> Node:
        """Return the single node whose title equals `title`, ignoring case.

        Raises:
            NotFoundError: If no node has that title.
            AmbiguousError: If more than one node has that title.
        """

        wanted = _title_key(title)
        matches = [node for node in self.load() if _title_key(node.title) == wanted]
        if not matches:
            raise NotFoundError(f"node with title '{title}' not found")
        if len(matches) > 1:
            raise AmbiguousError(title, [node.id_ for node in matches])
        return matches[0]

    def get_node_by_id_or_title(self, identifier: str) -> Node:
        """Look `identifier` up as an id first, then as a title.

        Only a `NotFoundError` from the id lookup triggers the title fallback;
        any other failure propagates unchanged.
        """

        try:
            return self.get_node(identifier)
        except NotFoundError:
            return self.get_node_by_title(identifier)

    def is_title_unique(self, title: str, exclude_id: str = "") -> bool:
        """Return whether no other node already uses `title` (ignoring case).

        Args:
            title: Candidate title.
            exclude_id: Id of a node to ignore, typically the node being
                renamed. Empty means no node is ignored.
        """

        wanted = _title_key(title)
        for node in self.load():
            if exclude_id and node.id_ == exclude_id:
                continue
            if _title_key(node.title) == wanted:
                return False
        return True

    def update_node(self, id_: str, updated: Node) -> Node:
        """Replace the node `id_` with `updated`, keeping its id and `created_at`.

        Whatever `updated` carries for `id_`/`created_at` is ignored. If its
        `updated_at` is earlier than the original `created_at`, it is raised to
        `created_at` so the stored node stays ordered.

        Returns:
            The node as stored.

        Raises:
            NotFoundError: If no node has id `id_`; nothing is written.
        """

        with self._lock.write():
            nodes = self._read_unlocked()
            for idx, existing in enumerate(nodes):
                if existing.id_ != id_:
                    continue
                stored = updated.model_copy(
                    update={
                        "id_": existing.id_,
                        "created_at": existing.created_at,
                        "updated_at": max(
                            updated.updated_at or existing.created_at,
                            existing.created_at,
                        ),
                    }
                )
                nodes[idx] = stored
                self._write_unlocked(nodes)
                logger.info(f"Updated node {id_}")
                return stored
        raise NotFoundError(f"node with ID {id_} not found")

    def delete_node(self, id_: str) -> None:
        """Remove the node `id_`, keeping the order of the others.

        Raises:
            NotFoundError: If no node has id `id_`; nothing is written.
        """

        with self._lock.write():
            nodes = self._read_unlocked()
            remaining = [node for node in nodes if node.id_ != id_]
            if len(remaining) == len(nodes):
                raise NotFoundError(f"node with ID {id_} not found")
            self._write_unlocked(remaining)
            logger.info(f"Deleted node {id_}")

    def _read_unlocked(self) -> list[Node]:
        try:
            raw = self.path.read_text(encoding=self.encoding)
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            raise StorageIOError(f"failed to read nodes file {self.path}: {e}") from e

        if not raw.strip():
            return []
        return _parse_nodes(raw, path=self.path)

    def _write_unlocked(self, nodes: list[Node]) -> None:
        ids = [node.id_ for node in nodes]
        if len(set(ids)) != len(ids):
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            raise SerializationError(f"Refusing to write duplicate node id(s): {dupes}")
        payload = json.dumps(
            [node.to_json_dict() for node in nodes], indent=2, ensure_ascii=False
        )
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding=self.encoding,
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tf:
                tmp_path = Path(tf.name)
                tf.write(payload)
            tmp_path.replace(self.path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StorageIOError(f"failed to write nodes file {self.path}: {e}") from e
        logger.debug(f"Wrote {len(nodes)} node(s) to {self.path}")


def _title_key(title: str) -> str:
    return title.lower()


def _parse_nodes(raw: str, *, path: Path) -> list[Node]:
    try:
        decoded = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Nodes file {path} is not valid JSON")
        raise SerializationError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(decoded, list):
        raise SerializationError(
            f"Invalid nodes file {path}: expected a JSON array, got {type(decoded).__name__}"
        )

    nodes: list[Node] = []
    seen: set[str] = set()
    for idx, item in enumerate(decoded):
        try:
            node = Node.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Nodes file {path} has an invalid node at index {idx}")
            raise SerializationError(f"Invalid node at {path}[{idx}]: {e}") from e
        if node.id_ in seen:
            raise SerializationError(f"Duplicate node id at {path}[{idx}]: {node.id_}")
        seen.add(node.id_)
        nodes.append(node)
    return nodes
