from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from manu_node.config import Config
from manu_node.node.entities import Node
from manu_node.storage import (
    AmbiguousError,
    NodeStore,
    NodeStoreError,
    NotFoundError,
    SerializationError,
    StorageIOError,
)


def _node(id_: str, title: str, **kwargs) -> Node:
    kwargs.setdefault("created_at", datetime(2026, 1, 1, 8, 0, 0, tzinfo=UTC))
    return Node(id_=id_, title=title, **kwargs)


def _seed(store: NodeStore, *titles: str) -> list[Node]:
    nodes = [_node(f"n{idx}", title) for idx, title in enumerate(titles, start=1)]
    store.save(nodes)
    return nodes


def test_fresh_store_loads_empty_collection(tmp_path: Path) -> None:
    store = NodeStore(tmp_path / "data")

    assert store.load() == []
    assert not store.path.exists()


def test_store_creates_nested_data_dir(tmp_path: Path) -> None:
    data_dir = tmp_path / "a" / "b" / "data"
    store = NodeStore(data_dir)

    assert data_dir.is_dir()
    assert store.path == data_dir / "nodes.json"


def test_store_reports_unusable_data_dir(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(StorageIOError, match="failed to create data directory"):
        NodeStore(blocker / "data")


@pytest.mark.parametrize("content", ["", "  \n\t"])
def test_empty_file_loads_empty_collection(tmp_path: Path, content: str) -> None:
    store = NodeStore(tmp_path)
    store.path.write_text(content, encoding="utf-8")

    assert store.load() == []


def test_save_then_load_round_trips_content_and_order(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    nodes = [
        _node(
            "20260101080000",
            "Pump A",
            description="Main pump",
            operations=["Cut", "Weld"],
            address="Site/Area/Line/Cell",
        ),
        _node("b", "Valve B", created_at=datetime(2025, 12, 31, 23, 0, 0, tzinfo=UTC)),
        _node("a", "Tank Ç", description="ünïcode"),
    ]

    store.save(nodes)
    loaded = store.load()

    assert loaded == nodes
    assert [n.id_ for n in loaded] == ["20260101080000", "b", "a"]
    assert store.load() == loaded


def test_saved_file_is_indented_json_with_on_disk_field_names(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A")

    raw = store.path.read_text(encoding="utf-8")
    assert raw.startswith("[\n  {\n")

    decoded = json.loads(raw)
    assert isinstance(decoded, list)
    assert list(decoded[0]) == [
        "id",
        "title",
        "description",
        "operations",
        "uns_address",
        "created_at",
        "updated_at",
    ]
    assert decoded[0]["created_at"] == "2026-01-01T08:00:00Z"


def test_load_rejects_invalid_json(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    store.path.write_text("[{not json", encoding="utf-8")

    with pytest.raises(SerializationError, match="Invalid JSON"):
        store.load()


def test_load_rejects_non_list_document(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    store.path.write_text('{"id": "n1"}', encoding="utf-8")

    with pytest.raises(SerializationError, match="expected a JSON array"):
        store.load()


def test_load_rejects_invalid_node(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    store.path.write_text(
        json.dumps([{"id": "n1", "title": "", "created_at": "2026-01-01T00:00:00Z"}]),
        encoding="utf-8",
    )

    with pytest.raises(SerializationError, match=r"Invalid node at .*\[0\]"):
        store.load()


def test_load_accepts_null_operations_and_nanosecond_timestamps(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    store.path.write_text(
        json.dumps(
            [
                {
                    "id": "20250101120000",
                    "title": "Pump A",
                    "description": "",
                    "operations": None,
                    "uns_address": "",
                    "created_at": "2025-01-01T12:00:00.123456789+01:00",
                    "updated_at": "2025-01-01T12:00:00.123456789+01:00",
                }
            ],
            indent=2,
        ),
        encoding="utf-8",
    )

    [node] = store.load()

    assert node.id_ == "20250101120000"
    assert node.operations == []
    store.save_node(node.model_copy(update={"description": "Main pump"}))
    assert store.get_node("20250101120000").description == "Main pump"


def test_load_keeps_operations_verbatim(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    payload = _node("n1", "Pump A").to_json_dict()
    payload["operations"] = [" Cut ", "Weld"]
    store.path.write_text(json.dumps([payload]), encoding="utf-8")

    [node] = store.load()
    assert node.operations == [" Cut ", "Weld"]

    store.save([node])
    assert json.loads(store.path.read_text(encoding="utf-8"))[0]["operations"] == [
        " Cut ",
        "Weld",
    ]


def test_load_rejects_empty_id(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    payload = _node("n1", "Pump A").to_json_dict()
    payload["id"] = ""
    store.path.write_text(json.dumps([payload]), encoding="utf-8")

    with pytest.raises(SerializationError, match="id must not be empty"):
        store.load()


def test_load_rejects_duplicate_ids(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    payload = [_node("n1", "Pump A").to_json_dict(), _node("n1", "Valve B").to_json_dict()]
    store.path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(SerializationError, match="Duplicate node id"):
        store.load()


def test_serialization_error_is_a_value_error(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    store.path.write_text("nope", encoding="utf-8")

    with pytest.raises(ValueError):
        store.load()


def test_save_refuses_duplicate_ids_and_keeps_file(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A")
    before = store.path.read_bytes()

    with pytest.raises(SerializationError, match="duplicate node id"):
        store.save([_node("x", "One"), _node("x", "Two")])

    assert store.path.read_bytes() == before


def test_unreadable_file_raises_storage_io_error(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    store.path.mkdir()

    with pytest.raises(StorageIOError, match="failed to read nodes file"):
        store.load()


def test_failed_write_raises_storage_io_error_and_cleans_up(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    store.path.mkdir()

    with pytest.raises(StorageIOError, match="failed to write nodes file"):
        store.save([_node("n1", "Pump A")])

    assert list(tmp_path.glob(".nodes.json.*.tmp")) == []


def test_save_node_appends_new_and_replaces_existing_in_place(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A", "Valve B", "Tank C")

    store.save_node(_node("n4", "Mixer D"))
    replacement = _node("n2", "Valve B2", operations=["Open"])
    store.save_node(replacement)

    loaded = store.load()
    assert [n.id_ for n in loaded] == ["n1", "n2", "n3", "n4"]
    assert loaded[1] == replacement


def test_get_node_by_exact_id(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    nodes = _seed(store, "Pump A", "Valve B")

    assert store.get_node("n2") == nodes[1]
    with pytest.raises(NotFoundError, match="node with ID N2 not found"):
        store.get_node("N2")


def test_get_node_by_title_ignores_case(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    nodes = _seed(store, "Pump A", "Valve B")

    assert store.get_node_by_title("pump a") == nodes[0]
    assert store.get_node_by_title("VALVE B") == nodes[1]
    with pytest.raises(NotFoundError, match="node with title 'Tank C' not found"):
        store.get_node_by_title("Tank C")


def test_ambiguous_title_is_surfaced_but_ids_still_resolve(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    nodes = _seed(store, "Pump A", "PUMP a", "Valve B")

    with pytest.raises(AmbiguousError, match="multiple nodes found") as exc_info:
        store.get_node_by_title("pump A")
    assert exc_info.value.ids == ["n1", "n2"]

    assert store.get_node("n1") == nodes[0]
    assert store.get_node("n2") == nodes[1]


def test_get_node_by_id_or_title_prefers_id(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    # A node titled like another node's id.
    nodes = _seed(store, "Pump A", "n1")

    assert store.get_node_by_id_or_title("n1") == nodes[0]
    assert store.get_node_by_id_or_title("pump a") == nodes[0]
    with pytest.raises(NotFoundError):
        store.get_node_by_id_or_title("missing")


def test_get_node_by_id_or_title_only_falls_back_on_not_found(
    tmp_path: Path, monkeypatch
) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A")
    title_lookups: list[str] = []

    def _broken_get_node(id_: str) -> Node:
        raise SerializationError("broken")

    def _record_title_lookup(title: str) -> Node:
        title_lookups.append(title)
        raise AssertionError("title lookup must not run")

    monkeypatch.setattr(store, "get_node", _broken_get_node)
    monkeypatch.setattr(store, "get_node_by_title", _record_title_lookup)

    with pytest.raises(SerializationError, match="broken"):
        store.get_node_by_id_or_title("Pump A")
    assert title_lookups == []


def test_is_title_unique_is_case_insensitive(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A", "Valve B")

    assert store.is_title_unique("pump a", "") is False
    assert store.is_title_unique("Tank C", "") is True
    assert store.is_title_unique("Tank C") is True


def test_is_title_unique_excludes_given_id(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A", "Valve B")

    assert store.is_title_unique("PUMP A", "n1") is True
    assert store.is_title_unique("Pump A", "n2") is False


def test_is_title_unique_on_empty_store(tmp_path: Path) -> None:
    assert NodeStore(tmp_path).is_title_unique("anything") is True


def test_update_node_preserves_id_and_created_at(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A", "Valve B")
    original = store.get_node("n1")

    payload = Node(
        id_="other-id",
        title="Pump A (rebuilt)",
        description="new",
        operations=["Mill", "Drill"],
        address="Site/B",
        created_at=datetime(2026, 5, 1, 0, 0, 0, tzinfo=UTC),
        updated_at=datetime(2026, 5, 2, 0, 0, 0, tzinfo=UTC),
    )
    returned = store.update_node("n1", payload)

    stored = store.get_node("n1")
    assert stored == returned
    assert stored.id_ == original.id_
    assert stored.created_at == original.created_at
    assert stored.title == payload.title
    assert stored.description == payload.description
    assert stored.operations == payload.operations
    assert stored.address == payload.address
    assert stored.updated_at == payload.updated_at
    assert [n.id_ for n in store.load()] == ["n1", "n2"]
    with pytest.raises(NotFoundError):
        store.get_node("other-id")


def test_update_node_keeps_updated_at_not_before_created_at(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    created_at = datetime(2026, 1, 5, 0, 0, 0, tzinfo=UTC)
    store.save([_node("n1", "Pump A", created_at=created_at)])

    payload = Node(
        title="Pump A",
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
        updated_at=datetime(2025, 6, 1, tzinfo=UTC),
    )
    stored = store.update_node("n1", payload)

    assert stored.created_at == created_at
    assert stored.updated_at == created_at


def test_update_missing_node_raises_and_writes_nothing(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A")
    before = store.path.read_bytes()

    with pytest.raises(NotFoundError, match="node with ID missing not found"):
        store.update_node("missing", _node("missing", "Ghost"))

    assert store.path.read_bytes() == before


def test_delete_node_preserves_order_of_remaining(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A", "Valve B", "Tank C")

    store.delete_node("n2")

    assert [n.id_ for n in store.load()] == ["n1", "n3"]


def test_delete_missing_node_raises_and_leaves_collection(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    nodes = _seed(store, "Pump A", "Valve B")
    before = store.path.read_bytes()

    with pytest.raises(NotFoundError):
        store.delete_node("missing-id")

    assert store.path.read_bytes() == before
    assert store.load() == nodes


def test_delete_last_node_leaves_empty_list(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)
    _seed(store, "Pump A")

    store.delete_node("n1")

    assert store.load() == []
    assert json.loads(store.path.read_text(encoding="utf-8")) == []


def test_all_store_errors_share_a_base(tmp_path: Path) -> None:
    store = NodeStore(tmp_path)

    with pytest.raises(NodeStoreError):
        store.get_node("missing")


def test_store_from_config_uses_configured_file(tmp_path: Path) -> None:
    config = Config(data_dir=tmp_path / "state", nodes_file="plant.json")
    store = NodeStore.from_config(config)

    assert store.path == config.nodes_path
    assert store.path == (tmp_path / "state" / "plant.json").resolve()
