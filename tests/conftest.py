from collections.abc import Iterator
from pathlib import Path

import pytest

from domain_models.config import TreeConfig
from domain_models.manifest import Node
from domain_models.types import Record
from pathtree.tree import MaterializedPathTree
from pathtree.utils.store import SqliteDocumentStore

# Shared fixture hierarchy:
#   Adam -> Bob
#        -> Carol -> Dann -> Emily
#   Eden
#   Joe  -> Paul
FAMILY: list[tuple[str, str, str | None]] = [
    ("adam", "Adam", None),
    ("bob", "Bob", "adam"),
    ("carol", "Carol", "adam"),
    ("dann", "Dann", "carol"),
    ("emily", "Emily", "dann"),
    ("eden", "Eden", None),
    ("joe", "Joe", None),
    ("paul", "Paul", "joe"),
]


def build_family(tree: MaterializedPathTree) -> dict[str, Node]:
    """Create the shared hierarchy in insertion order and index it by name."""
    return {
        name: tree.create(Node(id=node_id, name=name, parent=parent))
        for node_id, name, parent in FAMILY
    }


def family_records(separator: str = "#") -> list[Record]:
    """The shared hierarchy as plain records sorted by path, without a store."""
    paths: dict[str, str] = {}
    records: list[Record] = []
    for node_id, name, parent in FAMILY:
        paths[node_id] = f"{paths[parent]}{separator}{node_id}" if parent else node_id
        records.append({"id": node_id, "parent": parent, "path": paths[node_id], "name": name})
    return sorted(records, key=lambda record: record["path"])


def generate_chain(tree: MaterializedPathTree, depth: int, prefix: str = "n") -> list[Node]:
    """Linear hierarchy n0 -> n1 -> ... of the given depth."""
    nodes: list[Node] = []
    parent: Node | None = None
    for i in range(depth):
        node = tree.create(Node(id=f"{prefix}{i}"), parent=parent)
        nodes.append(node)
        parent = node
    return nodes


def names(items: list[Node] | list[Record]) -> list[str]:
    return [item["name"] if isinstance(item, dict) else item.name for item in items]


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SqliteDocumentStore]:
    with SqliteDocumentStore(db_path=tmp_path / "tree.db") as active_store:
        yield active_store


@pytest.fixture
def tree(store: SqliteDocumentStore) -> MaterializedPathTree:
    return MaterializedPathTree(store, TreeConfig())


@pytest.fixture
def family(tree: MaterializedPathTree) -> dict[str, Node]:
    return build_family(tree)
