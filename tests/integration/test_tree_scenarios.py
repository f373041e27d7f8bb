from pathlib import Path
from unittest.mock import patch

import pytest

from domain_models.config import TreeConfig
from domain_models.manifest import Node
from domain_models.query import AncestorsQuery, ChildrenQuery, FindOptions, TreeQuery
from domain_models.types import IdentifierType
from pathtree.exceptions import (
    ConfigurationError,
    InvalidMoveError,
    NodeNotFoundError,
    ParentNotFoundError,
)
from pathtree.tree import MaterializedPathTree
from pathtree.utils.store import SqliteDocumentStore
from tests.conftest import build_family, names


def _stored_path(tree: MaterializedPathTree, node_id: str) -> str | None:
    node = tree.get(node_id)
    assert node is not None
    return node.path


class TestCreate:
    def test_paths_and_levels(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        assert family["Adam"].path == "adam"
        assert family["Bob"].path == "adam#bob"
        assert family["Emily"].path == "adam#carol#dann#emily"
        assert family["Paul"].path == "joe#paul"

        assert tree.level(family["Adam"]) == 1
        assert tree.level(family["Dann"]) == 3
        assert family["Emily"].level == 4

    def test_paths_are_persisted(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        assert _stored_path(tree, "dann") == "adam#carol#dann"
        stored = tree.get("dann")
        assert stored is not None
        assert stored.parent == "carol"
        assert stored.name == "Dann"  # type: ignore[attr-defined]

    def test_loaded_parent_is_not_looked_up(
        self, tree: MaterializedPathTree, store: SqliteDocumentStore, family: dict[str, Node]
    ) -> None:
        with patch.object(store, "find_one", wraps=store.find_one) as spy:
            node = tree.create(Node(id="frank", name="Frank"), parent=family["Bob"])

        spy.assert_not_called()
        assert node.path == "adam#bob#frank"
        assert node.parent == "bob"

    def test_create_from_record(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        node = tree.create({"id": "frank", "parent": "eden", "name": "Frank"})
        assert node.path == "eden#frank"

    def test_generated_id(self, tree: MaterializedPathTree) -> None:
        node = tree.create(Node(name="Anonymous"))
        assert isinstance(node.id, str)
        assert len(node.id) == 32
        assert node.path == node.id

    def test_missing_parent_writes_nothing(
        self, tree: MaterializedPathTree, store: SqliteDocumentStore, family: dict[str, Node]
    ) -> None:
        with pytest.raises(ParentNotFoundError, match="ghost"):
            tree.create(Node(id="frank", parent="ghost"))
        assert store.count() == len(family)
        assert tree.get("frank") is None

    def test_save_with_missing_parent_writes_nothing(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        carol = family["Carol"]
        carol.parent = "ghost"
        carol.name = "Changed"  # type: ignore[attr-defined]

        with pytest.raises(ParentNotFoundError, match="ghost"):
            tree.save(carol)

        stored = tree.get("carol")
        assert stored is not None
        assert stored.name == "Carol"  # type: ignore[attr-defined]
        assert stored.parent == "adam"
        assert _stored_path(tree, "dann") == "adam#carol#dann"


class TestMove:
    def test_move_cascades_to_descendants(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        carol = family["Carol"]
        moved = tree.change_parent(carol, family["Bob"])

        assert moved.path == "adam#bob#carol"
        assert carol.path == "adam#bob#carol"
        assert carol.parent == "bob"
        assert _stored_path(tree, "carol") == "adam#bob#carol"
        assert _stored_path(tree, "dann") == "adam#bob#carol#dann"
        assert _stored_path(tree, "emily") == "adam#bob#carol#dann#emily"
        assert [tree.level(tree.get(i)) for i in ("carol", "dann", "emily")] == [3, 4, 5]  # type: ignore[arg-type]

    def test_unrelated_nodes_untouched(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        tree.change_parent("carol", "joe")

        assert _stored_path(tree, "bob") == "adam#bob"
        assert _stored_path(tree, "paul") == "joe#paul"
        assert _stored_path(tree, "emily") == "joe#carol#dann#emily"

    def test_move_to_root(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        moved = tree.change_parent("dann", None)

        assert moved.path == "dann"
        assert moved.parent is None
        assert _stored_path(tree, "emily") == "dann#emily"

    def test_move_is_repeatable(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        tree.change_parent("carol", "bob")
        tree.change_parent("carol", "bob")
        assert _stored_path(tree, "emily") == "adam#bob#carol#dann#emily"

    def test_cycles_are_rejected(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        with pytest.raises(InvalidMoveError, match="own parent"):
            tree.change_parent("carol", "carol")
        with pytest.raises(InvalidMoveError, match="descendant"):
            tree.change_parent("adam", "emily")
        assert _stored_path(tree, "adam") == "adam"

    def test_missing_parent(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        with pytest.raises(ParentNotFoundError):
            tree.change_parent("carol", "ghost")
        assert _stored_path(tree, "dann") == "adam#carol#dann"

    def test_missing_node(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        with pytest.raises(NodeNotFoundError):
            tree.change_parent("ghost", "adam")

    def test_save_moves_when_parent_changes(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        carol = family["Carol"]
        carol.parent = "eden"
        carol.nickname = "Caro"  # type: ignore[attr-defined]

        saved = tree.save(carol)

        assert saved.path == "eden#carol"
        assert _stored_path(tree, "emily") == "eden#carol#dann#emily"
        stored = tree.get("carol")
        assert stored is not None
        assert stored.nickname == "Caro"  # type: ignore[attr-defined]

    def test_save_updates_data_only(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        bob = family["Bob"]
        bob.name = "Robert"  # type: ignore[attr-defined]

        saved = tree.save(bob)

        assert saved.path == "adam#bob"
        stored = tree.get("bob")
        assert stored is not None
        assert stored.name == "Robert"  # type: ignore[attr-defined]

    def test_save_creates_new_nodes(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        saved = tree.save(Node(id="frank", parent="paul"))
        assert saved.path == "joe#paul#frank"

    def test_save_record_without_parent_keeps_it(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        saved = tree.save({"id": "dann", "name": "Daniel"})

        assert saved.parent == "carol"
        assert saved.path == "adam#carol#dann"
        stored = tree.get("dann")
        assert stored is not None
        assert stored.parent == "carol"
        assert stored.path == "adam#carol#dann"
        assert stored.name == "Daniel"  # type: ignore[attr-defined]
        assert _stored_path(tree, "emily") == "adam#carol#dann#emily"

    def test_save_lean_projection_keeps_hierarchy(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        query = ChildrenQuery(projection=["id", "name"], options=FindOptions(lean=True))
        children = tree.get_children(family["Adam"], query)
        (bob,) = [child for child in children if child["id"] == "bob"]
        bob["name"] = "Robert"

        tree.save(bob)

        stored = tree.get("bob")
        assert stored is not None
        assert stored.parent == "adam"
        assert stored.path == "adam#bob"
        assert stored.name == "Robert"  # type: ignore[attr-defined]


class TestRemove:
    def test_cascade_delete(
        self, tree: MaterializedPathTree, store: SqliteDocumentStore, family: dict[str, Node]
    ) -> None:
        deleted = tree.remove(family["Carol"])

        assert deleted == 3
        assert store.count() == 5
        for node_id in ("carol", "dann", "emily"):
            assert tree.get(node_id) is None
        assert tree.get("bob") is not None

    def test_delete_leaf(
        self, tree: MaterializedPathTree, store: SqliteDocumentStore, family: dict[str, Node]
    ) -> None:
        assert tree.remove("emily") == 1
        assert store.count() == 7

    def test_reparent_delete(self, store: SqliteDocumentStore) -> None:
        tree = MaterializedPathTree(store, TreeConfig.reparenting())
        build_family(tree)

        deleted = tree.remove("carol")

        assert deleted == 1
        assert store.count() == 7
        dann = tree.get("dann")
        assert dann is not None
        assert dann.parent == "adam"
        assert dann.path == "adam#dann"
        assert _stored_path(tree, "emily") == "adam#dann#emily"

    def test_reparent_delete_of_root(self, store: SqliteDocumentStore) -> None:
        tree = MaterializedPathTree(store, TreeConfig.reparenting())
        build_family(tree)

        tree.remove("joe")

        paul = tree.get("paul")
        assert paul is not None
        assert paul.parent is None
        assert paul.path == "paul"
        assert paul.level == 1

    def test_reparent_only_cuts_matching_segment(self, store: SqliteDocumentStore) -> None:
        tree = MaterializedPathTree(store, TreeConfig.reparenting())
        tree.create(Node(id="a"))
        tree.create(Node(id="ab", parent="a"))
        tree.create(Node(id="b", parent="ab"))
        tree.create(Node(id="ab2", parent="b"))

        tree.remove("ab")

        assert _stored_path(tree, "b") == "a#b"
        assert _stored_path(tree, "ab2") == "a#b#ab2"

    def test_remove_missing(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        with pytest.raises(NodeNotFoundError):
            tree.remove("ghost")


class TestChildren:
    def test_immediate_children(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        children = tree.get_children(family["Adam"])

        assert sorted(names(children)) == ["Bob", "Carol"]
        assert all(isinstance(child, Node) for child in children)

    def test_filters(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        children = tree.get_children(family["Adam"], ChildrenQuery(filters={"name": "Bob"}))
        assert names(children) == ["Bob"]

    def test_recursive(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        descendants = tree.get_children(family["Adam"], ChildrenQuery(recursive=True))
        assert sorted(names(descendants)) == ["Bob", "Carol", "Dann", "Emily"]

    def test_projection_lean(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        query = ChildrenQuery(
            projection=["name"], options=FindOptions(lean=True, sort={"name": 1})
        )
        assert tree.get_children(family["Adam"], query) == [{"name": "Bob"}, {"name": "Carol"}]

    def test_sort_and_limit(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        query = ChildrenQuery(recursive=True, options=FindOptions(sort={"name": -1}, limit=2))
        assert names(tree.get_children(family["Adam"], query)) == ["Emily", "Dann"]

        query = ChildrenQuery(recursive=True, options=FindOptions(sort={"name": 1}, skip=1))
        assert names(tree.get_children(family["Adam"], query)) == ["Carol", "Dann", "Emily"]

    def test_leaf_has_no_children(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        assert tree.get_children(family["Emily"], ChildrenQuery(recursive=True)) == []

    def test_sibling_prefix_is_not_a_descendant(self, tree: MaterializedPathTree) -> None:
        tree.create(Node(id="a"))
        tree.create(Node(id="a1"))
        tree.create(Node(id="x", parent="a"))
        tree.create(Node(id="y", parent="a1"))
        a = tree.get("a")
        assert a is not None

        descendants = tree.get_children(a, ChildrenQuery(recursive=True))

        assert [child.id for child in descendants] == ["x"]  # type: ignore[union-attr]

    def test_parent(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        parent = tree.get_parent(family["Dann"])
        assert parent is not None
        assert parent.name == "Carol"  # type: ignore[attr-defined]
        assert tree.get_parent(family["Adam"]) is None


class TestAncestors:
    def test_single_node(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        assert names(tree.get_ancestors(family["Emily"])) == ["Adam", "Carol", "Dann"]
        assert tree.get_ancestors(family["Adam"]) == []

    def test_batch_uses_one_lookup(
        self, tree: MaterializedPathTree, store: SqliteDocumentStore, family: dict[str, Node]
    ) -> None:
        nodes = [family["Paul"], family["Emily"], family["Eden"], family["Dann"]]

        with patch.object(store, "find", wraps=store.find) as spy:
            result = tree.get_ancestors_many(nodes)

        assert spy.call_count == 1
        assert [names(chain) for chain in result] == [
            ["Joe"],
            ["Adam", "Carol", "Dann"],
            [],
            ["Adam", "Carol"],
        ]
        # Shared ancestors are the same object across lists
        assert result[1][0] is result[3][0]

    def test_lean_projection(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        query = AncestorsQuery(projection=["name"], options=FindOptions(lean=True))
        assert tree.get_ancestors(family["Dann"], query) == [{"name": "Adam"}, {"name": "Carol"}]

    def test_filtered_ancestors_are_missing(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        query = AncestorsQuery(filters={"name": {"$ne": "Carol"}})
        assert names(tree.get_ancestors(family["Emily"], query)) == ["Adam", "Dann"]

    def test_caller_id_filter_is_kept(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        query = AncestorsQuery(filters={"id": {"$ne": "carol"}})
        assert names(tree.get_ancestors(family["Emily"], query)) == ["Adam", "Dann"]

        query = AncestorsQuery(filters={"id": {"$in": ["adam", "joe"]}})
        result = tree.get_ancestors_many([family["Emily"], family["Paul"]], query)
        assert [names(chain) for chain in result] == [["Adam"], ["Joe"]]


class TestChildrenTree:
    def test_whole_forest(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        forest = tree.get_children_tree()

        assert names(forest) == ["Adam", "Eden", "Joe"]
        adam = forest[0]
        assert isinstance(adam, dict)
        assert names(adam["children"]) == ["Bob", "Carol"]
        dann = adam["children"][1]["children"][0]
        assert names(dann["children"]) == ["Emily"]
        assert forest[1]["children"] == []

    def test_subtree(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        forest = tree.get_children_tree(family["Carol"])

        assert names(forest) == ["Dann"]
        assert names(forest[0]["children"]) == ["Emily"]  # type: ignore[index]

    def test_non_recursive(self, tree: MaterializedPathTree, family: dict[str, Node]) -> None:
        assert names(tree.get_children_tree(query=TreeQuery(recursive=False))) == [
            "Adam",
            "Eden",
            "Joe",
        ]
        assert names(tree.get_children_tree(family["Adam"], TreeQuery(recursive=False))) == [
            "Bob",
            "Carol",
        ]

    def test_caller_sort_is_replaced(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        forest = tree.get_children_tree(query=TreeQuery(options=FindOptions(sort={"name": -1})))
        assert names(forest) == ["Adam", "Eden", "Joe"]

    def test_projection_keeps_structure(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        forest = tree.get_children_tree(query=TreeQuery(projection=["name"]))

        assert set(forest[0]) == {"name", "path", "parent", "children"}  # type: ignore[arg-type]
        assert names(forest[0]["children"]) == ["Bob", "Carol"]  # type: ignore[index]

    def test_filtered_branch_is_dropped(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        forest = tree.get_children_tree(query=TreeQuery(filters={"name": {"$ne": "Carol"}}))

        assert names(forest[0]["children"]) == ["Bob"]  # type: ignore[index]
        assert forest[0]["children"][0]["children"] == []  # type: ignore[index]

    def test_wrapped_models(self, store: SqliteDocumentStore) -> None:
        tree = MaterializedPathTree(store, TreeConfig(wrap_children_tree=True))
        build_family(tree)

        forest = tree.get_children_tree()

        assert all(isinstance(node, Node) for node in forest)
        adam = forest[0]
        assert isinstance(adam, Node)
        assert adam.children is not None
        assert [child.name for child in adam.children] == ["Bob", "Carol"]  # type: ignore[attr-defined]

    def test_lean_option_overrides_config(
        self, tree: MaterializedPathTree, family: dict[str, Node]
    ) -> None:
        forest = tree.get_children_tree(query=TreeQuery(options=FindOptions(lean=False)))
        assert isinstance(forest[0], Node)


class TestConfiguration:
    def test_separator_colliding_with_ids(self, store: SqliteDocumentStore) -> None:
        for separator in ("_", "-", "a", "7"):
            with pytest.raises(ConfigurationError):
                MaterializedPathTree(store, TreeConfig(path_separator=separator))

    def test_custom_separator(self, tmp_path: Path) -> None:
        config = TreeConfig(path_separator=".")
        with SqliteDocumentStore(db_path=tmp_path / "dots.db", config=config) as store:
            tree = MaterializedPathTree(store, config)
            family = build_family(tree)

            assert family["Emily"].path == "adam.carol.dann.emily"
            assert family["Emily"].level == 4
            assert names(tree.get_ancestors(family["Emily"])) == ["Adam", "Carol", "Dann"]

            tree.change_parent("carol", "joe")
            assert _stored_path(tree, "emily") == "joe.carol.dann.emily"

    def test_integer_identifiers(self, tmp_path: Path) -> None:
        config = TreeConfig(id_type=IdentifierType.INTEGER)
        with SqliteDocumentStore(db_path=tmp_path / "ints.db", config=config) as store:
            tree = MaterializedPathTree(store, config)
            tree.create(Node(id=1))
            tree.create(Node(id=2, parent=1))
            child = tree.create(Node(id=3, parent=2))

            assert child.path == "1#2#3"
            stored = tree.get(3)
            assert stored is not None
            assert stored.id == 3
            assert stored.parent == 2
            assert [node.id for node in tree.get_ancestors(stored)] == [1, 2]  # type: ignore[union-attr]

            with pytest.raises(ValueError, match="Integer identifiers"):
                tree.create(Node(parent=1))

    def test_custom_id_factory(self, store: SqliteDocumentStore) -> None:
        ids = iter(["n1", "n2"])
        tree = MaterializedPathTree(store, id_factory=lambda: next(ids))

        root = tree.create(Node())
        child = tree.create(Node(), parent=root)

        assert child.path == "n1#n2"
