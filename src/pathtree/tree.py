import logging
import uuid
from collections.abc import Callable, Sequence

from domain_models.config import TreeConfig
from domain_models.constants import FIELD_ID, FIELD_PARENT, FIELD_PATH, VALID_NODE_ID_PATTERN
from domain_models.manifest import Node
from domain_models.query import AncestorsQuery, ChildrenQuery, TreeQuery
from domain_models.types import IdentifierType, NodeID, Record
from pathtree.engines.ancestors import AncestorResolver
from pathtree.engines.cascade import CascadePropagator
from pathtree.engines.deletion import DeletionHandler
from pathtree.engines.path_builder import PathBuilder, is_ancestor_path, path_level
from pathtree.engines.query import QueryBuilder
from pathtree.engines.tree_builder import TreeReconstructor
from pathtree.exceptions import ConfigurationError, InvalidMoveError, NodeNotFoundError
from pathtree.interfaces import DocumentStore
from pathtree.utils.records import get_id, get_parent, get_path

logger = logging.getLogger(__name__)


class MaterializedPathTree:
    """
    A hierarchy of documents stored with the materialized-path strategy.

    Owns every structural mutation (create, move, remove) and keeps the
    ``path`` of each record consistent with its ``parent``. Reads return
    Node models, or plain records when ``FindOptions.lean`` is set.

    Concurrent moves of overlapping subtrees are not serialized: the store's
    per-record atomicity is the only guarantee.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: TreeConfig | None = None,
        id_factory: Callable[[], NodeID] | None = None,
    ) -> None:
        """
        Initialize the tree.

        Args:
            store: Document collection holding the records.
            config: Tree configuration. Defaults to TreeConfig().
            id_factory: Generates ids for nodes created without one.
                Defaults to uuid4 hex strings for string identifiers.

        Raises:
            ConfigurationError: If the path separator is a legal identifier character.
        """
        self.config = config or TreeConfig()
        self.separator = self.config.path_separator
        if VALID_NODE_ID_PATTERN.match(self.separator):
            msg = (
                f"Path separator {self.separator!r} can appear inside node ids; "
                "use a character outside [a-zA-Z0-9_-]."
            )
            raise ConfigurationError(msg)

        self.store = store
        self.id_factory = id_factory or self._default_id
        self.queries = QueryBuilder(self.separator)
        self.paths = PathBuilder(store, self.config)
        self.cascade = CascadePropagator(store, self.config)
        self.deletion = DeletionHandler(store, self.config)
        self.ancestors = AncestorResolver(store, self.config)
        self.trees = TreeReconstructor(self.separator)

    def _default_id(self) -> NodeID:
        if self.config.id_type is IdentifierType.INTEGER:
            msg = "Integer identifiers are not generated; set Node.id or pass an id_factory."
            raise ValueError(msg)
        return uuid.uuid4().hex

    def _wrap(self, record: Record) -> Node:
        return Node.from_record(record, self.separator)

    def _results(self, records: list[Record], lean: bool | None) -> list[Node] | list[Record]:
        if lean:
            return records
        return [self._wrap(record) for record in records]

    def _load(self, node: Node | Record | NodeID) -> Node:
        """Fetch the stored state of a node."""
        node_id = get_id(node) if isinstance(node, (Node, dict)) else node
        if node_id is None:
            msg = "Node has no id."
            raise NodeNotFoundError(msg)
        record = self.store.find_one({FIELD_ID: node_id})
        if record is None:
            msg = f"Node {node_id} not found."
            raise NodeNotFoundError(msg)
        return self._wrap(record)

    # Mutations

    def create(self, node: Node | Record, parent: Node | Record | None = None) -> Node:
        """
        Insert a new node and compute its path.

        The parent is taken from ``parent`` when it is already loaded (no
        lookup), otherwise ``node.parent`` is looked up in the store.

        Raises:
            ParentNotFoundError: If the parent does not exist. Nothing is written.
        """
        new_node = node if isinstance(node, Node) else self._wrap(node)
        new_node.bind_separator(self.separator)
        if new_node.id is None:
            new_node.id = self.id_factory()
        if parent is not None:
            new_node.parent = get_id(parent)

        reference = parent if parent is not None else new_node.parent
        change = self.paths.resolve(new_node, reference)
        new_node.path = change.path
        new_node.children = None

        self.store.insert(new_node.to_record())
        logger.debug(f"Created node {new_node.id} at {new_node.path!r}")
        return new_node

    def save(self, node: Node | Record) -> Node:
        """
        Create the node if it is new, otherwise move it when its parent changed
        and persist its document fields.

        A parent absent from the input (e.g. a projected record) keeps the
        stored one. The move runs first: nothing is written when the new
        parent does not exist.

        Raises:
            ParentNotFoundError: If the new parent does not exist.
        """
        node_id = get_id(node)
        stored = self.store.find_one({FIELD_ID: node_id}) if node_id is not None else None
        if stored is None:
            return self.create(node)

        current = node if isinstance(node, Node) else self._wrap(node)
        current.bind_separator(self.separator)
        parent_given = FIELD_PARENT in current.model_fields_set
        if parent_given and str(stored.get(FIELD_PARENT)) != str(current.parent):
            self.change_parent(current, current.parent)
        else:
            current.parent = stored.get(FIELD_PARENT)
            current.path = stored.get(FIELD_PATH)

        data = current.data()
        if data:
            self.store.update(current.id, data)
        return current

    def change_parent(
        self, node: Node | Record | NodeID, new_parent: Node | Record | NodeID | None
    ) -> Node:
        """
        Move a node under ``new_parent`` (None makes it a root) and cascade the
        new path to every descendant.

        Blocks until the cascade has completed.

        Raises:
            ParentNotFoundError: If the new parent does not exist.
            InvalidMoveError: If the new parent is the node itself or one of its descendants.
            StoreError: If the cascade fails. Descendants already rewritten keep their new path.
        """
        current = self._load(node)
        new_parent_id = get_id(new_parent) if isinstance(new_parent, (Node, dict)) else new_parent
        if new_parent_id is not None and str(new_parent_id) == str(current.id):
            msg = f"Node {current.id} cannot be its own parent."
            raise InvalidMoveError(msg)

        change = self.paths.resolve(current, new_parent)
        if change.previous_path and is_ancestor_path(
            change.previous_path, change.path, self.separator
        ):
            msg = f"Node {current.id} cannot be moved under its descendant {new_parent_id}."
            raise InvalidMoveError(msg)

        if change.previous_path and change.changed:
            self.cascade.propagate(change.previous_path, change.path)

        self.store.update(current.id, {FIELD_PARENT: new_parent_id, FIELD_PATH: change.path})
        current.parent = new_parent_id
        current.path = change.path
        if isinstance(node, Node):
            node.parent = current.parent
            node.path = current.path
        logger.info(f"Moved node {current.id} under {new_parent_id}: {change.path!r}")
        return current

    def remove(self, node: Node | Record | NodeID) -> int:
        """
        Remove a node following ``config.on_delete``.

        Returns:
            The number of records deleted.
        """
        return self.deletion.remove(self._load(node))

    # Reads

    def get(self, node_id: NodeID) -> Node | None:
        record = self.store.find_one({FIELD_ID: node_id})
        return self._wrap(record) if record is not None else None

    def get_children(
        self, node: Node | Record, query: ChildrenQuery | None = None
    ) -> list[Node] | list[Record]:
        """Immediate children, or every descendant with ``recursive``."""
        query = query or ChildrenQuery()
        filters = self.queries.children_filters(node, query.filters, query.recursive)
        records = self.store.find(filters, query.projection, query.options)
        return self._results(records, query.options.lean)

    def get_parent(self, node: Node | Record) -> Node | None:
        parent_id = get_parent(node)
        if parent_id is None:
            return None
        return self.get(parent_id)

    def get_ancestors(
        self, node: Node | Record, query: AncestorsQuery | None = None
    ) -> list[Node] | list[Record]:
        """Ancestors of one node, root first."""
        return self.get_ancestors_many([node], query)[0]

    def get_ancestors_many(
        self, nodes: Sequence[Node | Record], query: AncestorsQuery | None = None
    ) -> list[list[Node]] | list[list[Record]]:
        """
        Ancestors of several nodes, resolved with a single store lookup.
        One list per input node, in input order.
        """
        query = query or AncestorsQuery()
        lists = self.ancestors.resolve(nodes, query.filters, query.projection, query.options)
        if query.options.lean:
            return lists

        # The same ancestor record is shared by several lists: wrap it once
        wrapped: dict[int, Node] = {}
        return [
            [wrapped.setdefault(id(record), self._wrap(record)) for record in ancestors]
            for ancestors in lists
        ]

    def get_children_tree(
        self, root: Node | Record | None = None, query: TreeQuery | None = None
    ) -> list[Node] | list[Record]:
        """
        Nested forest of the whole collection, or of the subtree below ``root``.

        Results are plain records unless ``wrap_children_tree`` is configured or
        ``FindOptions.lean`` is explicitly False.
        """
        query = query or TreeQuery()
        filters = self.queries.tree_filters(root, query.filters, query.recursive)
        projection = self.queries.tree_projection(query.projection)
        options = self.queries.tree_options(query.options)
        lean = options.lean if options.lean is not None else not self.config.wrap_children_tree

        records = self.store.find(filters, projection, options)
        return self.trees.build(
            self._results(records, lean),
            root=root,
            min_level=query.min_level,
            allow_empty_children=query.allow_empty_children,
        )

    def level(self, node: Node | Record) -> int:
        """Depth of a node: root = 1."""
        return path_level(get_path(node), self.separator)
