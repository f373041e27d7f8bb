import logging
from dataclasses import dataclass

from domain_models.config import TreeConfig
from domain_models.constants import FIELD_ID, FIELD_PATH
from domain_models.manifest import Node
from domain_models.types import NodeID, Record
from pathtree.exceptions import ParentNotFoundError
from pathtree.interfaces import DocumentStore
from pathtree.utils.records import get_id, get_path

logger = logging.getLogger(__name__)


def build_path(node_id: NodeID, parent_path: str | None, separator: str) -> str:
    """
    Build the materialized path of a node.

    Examples:
        >>> build_path("c", None, "#")
        'c'
        >>> build_path("c", "a#b", "#")
        'a#b#c'
    """
    if not parent_path:
        return str(node_id)
    return f"{parent_path}{separator}{node_id}"


def path_level(path: str | None, separator: str) -> int:
    """Number of segments in a path. Root = 1, missing path = 0."""
    return len(path.split(separator)) if path else 0


def ancestor_ids(path: str | None, separator: str) -> list[str]:
    """Ids of all ancestors, root first, without the node itself."""
    if not path:
        return []
    return path.split(separator)[:-1]


def descendant_prefix(path: str, separator: str) -> str:
    """
    Prefix shared by every descendant path.

    The trailing separator anchors the match at a segment boundary, so that
    ``A1#...`` is never taken for a descendant of ``A``.
    """
    return f"{path}{separator}"


def is_ancestor_path(ancestor_path: str, path: str, separator: str) -> bool:
    return path.startswith(descendant_prefix(ancestor_path, separator))


@dataclass(frozen=True)
class PathChange:
    """Result of a path computation: the value before and after."""

    previous_path: str | None
    path: str

    @property
    def changed(self) -> bool:
        return self.previous_path != self.path


class PathBuilder:
    """
    Computes the path of a node that is being created or re-parented.
    """

    def __init__(self, store: DocumentStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config

    def resolve_parent_path(self, parent: Node | Record | NodeID) -> str:
        """
        Path of the parent, looked up in the store unless it is already loaded.

        Raises:
            ParentNotFoundError: If the parent id does not exist.
        """
        if isinstance(parent, (Node, dict)):
            if get_path(parent):
                return str(get_path(parent))
            parent_id = get_id(parent)
            if parent_id is None:
                msg = "Parent node has no id."
                raise ParentNotFoundError(msg)
        else:
            parent_id = parent

        record = self.store.find_one({FIELD_ID: parent_id})
        if record is None or not record.get(FIELD_PATH):
            msg = f"Parent node {parent_id} not found."
            raise ParentNotFoundError(msg)
        return str(record[FIELD_PATH])

    def resolve(self, node: Node, parent: Node | Record | NodeID | None) -> PathChange:
        """
        Compute the new path of ``node`` under ``parent`` (None for a root).

        The node itself is not modified; the previous path is recorded in the
        returned PathChange for the cascade.
        """
        if node.id is None:
            msg = "Cannot build a path for a node without an id."
            raise ValueError(msg)

        if parent is None:
            new_path = build_path(node.id, None, self.config.path_separator)
        else:
            parent_path = self.resolve_parent_path(parent)
            new_path = build_path(node.id, parent_path, self.config.path_separator)

        logger.debug(f"Node {node.id}: path {node.path!r} -> {new_path!r}")
        return PathChange(previous_path=node.path, path=new_path)

