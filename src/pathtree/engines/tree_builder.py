import logging
from collections.abc import Iterable
from typing import TypeVar

from domain_models.constants import DEFAULT_MIN_LEVEL
from domain_models.manifest import Node
from domain_models.types import Record
from pathtree.engines.path_builder import is_ancestor_path, path_level
from pathtree.utils.records import get_children, get_id, get_path, set_children

logger = logging.getLogger(__name__)

N = TypeVar("N", Node, Record)


class TreeReconstructor:
    """
    Rebuilds a nested forest from a flat list sorted ascending by path.

    Because the input is path-sorted, the parent of any node is always the
    last node appended one level above it. The forest itself therefore acts
    as the stack: no id lookup is needed and the pass is linear.
    """

    def __init__(self, separator: str) -> None:
        self.separator = separator

    def effective_min_level(self, root: Node | Record | None, min_level: int) -> int:
        """Nodes of a subtree query start one level below the root."""
        if root is None:
            return min_level
        return max(min_level, path_level(get_path(root), self.separator) + 1)

    def build(
        self,
        nodes: Iterable[N],
        root: Node | Record | None = None,
        min_level: int = DEFAULT_MIN_LEVEL,
        allow_empty_children: bool = True,
    ) -> list[N]:
        """
        Nest ``nodes`` (sorted by path) into a forest.

        Args:
            nodes: Flat records or models, ascending by path.
            root: Optional subtree root; shifts ``min_level`` below it.
            min_level: Level of the nodes placed at the top of the forest.
            allow_empty_children: Give every placed node an empty children list.
                When False, children lists only exist on nodes that have children.

        Returns:
            The top-level nodes, each carrying its nested children.

        Nodes whose parent slot is missing (an ancestor was filtered out) are
        dropped, as are nodes above ``min_level``.
        """
        top_level = self.effective_min_level(root, min_level)
        forest: list[N] = []

        for node in nodes:
            level = path_level(get_path(node), self.separator)
            if level < top_level:
                logger.debug(f"Tree node {get_id(node)} above level {top_level}, skipped.")
                continue

            parent: N | None = None
            siblings: list[N] = forest
            for _ in range(level - top_level):
                parent = siblings[-1] if siblings else None
                if parent is None:
                    break
                siblings = get_children(parent) or []

            if level > top_level and (
                parent is None
                # The slot belongs to a cousin when the real parent was filtered out
                or not is_ancestor_path(get_path(parent) or "", get_path(node) or "", self.separator)
            ):
                logger.debug(f"Tree node {get_id(node)} filtered out. Level: {level}")
                continue

            if parent is not None:
                siblings = get_children(parent)
                if siblings is None:
                    siblings = set_children(parent, [])
            if allow_empty_children and get_children(node) is None:
                set_children(node, [])
            siblings.append(node)

        return forest
