"""
Translation of hierarchy requests into store filters, projections and options.

Builders never mutate the caller's filters: they return merged copies.
"""

from domain_models.constants import (
    ASCENDING,
    FIELD_ID,
    FIELD_PARENT,
    FIELD_PATH,
    OP_IN,
    OP_STARTSWITH,
)
from domain_models.manifest import Node
from domain_models.query import FindOptions
from domain_models.types import Filters, NodeID, Projection, Record
from pathtree.engines.path_builder import descendant_prefix
from pathtree.utils.records import get_id, get_path


class QueryBuilder:
    def __init__(self, separator: str) -> None:
        self.separator = separator

    def descendants_filter(self, path: str) -> Filters:
        """Prefix-anchored match on every descendant of ``path``."""
        return {FIELD_PATH: {OP_STARTSWITH: descendant_prefix(path, self.separator)}}

    def children_filter(self, node_id: NodeID | None) -> Filters:
        return {FIELD_PARENT: node_id}

    def ids_filter(self, ids: list[NodeID] | list[str]) -> Filters:
        return {FIELD_ID: {OP_IN: list(ids)}}

    def children_filters(
        self, node: Node | Record, filters: Filters | None, recursive: bool
    ) -> Filters:
        """Filters of ``get_children``: immediate children or all descendants."""
        merged = dict(filters or {})
        if recursive:
            merged.update(self.descendants_filter(_require_path(node)))
        else:
            merged.update(self.children_filter(get_id(node)))
        return merged

    def tree_filters(
        self, root: Node | Record | None, filters: Filters | None, recursive: bool
    ) -> Filters:
        """Filters of ``get_children_tree``."""
        merged = dict(filters or {})
        if recursive:
            if root is not None:
                merged.update(self.descendants_filter(_require_path(root)))
            # A whole-forest query must not be narrowed to the roots
            if FIELD_PARENT in merged and merged[FIELD_PARENT] is None:
                del merged[FIELD_PARENT]
        elif root is not None:
            merged.update(self.children_filter(get_id(root)))
        else:
            merged[FIELD_PARENT] = None
        return merged

    def tree_projection(self, projection: Projection | None) -> Projection | None:
        """Reconstruction needs path and parent whatever the caller selected."""
        if projection is None:
            return None
        augmented = list(projection)
        for field in (FIELD_PATH, FIELD_PARENT):
            if field not in augmented:
                augmented.append(field)
        return augmented

    def tree_options(self, options: FindOptions | None) -> FindOptions:
        """Reconstruction is only correct on path-sorted input: the sort is always replaced."""
        options = options or FindOptions()
        return options.model_copy(update={"sort": {FIELD_PATH: ASCENDING}})


def _require_path(node: Node | Record) -> str:
    path = get_path(node)
    if not path:
        msg = f"Node {get_id(node)} has no path; save it before querying its descendants."
        raise ValueError(msg)
    return path
