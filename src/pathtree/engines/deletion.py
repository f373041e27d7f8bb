import logging

from domain_models.config import TreeConfig
from domain_models.constants import FIELD_ID, FIELD_PARENT, FIELD_PATH, OP_OR
from domain_models.manifest import Node
from domain_models.types import OnDelete, Record
from pathtree.engines.path_builder import descendant_prefix
from pathtree.engines.query import QueryBuilder
from pathtree.interfaces import DocumentStore
from pathtree.utils.records import get_id, get_parent, get_path
from pathtree.utils.stream_worker import stream_worker

logger = logging.getLogger(__name__)


class DeletionHandler:
    """
    Removes a node according to the configured ``on_delete`` mode.

    DELETE removes the node and its whole subtree with one predicate.
    REPARENT removes only the node: its children are attached to its former
    parent and the node's segment is cut out of every descendant path.

    Failures abort the operation and are surfaced. A reparent interrupted
    half-way leaves some children or paths not yet rewritten.
    """

    def __init__(self, store: DocumentStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config
        self.queries = QueryBuilder(config.path_separator)

    def remove(self, target: Node | Record) -> int:
        """
        Remove ``target`` and return the number of records deleted.
        """
        target_id = get_id(target)
        if target_id is None:
            msg = "Cannot remove a node without an id."
            raise ValueError(msg)

        target_path = get_path(target)
        if not target_path:
            # Never placed in the hierarchy: nothing hangs below it
            return self.store.delete_many({FIELD_ID: target_id})

        if self.config.on_delete is OnDelete.REPARENT:
            return self._reparent(target_id, get_parent(target), target_path)
        return self._delete_subtree(target_id, target_path)

    def _delete_subtree(self, target_id: object, target_path: str) -> int:
        deleted = self.store.delete_many(
            {
                OP_OR: [
                    {FIELD_ID: target_id},
                    self.queries.descendants_filter(target_path),
                ]
            }
        )
        logger.info(f"Deleted node {target_id} and its subtree ({deleted} records).")
        return deleted

    def _reparent(self, target_id: object, new_parent: object, target_path: str) -> int:
        separator = self.config.path_separator

        def promote(child: Record) -> None:
            self.store.update(child[FIELD_ID], {FIELD_PARENT: new_parent})

        children = self.store.stream(
            self.queries.children_filter(target_id), projection=[FIELD_ID]
        )
        promoted = stream_worker(children, self.config.num_workers, promote)

        # Every descendant path starts with the target path: cut that segment out
        prefix = descendant_prefix(target_path, separator)
        kept_prefix = target_path[: -len(str(target_id))]

        def collapse(descendant: Record) -> None:
            path = descendant[FIELD_PATH]
            self.store.update(descendant[FIELD_ID], {FIELD_PATH: kept_prefix + path[len(prefix) :]})

        descendants = self.store.stream(
            self.queries.descendants_filter(target_path), projection=[FIELD_ID, FIELD_PATH]
        )
        collapsed = stream_worker(descendants, self.config.num_workers, collapse)

        deleted = self.store.delete_many({FIELD_ID: target_id})
        logger.info(
            f"Removed node {target_id}: {promoted} children promoted to {new_parent}, "
            f"{collapsed} descendant paths collapsed."
        )
        return deleted
