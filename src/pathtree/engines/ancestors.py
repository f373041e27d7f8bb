import logging
from collections.abc import Sequence

from domain_models.config import TreeConfig
from domain_models.constants import FIELD_ID, OP_AND
from domain_models.manifest import Node
from domain_models.query import FindOptions
from domain_models.types import Filters, Projection, Record
from pathtree.engines.path_builder import ancestor_ids
from pathtree.engines.query import QueryBuilder
from pathtree.interfaces import DocumentStore
from pathtree.utils.records import get_path, strip_field

logger = logging.getLogger(__name__)


class AncestorResolver:
    """
    Resolves the ancestors of a batch of nodes with a single store lookup.

    The ancestor ids of every input are read from its path, the union of all
    of them is fetched in one ``find`` and the results are redistributed to
    each input, root first.
    """

    def __init__(self, store: DocumentStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config
        self.queries = QueryBuilder(config.path_separator)

    def resolve(
        self,
        nodes: Sequence[Node | Record],
        filters: Filters | None = None,
        projection: Projection | None = None,
        options: FindOptions | None = None,
    ) -> list[list[Record]]:
        """
        Return one ancestor list per input node, in input order.

        Lists are ordered root first, immediate parent last, unless ``options``
        carries an explicit sort, in which case the store order is kept.
        A root yields an empty list. Ancestors excluded by ``filters`` are
        simply missing from the lists.
        """
        separator = self.config.path_separator
        per_node_ids = [ancestor_ids(get_path(node), separator) for node in nodes]
        results: list[list[Record]] = [[] for _ in nodes]

        # Union of ancestor ids, in first-seen order
        wanted: dict[str, None] = {}
        for ids in per_node_ids:
            wanted.update(dict.fromkeys(ids))
        if not wanted:
            return results

        strip_id = projection is not None and FIELD_ID not in projection
        if strip_id:
            projection = [*projection, FIELD_ID]

        restriction = self.queries.ids_filter(list(wanted))
        if filters and FIELD_ID in filters:
            # Keep the caller's own condition on id alongside the restriction
            merged: Filters = {OP_AND: [filters, restriction]}
        else:
            merged = {**(filters or {}), **restriction}
        found = self.store.find(merged, projection, options)
        logger.debug(f"Resolved {len(found)} ancestors for {len(nodes)} nodes in one lookup.")

        by_id = {str(record[FIELD_ID]): record for record in found}
        if options is not None and options.sort:
            rank = {str(record[FIELD_ID]): position for position, record in enumerate(found)}
            for ids, ancestors in zip(per_node_ids, results, strict=True):
                present = sorted((i for i in ids if i in by_id), key=rank.__getitem__)
                ancestors.extend(by_id[i] for i in present)
        else:
            for ids, ancestors in zip(per_node_ids, results, strict=True):
                ancestors.extend(by_id[i] for i in ids if i in by_id)

        if strip_id:
            for record in found:
                strip_field(record, FIELD_ID)
        return results
