import logging
import threading

from domain_models.config import TreeConfig
from domain_models.constants import FIELD_ID, FIELD_PATH
from domain_models.types import Record
from pathtree.engines.query import QueryBuilder
from pathtree.interfaces import DocumentStore
from pathtree.utils.stream_worker import stream_worker

logger = logging.getLogger(__name__)


class CascadePropagator:
    """
    Rewrites the paths of all descendants after a node moved.

    Descendants are streamed from the store and rewritten by a bounded pool of
    workers. Each rewrite only depends on the descendant's own stored path, so
    the order in which workers finish does not matter.
    """

    def __init__(self, store: DocumentStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config
        self.queries = QueryBuilder(config.path_separator)

    def propagate(self, previous_path: str, new_path: str) -> int:
        """
        Replace the ``previous_path`` prefix by ``new_path`` in every descendant.

        Blocks until every descendant is processed or the first write fails.
        Writes already done are kept on failure.

        Returns:
            The number of descendants actually rewritten. Descendants already
            carrying the right path are left untouched.
        """
        lock = threading.Lock()
        rewritten = 0

        def rewrite(descendant: Record) -> None:
            nonlocal rewritten
            current = descendant[FIELD_PATH]
            updated = new_path + current[len(previous_path) :]
            if updated == current:
                return
            self.store.update(descendant[FIELD_ID], {FIELD_PATH: updated})
            with lock:
                rewritten += 1

        descendants = self.store.stream(
            self.queries.descendants_filter(previous_path), projection=[FIELD_ID, FIELD_PATH]
        )
        visited = stream_worker(descendants, self.config.num_workers, rewrite)

        logger.info(
            f"Cascaded path change {previous_path!r} -> {new_path!r}: "
            f"{rewritten} of {visited} descendants rewritten."
        )
        return rewritten
