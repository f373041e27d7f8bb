from pathtree.engines.ancestors import AncestorResolver
from pathtree.engines.cascade import CascadePropagator
from pathtree.engines.deletion import DeletionHandler
from pathtree.engines.path_builder import PathBuilder, PathChange
from pathtree.engines.query import QueryBuilder
from pathtree.engines.tree_builder import TreeReconstructor

__all__ = [
    "AncestorResolver",
    "CascadePropagator",
    "DeletionHandler",
    "PathBuilder",
    "PathChange",
    "QueryBuilder",
    "TreeReconstructor",
]
