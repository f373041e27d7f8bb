"""
pathtree: materialized-path hierarchies over a flat document collection.
This is the root package containing the tree repository, engines and stores.
"""

from domain_models.config import TreeConfig
from domain_models.manifest import Node
from pathtree.tree import MaterializedPathTree
from pathtree.utils.store import SqliteDocumentStore

__all__ = ["MaterializedPathTree", "Node", "SqliteDocumentStore", "TreeConfig"]
