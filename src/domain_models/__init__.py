"""
Core domain models and configuration schemas for the pathtree project.
This package contains Pydantic definitions used throughout the system.
"""

from .config import TreeConfig
from .manifest import Node
from .query import AncestorsQuery, ChildrenQuery, FindOptions, TreeQuery
from .types import IdentifierType, OnDelete

__all__ = [
    "AncestorsQuery",
    "ChildrenQuery",
    "FindOptions",
    "IdentifierType",
    "Node",
    "OnDelete",
    "TreeConfig",
    "TreeQuery",
]
