"""
Custom exceptions for the pathtree system.
"""


class PathTreeError(Exception):
    """
    Base exception for the pathtree system.
    All custom exceptions in the system should inherit from this.
    """


class ParentNotFoundError(PathTreeError):
    """
    Raised when a node references a parent id that does not exist.

    Nothing is written when this is raised: a node can never be created
    or moved under a non-existent parent.
    """


class StoreError(PathTreeError):
    """
    Raised when a lookup, write or delete against the document store fails.

    Cascades abort on the first StoreError. Writes completed before the
    failure are not rolled back.
    """


class ConfigurationError(PathTreeError):
    """Raised when the path separator can collide with node identifiers."""


class InvalidMoveError(PathTreeError):
    """Raised when a node would become its own ancestor."""


class NodeNotFoundError(PathTreeError):
    """Raised when an operation targets a node that is not stored."""
