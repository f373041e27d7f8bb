from enum import StrEnum
from typing import Any, TypeAlias

# NodeID is opaque to the engines: a string (default) or an integer,
# depending on TreeConfig.id_type. Paths always hold its string form.
NodeID: TypeAlias = int | str

# A raw document as exchanged with a DocumentStore.
# Structural keys: "id", "parent", "path". Everything else is document data.
# e.g., {"id": "a1", "parent": None, "path": "a1", "name": "Adam"}
Record: TypeAlias = dict[str, Any]

# Store-level predicate, see pathtree.interfaces for the supported operators.
# e.g., {"parent": "a1", "name": {"$in": ["Bob", "Carol"]}}
Filters: TypeAlias = dict[str, Any]

# Field selection. None means "all fields".
Projection: TypeAlias = list[str]


class OnDelete(StrEnum):
    """What happens to the subtree of a removed node."""

    DELETE = "delete"  # remove the whole subtree
    REPARENT = "reparent"  # promote children to the removed node's parent


class IdentifierType(StrEnum):
    """Python type of node identifiers."""

    STRING = "str"
    INTEGER = "int"

    def coerce(self, value: Any) -> NodeID | None:
        """Convert a stored identifier (always text in paths) back to its declared type."""
        if value is None:
            return None
        if self is IdentifierType.INTEGER:
            return int(value)
        return str(value)
