import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from domain_models.constants import DEFAULT_PATH_SEPARATOR, FIELD_CHILDREN, STRUCTURAL_FIELDS
from domain_models.types import NodeID, Record

# Configure logger
logger = logging.getLogger(__name__)


class Node(BaseModel):
    """
    A record in a materialized-path hierarchy.

    Besides the structural fields, any document field (e.g. ``name``) is accepted
    and kept as extra data.
    """

    model_config = ConfigDict(extra="allow")

    id: NodeID | None = Field(
        default=None, description="Unique identifier. Assigned on creation when missing."
    )
    parent: NodeID | None = Field(
        default=None, description="Identifier of the parent node. None for roots."
    )
    path: str | None = Field(
        default=None,
        description="Ids of all ancestors and the node itself, joined by the path separator.",
    )
    children: list["Node"] | None = Field(
        default=None, description="Nested children, only set by tree reconstruction."
    )

    _separator: str = PrivateAttr(default=DEFAULT_PATH_SEPARATOR)

    @property
    def level(self) -> int:
        """Depth in the hierarchy: number of path segments (root = 1, no path = 0)."""
        return len(self.path.split(self._separator)) if self.path else 0

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def bind_separator(self, separator: str) -> "Node":
        """Attach the separator of the owning tree so that ``level`` is computed correctly."""
        self._separator = separator
        return self

    def data(self) -> Record:
        """Document fields without the structural ones."""
        return {
            key: value
            for key, value in self.model_dump(exclude={FIELD_CHILDREN}).items()
            if key not in STRUCTURAL_FIELDS
        }

    def to_record(self) -> Record:
        """Flat record as stored by a DocumentStore."""
        return self.model_dump(exclude={FIELD_CHILDREN})

    @classmethod
    def from_record(cls, record: Record, separator: str = DEFAULT_PATH_SEPARATOR) -> "Node":
        """Wrap a raw store record. Projected records may lack structural fields."""
        data: dict[str, Any] = dict(record)
        children = data.pop(FIELD_CHILDREN, None)
        node = cls.model_validate(data).bind_separator(separator)
        if children is not None:
            node.children = [
                child if isinstance(child, Node) else cls.from_record(child, separator)
                for child in children
            ]
        return node
