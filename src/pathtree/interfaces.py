from collections.abc import Iterator
from typing import Any, Protocol, runtime_checkable

from domain_models.query import FindOptions
from domain_models.types import Filters, NodeID, Projection, Record


@runtime_checkable
class DocumentStore(Protocol):
    """
    Protocol for the flat document collection holding the hierarchy.

    Filters are dictionaries mapping a field to either a literal (equality,
    None meaning "is null") or an operator dict:

        {"parent": "a1"}
        {"path": {"$startswith": "a1#"}}
        {"id": {"$in": ["a1", "b2"]}}
        {"name": {"$ne": "Bob"}}
        {"$or": [{"id": "a1"}, {"path": {"$startswith": "a1#"}}]}
        {"$and": [{"id": {"$ne": "a1"}}, {"id": {"$in": ["a1", "b2"]}}]}

    Fields other than id, parent and path address document data.
    Every failure is reported as a StoreError.
    """

    def find_one(self, filters: Filters) -> Record | None:
        """Return the first record matching the filters, or None."""
        ...

    def find(
        self,
        filters: Filters,
        projection: Projection | None = None,
        options: FindOptions | None = None,
    ) -> list[Record]:
        """Return all matching records, honouring sort, skip and limit."""
        ...

    def stream(self, filters: Filters, projection: Projection | None = None) -> Iterator[Record]:
        """
        Lazily yield matching records.
        Must not materialize the full result set in memory.
        """
        ...

    def insert(self, record: Record) -> None:
        """Insert a new record."""
        ...

    def update(self, node_id: NodeID, fields: dict[str, Any]) -> None:
        """Set the given fields on an existing record."""
        ...

    def delete_many(self, filters: Filters) -> int:
        """Delete every matching record and return how many were removed."""
        ...
