import json
from typing import Any

from domain_models.constants import FIELD_CHILDREN, FIELD_ID, FIELD_PARENT, FIELD_PATH
from domain_models.types import IdentifierType, Record


def serialize_record(record: Record) -> dict[str, Any]:
    """
    Split a record into its database columns.

    Structural fields become columns (ids stored as text), every other field
    goes into the JSON content column. Reconstructed children are never stored.

    Raises:
        ValueError: If the document data is not JSON serializable.
    """
    data = {
        key: value
        for key, value in record.items()
        if key not in (FIELD_ID, FIELD_PARENT, FIELD_PATH, FIELD_CHILDREN)
    }
    try:
        content_json = json.dumps(data)
    except TypeError as e:
        msg = f"Node {record.get(FIELD_ID)} contains non JSON-serializable data: {e}"
        raise ValueError(msg) from e

    parent = record.get(FIELD_PARENT)
    return {
        FIELD_ID: str(record[FIELD_ID]),
        FIELD_PARENT: str(parent) if parent is not None else None,
        FIELD_PATH: record.get(FIELD_PATH),
        "content": content_json,
    }


def deserialize_record(
    node_id: str,
    parent: str | None,
    path: str | None,
    content_json: str | None,
    id_type: IdentifierType = IdentifierType.STRING,
) -> Record:
    """
    Helper to rebuild a record from database storage.

    Args:
        node_id: The stored id (text).
        parent: The stored parent id (text) or None.
        path: The materialized path.
        content_json: The JSON string holding the document fields.
        id_type: Declared identifier type, used to coerce id and parent.

    Returns:
        A flat record with structural fields first.

    Raises:
        ValueError: If content is invalid JSON.
        TypeError: If the deserialized content is not a dictionary.
    """
    try:
        data = json.loads(content_json) if content_json else {}
    except json.JSONDecodeError as e:
        msg = f"Failed to decode JSON for node {node_id}: {e}"
        raise ValueError(msg) from e

    if not isinstance(data, dict):
        msg = f"Node {node_id} content is not a JSON object."
        raise TypeError(msg)

    record: Record = {
        FIELD_ID: id_type.coerce(node_id),
        FIELD_PARENT: id_type.coerce(parent),
        FIELD_PATH: path,
    }
    record.update(data)
    return record
