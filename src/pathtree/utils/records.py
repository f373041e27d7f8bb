"""
Uniform access to nodes whether they are Node models or plain store records.
"""

from typing import Any

from domain_models.constants import FIELD_CHILDREN, FIELD_ID, FIELD_PARENT, FIELD_PATH
from domain_models.manifest import Node
from domain_models.types import NodeID, Record


def get_field(item: Node | Record, field: str) -> Any:
    if isinstance(item, dict):
        return item.get(field)
    return getattr(item, field, None)


def get_id(item: Node | Record) -> NodeID | None:
    return get_field(item, FIELD_ID)


def get_parent(item: Node | Record) -> NodeID | None:
    return get_field(item, FIELD_PARENT)


def get_path(item: Node | Record) -> str | None:
    return get_field(item, FIELD_PATH)


def get_children(item: Node | Record) -> list[Any] | None:
    return get_field(item, FIELD_CHILDREN)


def set_children(item: Node | Record, children: list[Any]) -> list[Any]:
    if isinstance(item, dict):
        item[FIELD_CHILDREN] = children
    else:
        item.children = children
    return children


def strip_field(item: Node | Record, field: str) -> None:
    """Drop a field from a plain record. Models keep their declared fields."""
    if isinstance(item, dict):
        item.pop(field, None)
