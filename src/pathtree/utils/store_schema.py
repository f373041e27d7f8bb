from typing import Final

from sqlalchemy import (
    Column,
    MetaData,
    String,
    Table,
    Text,
)

# Constants for DB Schema
TABLE_NODES: Final[str] = "nodes"
COL_ID: Final[str] = "id"
COL_PARENT: Final[str] = "parent"  # Parent id, NULL for roots
COL_PATH: Final[str] = "path"  # Materialized path
COL_CONTENT: Final[str] = "content"  # Stores JSON of the document fields

# Structural indexes are optional: hosts that declare parent/path themselves manage them
PARENT_INDEX_DDL: Final[str] = (
    f"CREATE INDEX IF NOT EXISTS idx_nodes_parent ON {TABLE_NODES} ({COL_PARENT})"
)
PATH_INDEX_DDL: Final[str] = (
    f"CREATE INDEX IF NOT EXISTS idx_nodes_path ON {TABLE_NODES} ({COL_PATH})"
)

# Define schema using SQLAlchemy Core
metadata = MetaData()
nodes_table = Table(
    TABLE_NODES,
    metadata,
    Column(COL_ID, String, primary_key=True),
    Column(COL_PARENT, String, nullable=True),
    Column(COL_PATH, String, nullable=True),
    Column(COL_CONTENT, Text, nullable=False, default="{}"),
)
