import contextlib
import json
import logging
import re
import shutil
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Final

from sqlalchemy import (
    ColumnElement,
    Select,
    and_,
    create_engine,
    delete,
    false,
    func,
    insert,
    or_,
    select,
    text,
    true,
    update,
)
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from domain_models.config import TreeConfig
from domain_models.constants import (
    ASCENDING,
    DEFAULT_READ_BATCH_SIZE,
    FIELD_CHILDREN,
    FIELD_ID,
    FIELD_PARENT,
    OP_AND,
    OP_EQ,
    OP_IN,
    OP_NE,
    OP_NIN,
    OP_OR,
    STRUCTURAL_FIELDS,
    SUPPORTED_OPERATORS,
    VALID_NODE_ID_PATTERN,
)
from domain_models.query import FindOptions
from domain_models.types import Filters, NodeID, Projection, Record
from pathtree.exceptions import StoreError
from pathtree.utils.serialization import deserialize_record, serialize_record
from pathtree.utils.store_schema import (
    PARENT_INDEX_DDL,
    PATH_INDEX_DDL,
    metadata,
    nodes_table,
)

logger = logging.getLogger(__name__)

# Document field names end up in JSON paths; keep them to plain identifiers
VALID_FIELD_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SqliteDocumentStore:
    """
    A document collection backed by SQLite, implementing the DocumentStore protocol.
    Uses SQLAlchemy Core for robustness and connection pooling.

    Schema:
        id: String PK
        parent: String (parent id, NULL for roots)
        path: String (materialized path)
        content: Text (JSON of every other document field)
    """

    def __init__(
        self,
        db_path: Path | None = None,
        config: TreeConfig | None = None,
        read_batch_size: int = DEFAULT_READ_BATCH_SIZE,
    ) -> None:
        """
        Initialize the store.

        Args:
            db_path: Optional path to the database file. If None, a secure temporary file is created.
            config: Tree configuration (identifier type, pre-existing field flags).
            read_batch_size: Number of rows fetched per round trip while streaming.
        """
        self.config = config or TreeConfig()
        if db_path:
            self.temp_dir = None
            # Security: Resolve to absolute path to handle relative paths and '..' safely
            try:
                self.db_path = db_path.resolve()
            except OSError:
                self.db_path = db_path.absolute()
        else:
            self.temp_dir = tempfile.mkdtemp()
            self.db_path = Path(self.temp_dir) / "tree.db"

        self.read_batch_size = read_batch_size

        db_url = f"sqlite:///{self.db_path}"

        # Cascades write from several worker threads; SQLite serializes writers, WAL keeps readers going.
        try:
            self.engine: Engine = create_engine(
                db_url, pool_size=5, max_overflow=10, pool_timeout=30, pool_recycle=1800
            )
        except Exception as e:
            msg = f"Failed to create database engine: {e}"
            raise StoreError(msg) from e

        self._setup_db()

    def _setup_db(self) -> None:
        """Initialize the database schema."""
        try:
            with self.engine.begin() as conn:
                conn.execute(text("PRAGMA journal_mode=WAL;"))
                conn.execute(text("PRAGMA synchronous=NORMAL;"))
        except SQLAlchemyError as e:
            msg = f"Failed to configure database PRAGMAs: {e}"
            raise StoreError(msg) from e

        self.nodes_table = nodes_table
        try:
            metadata.create_all(self.engine)
            with self.engine.begin() as conn:
                if not self.config.parent_exists:
                    conn.execute(text(PARENT_INDEX_DDL))
                if not self.config.path_exists:
                    conn.execute(text(PATH_INDEX_DDL))
        except SQLAlchemyError as e:
            msg = f"Failed to create database schema: {e}"
            raise StoreError(msg) from e

    def _validate_node_id(self, node_id: NodeID) -> str:
        """Validate node ID format to prevent injection/corruption."""
        node_id_str = str(node_id)
        if not VALID_NODE_ID_PATTERN.match(node_id_str):
            msg = f"Invalid node ID format: {node_id_str}"
            raise ValueError(msg)
        return node_id_str

    def _column(self, field: str) -> ColumnElement[Any]:
        """Structural fields are columns, document fields live in the JSON content."""
        if field in STRUCTURAL_FIELDS:
            return self.nodes_table.c[field]
        if not VALID_FIELD_PATTERN.match(field):
            msg = f"Invalid field name: {field}"
            raise ValueError(msg)
        return func.json_extract(self.nodes_table.c.content, f"$.{field}")

    def _bind(self, field: str, value: Any) -> Any:
        # Ids are stored as text regardless of the declared identifier type
        if field in (FIELD_ID, FIELD_PARENT) and value is not None:
            return str(value)
        return value

    def _operator(self, field: str, op: str, arg: Any) -> ColumnElement[bool]:
        if op not in SUPPORTED_OPERATORS:
            msg = f"Unsupported filter operator: {op}"
            raise ValueError(msg)
        column = self._column(field)
        if op == OP_EQ:
            return column.is_(None) if arg is None else column == self._bind(field, arg)
        if op == OP_NE:
            if arg is None:
                return column.is_not(None)
            return or_(column != self._bind(field, arg), column.is_(None))
        if op == OP_IN:
            return column.in_([self._bind(field, v) for v in arg])
        if op == OP_NIN:
            return or_(column.not_in([self._bind(field, v) for v in arg]), column.is_(None))
        # $startswith: LIKE is case-insensitive in SQLite and '_' is one of its wildcards:
        # compare against the half-open range [prefix, next prefix) instead
        prefix = str(arg)
        if not prefix:
            return true()
        upper = prefix[:-1] + chr(ord(prefix[-1]) + 1)
        return and_(column >= prefix, column < upper)

    def _where(self, filters: Filters) -> ColumnElement[bool]:
        """Compile a filter dictionary into a SQL condition."""
        clauses: list[ColumnElement[bool]] = []
        for field, value in filters.items():
            if field == OP_OR:
                alternatives = [self._where(sub) for sub in value]
                clauses.append(or_(*alternatives) if alternatives else false())
            elif field == OP_AND:
                clauses.extend(self._where(sub) for sub in value)
            elif isinstance(value, dict):
                clauses.extend(self._operator(field, op, arg) for op, arg in value.items())
            else:
                clauses.append(self._operator(field, OP_EQ, value))
        return and_(true(), *clauses)

    def _select(self, filters: Filters) -> Select[Any]:
        return select(
            self.nodes_table.c.id,
            self.nodes_table.c.parent,
            self.nodes_table.c.path,
            self.nodes_table.c.content,
        ).where(self._where(filters))

    def _to_record(self, row: Row[Any], projection: Projection | None) -> Record:
        record = deserialize_record(
            row.id, row.parent, row.path, row.content, self.config.id_type
        )
        if projection is None:
            return record
        return {field: record[field] for field in projection if field in record}

    def find_one(self, filters: Filters) -> Record | None:
        """Retrieve the first record matching the filters."""
        try:
            stmt = self._select(filters).limit(1)
            with self.engine.connect() as conn:
                row = conn.execute(stmt).fetchone()
                if not row:
                    return None
                return self._to_record(row, None)
        except SQLAlchemyError as e:
            msg = f"Failed to retrieve node: {e}"
            raise StoreError(msg) from e

    def find(
        self,
        filters: Filters,
        projection: Projection | None = None,
        options: FindOptions | None = None,
    ) -> list[Record]:
        """Retrieve every record matching the filters."""
        options = options or FindOptions()
        try:
            stmt = self._select(filters)
            for field, direction in (options.sort or {}).items():
                column = self._column(field)
                stmt = stmt.order_by(column.asc() if direction == ASCENDING else column.desc())
            if options.limit:
                stmt = stmt.limit(options.limit)
            if options.skip:
                stmt = stmt.offset(options.skip)

            with self.engine.connect() as conn:
                return [self._to_record(row, projection) for row in conn.execute(stmt)]
        except SQLAlchemyError as e:
            msg = f"Failed to find nodes: {e}"
            raise StoreError(msg) from e

    def stream(self, filters: Filters, projection: Projection | None = None) -> Iterator[Record]:
        """
        Stream matching records.
        Rows are fetched in batches of read_batch_size; the result set is never materialized.
        """
        stmt = self._select(filters)
        try:
            with self.engine.connect() as conn:
                result = conn.execution_options(
                    stream_results=True, yield_per=self.read_batch_size
                ).execute(stmt)
                for row in result:
                    yield self._to_record(row, projection)
        except SQLAlchemyError as e:
            msg = f"Failed to stream nodes: {e}"
            raise StoreError(msg) from e

    def insert(self, record: Record) -> None:
        """Insert a new record."""
        self._validate_node_id(record[FIELD_ID])
        if record.get(FIELD_PARENT) is not None:
            self._validate_node_id(record[FIELD_PARENT])
        values = serialize_record(record)

        try:
            with self.engine.begin() as conn:
                conn.execute(insert(self.nodes_table).values(**values))
        except IntegrityError as e:
            msg = f"Node {record[FIELD_ID]} already exists: {e}"
            raise StoreError(msg) from e
        except SQLAlchemyError as e:
            msg = f"Failed to insert node {record[FIELD_ID]}: {e}"
            raise StoreError(msg) from e

    def update(self, node_id: NodeID, fields: dict[str, Any]) -> None:
        """
        Update fields of an existing record.
        Executes a direct UPDATE without fetching the record first.
        """
        node_id_str = self._validate_node_id(node_id)
        values: dict[str, Any] = {}
        content = self.nodes_table.c.content
        for field, value in fields.items():
            if field == FIELD_ID or field == FIELD_CHILDREN:
                continue
            if field in STRUCTURAL_FIELDS:
                if field == FIELD_PARENT and value is not None:
                    self._validate_node_id(value)
                values[field] = self._bind(field, value)
            elif VALID_FIELD_PATTERN.match(field):
                content = func.json_set(content, f"$.{field}", func.json(json.dumps(value)))
            else:
                msg = f"Invalid field name: {field}"
                raise ValueError(msg)

        if content is not self.nodes_table.c.content:
            values["content"] = content
        if not values:
            return

        stmt = update(self.nodes_table).where(self.nodes_table.c.id == node_id_str).values(**values)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
                if result.rowcount == 0:
                    msg = f"Node {node_id} not found."
                    raise StoreError(msg)
        except SQLAlchemyError as e:
            msg = f"Failed to update node {node_id}: {e}"
            raise StoreError(msg) from e

    def delete_many(self, filters: Filters) -> int:
        """Delete every record matching the filters in a single statement."""
        try:
            stmt = delete(self.nodes_table).where(self._where(filters))
            with self.engine.begin() as conn:
                return conn.execute(stmt).rowcount
        except SQLAlchemyError as e:
            msg = f"Failed to delete nodes: {e}"
            raise StoreError(msg) from e

    def count(self, filters: Filters | None = None) -> int:
        """Efficient count query."""
        try:
            stmt = select(func.count()).select_from(self.nodes_table).where(
                self._where(filters or {})
            )
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar() or 0
        except SQLAlchemyError as e:
            msg = f"Failed to count nodes: {e}"
            raise StoreError(msg) from e

    def close(self) -> None:
        """Close the engine and cleanup temp files."""
        with contextlib.suppress(Exception):
            self.engine.dispose()
        if self.temp_dir:
            with contextlib.suppress(Exception):
                shutil.rmtree(self.temp_dir, ignore_errors=True)

    def __enter__(self) -> "SqliteDocumentStore":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
