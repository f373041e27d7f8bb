import re
from typing import Final

# Structural fields maintained by the tree engines
FIELD_ID: Final[str] = "id"
FIELD_PARENT: Final[str] = "parent"
FIELD_PATH: Final[str] = "path"
FIELD_CHILDREN: Final[str] = "children"
STRUCTURAL_FIELDS: Final[frozenset[str]] = frozenset({FIELD_ID, FIELD_PARENT, FIELD_PATH})

# Defaults
DEFAULT_PATH_SEPARATOR: Final[str] = "#"
DEFAULT_NUM_WORKERS: Final[int] = 5
DEFAULT_MIN_LEVEL: Final[int] = 1
DEFAULT_READ_BATCH_SIZE: Final[int] = 500

# Sort directions, Mongo style
ASCENDING: Final[int] = 1
DESCENDING: Final[int] = -1

# Allow alphanumeric, underscore, hyphen only to prevent injection
VALID_NODE_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z0-9_\-]+$")

# Filter operators understood by the document stores
OP_EQ: Final[str] = "$eq"
OP_NE: Final[str] = "$ne"
OP_IN: Final[str] = "$in"
OP_NIN: Final[str] = "$nin"
OP_STARTSWITH: Final[str] = "$startswith"
OP_OR: Final[str] = "$or"
OP_AND: Final[str] = "$and"
SUPPORTED_OPERATORS: Final[frozenset[str]] = frozenset(
    {OP_EQ, OP_NE, OP_IN, OP_NIN, OP_STARTSWITH}
)
