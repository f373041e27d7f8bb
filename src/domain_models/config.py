import os
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain_models.constants import DEFAULT_NUM_WORKERS, DEFAULT_PATH_SEPARATOR
from domain_models.types import IdentifierType, OnDelete


def _safe_getenv(key: str, default: str) -> str:
    """Safely get environment variable with fallback."""
    val = os.getenv(key)
    if val is None or not val.strip():
        return default
    return val


class TreeConfig(BaseModel):
    """
    Configuration of a materialized-path hierarchy.

    All options are fixed at initialization. Defaults are defined directly in the
    model or via default_factory using os.getenv.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path_separator: str = Field(
        default_factory=lambda: _safe_getenv("PATHTREE_PATH_SEPARATOR", DEFAULT_PATH_SEPARATOR),
        description="Single character joining the ids of a path. Must never occur inside an id.",
    )
    on_delete: OnDelete = Field(
        default_factory=lambda: OnDelete(_safe_getenv("PATHTREE_ON_DELETE", OnDelete.DELETE)),
        description="'delete' removes the whole subtree, 'reparent' promotes the children.",
    )
    num_workers: int = Field(
        default_factory=lambda: int(
            _safe_getenv("PATHTREE_NUM_WORKERS", str(DEFAULT_NUM_WORKERS))
        ),
        ge=1,
        description="Maximum number of concurrent writes during cascades.",
    )
    id_type: IdentifierType = Field(
        default=IdentifierType.STRING, description="Python type of node identifiers."
    )
    parent_exists: bool = Field(
        default=False,
        description="The host schema already declares (and indexes) the parent field.",
    )
    path_exists: bool = Field(
        default=False,
        description="The host schema already declares (and indexes) the path field.",
    )
    wrap_children_tree: bool = Field(
        default=False,
        description="Return Node models instead of plain records from get_children_tree.",
    )

    @field_validator("path_separator", mode="after")
    @classmethod
    def validate_path_separator(cls, v: str) -> str:
        """The separator is a single, visible character."""
        if len(v) != 1:
            msg = f"path_separator must be a single character (got {v!r})."
            raise ValueError(msg)
        if v.isspace():
            msg = "path_separator cannot be whitespace."
            raise ValueError(msg)
        return v

    @classmethod
    def default(cls) -> Self:
        """
        Returns the default configuration using Pydantic defaults.
        """
        return cls()

    @classmethod
    def reparenting(cls) -> Self:
        """
        Returns a configuration that keeps subtrees alive when a node is removed.
        """
        return cls(on_delete=OnDelete.REPARENT)
