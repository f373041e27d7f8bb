from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain_models.constants import ASCENDING, DEFAULT_MIN_LEVEL, DESCENDING
from domain_models.types import Filters, Projection


class FindOptions(BaseModel):
    """Options of a store ``find`` call (Mongo-like)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sort: dict[str, int] | None = Field(
        default=None, description="Field -> 1 (ascending) or -1 (descending), in priority order."
    )
    limit: int | None = Field(default=None, ge=1, description="Maximum number of records.")
    skip: int | None = Field(default=None, ge=0, description="Number of records to skip.")
    lean: bool | None = Field(
        default=None,
        description="Return plain records instead of Node models. None lets the operation decide.",
    )

    @field_validator("sort", mode="after")
    @classmethod
    def validate_sort(cls, v: dict[str, int] | None) -> dict[str, int] | None:
        if v is None:
            return v
        for field, direction in v.items():
            if direction not in (ASCENDING, DESCENDING):
                msg = f"Sort direction for '{field}' must be 1 or -1 (got {direction})."
                raise ValueError(msg)
        return v


class ChildrenQuery(BaseModel):
    """Arguments of ``get_children``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    filters: Filters = Field(default_factory=dict, description="Additional store filters.")
    projection: Projection | None = Field(default=None, description="Fields to return.")
    options: FindOptions = Field(default_factory=FindOptions)
    recursive: bool = Field(
        default=False, description="Return all descendants instead of the immediate children."
    )


class AncestorsQuery(BaseModel):
    """Arguments of ``get_ancestors`` and ``get_ancestors_many``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    filters: Filters = Field(default_factory=dict, description="Additional store filters.")
    projection: Projection | None = Field(default=None, description="Fields to return.")
    options: FindOptions = Field(default_factory=FindOptions)


class TreeQuery(BaseModel):
    """Arguments of ``get_children_tree``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    filters: Filters = Field(default_factory=dict, description="Additional store filters.")
    projection: Projection | None = Field(default=None, description="Fields to return.")
    options: FindOptions = Field(default_factory=FindOptions)
    min_level: int = Field(
        default=DEFAULT_MIN_LEVEL, ge=1, description="Shallowest level placed at the top."
    )
    recursive: bool = Field(
        default=True, description="Include every descendant, not only the first level."
    )
    allow_empty_children: bool = Field(
        default=True, description="Give every node a children list, even leaves."
    )
