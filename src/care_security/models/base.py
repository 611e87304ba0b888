"""Base Pydantic model configuration for all domain models.

Value objects are immutable; aggregates that are mutated in place by the
services (the access-control user record) derive from
:class:`MutableModelConfig` and are still validated on every assignment.
"""

from uuid import UUID

from beartype import beartype
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


@beartype
class BaseModelConfig(BaseModel):
    """Base model with strict configuration for all domain entities.

    Enforces:
    - Immutability (frozen=True)
    - No extra fields allowed (extra="forbid")
    - Validation on assignment
    - Automatic whitespace stripping
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )


@beartype
class MutableModelConfig(BaseModel):
    """Base model for aggregates updated in place."""

    model_config = ConfigDict(
        frozen=False,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )


@beartype
class TimestampedModel(BaseModelConfig):
    """Base model with timestamp fields."""

    created_at: AwareDatetime = Field(
        ..., description="Timestamp when the entity was created"
    )
    updated_at: AwareDatetime = Field(
        ..., description="Timestamp when the entity was last updated"
    )


@beartype
class IdentifiableModel(TimestampedModel):
    """Base model with UUID identifier and timestamps."""

    id: UUID = Field(..., description="Unique identifier for the entity")
