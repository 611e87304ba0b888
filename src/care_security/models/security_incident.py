"""Security incident domain models."""

from enum import Enum

from beartype import beartype
from pydantic import AwareDatetime, Field, model_validator

from .base import BaseModelConfig, IdentifiableModel


class IncidentType(str, Enum):
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    DATA_BREACH = "data_breach"
    SYSTEM_COMPROMISE = "system_compromise"
    MALWARE = "malware"
    POLICY_VIOLATION = "policy_violation"
    OTHER = "other"


class IncidentSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    CLOSED = "closed"


_FINISHED = (IncidentStatus.RESOLVED, IncidentStatus.CLOSED)


@beartype
class SecurityIncidentBase(BaseModelConfig):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    incident_type: IncidentType
    severity: IncidentSeverity
    status: IncidentStatus = IncidentStatus.OPEN
    reported_by: str = Field(..., min_length=1)
    assigned_to: str | None = None
    occurred_at: AwareDatetime
    resolved_at: AwareDatetime | None = None
    resolution: str | None = Field(default=None, max_length=5000)


@beartype
class SecurityIncidentCreate(SecurityIncidentBase):
    """Payload for reporting an incident."""


@beartype
class SecurityIncidentUpdate(BaseModelConfig):
    """Partial update; every field is optional."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=5000)
    severity: IncidentSeverity | None = None
    status: IncidentStatus | None = None
    assigned_to: str | None = None
    resolution: str | None = Field(default=None, max_length=5000)

    @model_validator(mode="after")
    def validate_at_least_one_field(self) -> "SecurityIncidentUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


@beartype
class SecurityIncident(SecurityIncidentBase, IdentifiableModel):
    """Stored incident."""

    @model_validator(mode="after")
    def validate_resolution(self) -> "SecurityIncident":
        """Resolved and closed incidents carry their resolution time."""
        if self.status in _FINISHED and self.resolved_at is None:
            raise ValueError("Resolved incidents must have a resolution timestamp")
        if self.resolved_at is not None and self.resolved_at < self.occurred_at:
            raise ValueError("Incident cannot be resolved before it occurred")
        return self

    @property
    def is_open(self) -> bool:
        return self.status not in _FINISHED
