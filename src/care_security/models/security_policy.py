"""Security policy domain models.

A policy is a named, versioned rule: structured conditions evaluated against
an :class:`~care_security.models.access_context.AccessContext`, the actions
it yields when those conditions hold, bypass exceptions, and running
evaluation metrics.
"""

import re
from datetime import datetime, time
from enum import Enum
from uuid import UUID

from beartype import beartype
from pydantic import AwareDatetime, Field, field_validator, model_validator

from .base import BaseModelConfig, IdentifiableModel
from .levels import ClearanceLevel, DeviceSecurityLevel

_HHMM = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


class PolicyType(str, Enum):
    """Category tag of a security policy."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    ACCESS_CONTROL = "access_control"
    DATA_PROTECTION = "data_protection"
    NETWORK_SECURITY = "network_security"
    DEVICE_SECURITY = "device_security"
    COMPLIANCE = "compliance"


class EnforcementLevel(str, Enum):
    """How strictly a denial is honoured when several policies apply."""

    ADVISORY = "advisory"
    MANDATORY = "mandatory"
    CRITICAL = "critical"


class ExceptionType(str, Enum):
    """Kinds of policy bypass entries."""

    USER = "user"
    GROUP = "group"
    RESOURCE = "resource"
    TIME_RANGE = "time_range"


class PolicyAction(str, Enum):
    """Actions a policy can emit, in their stable reporting order."""

    ALLOW = "allow"
    DENY = "deny"
    REQUIRE_MFA = "require_mfa"
    REQUIRE_BIOMETRIC = "require_biometric"
    REQUIRE_APPROVAL = "require_approval"
    LOG_EVENT = "log_event"
    SEND_ALERT = "send_alert"
    BLOCK_USER = "block_user"
    QUARANTINE_DEVICE = "quarantine_device"
    ESCALATE_TO_ADMIN = "escalate_to_admin"


# Conditions


@beartype
class RoleRestrictions(BaseModelConfig):
    """Role and group allow-lists; an empty list does not restrict."""

    allowed_roles: list[str] = Field(default_factory=list)
    allowed_groups: list[str] = Field(default_factory=list)


@beartype
class TimeRestrictions(BaseModelConfig):
    """Daily time window plus permitted days of week (0 = Sunday)."""

    start_time: str = Field(..., description="Window start, HH:MM")
    end_time: str = Field(..., description="Window end, HH:MM")
    days_of_week: list[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4, 5, 6],
        description="Permitted days, 0 = Sunday through 6 = Saturday",
    )
    timezone: str = Field(default="UTC", min_length=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock_time(cls, v: str) -> str:
        """Times must be zero-padded 24-hour HH:MM."""
        if not _HHMM.match(v):
            raise ValueError(f"Invalid time {v!r}, expected HH:MM")
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: list[int]) -> list[int]:
        """Days must lie in 0..6."""
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Invalid day of week {day}, expected 0-6")
        return v

    @property
    def start(self) -> time:
        return time.fromisoformat(self.start_time)

    @property
    def end(self) -> time:
        return time.fromisoformat(self.end_time)


@beartype
class LocationRestrictions(BaseModelConfig):
    """IP address (plain or CIDR) and country allow/block lists."""

    allowed_ips: list[str] | None = None
    blocked_ips: list[str] | None = None
    allowed_countries: list[str] | None = None
    blocked_countries: list[str] | None = None


@beartype
class DeviceRestrictions(BaseModelConfig):
    """Device type, posture and verification requirements."""

    allowed_device_types: list[str] | None = None
    required_security_level: DeviceSecurityLevel | None = None
    biometric_required: bool = False
    mfa_required: bool = False


@beartype
class ResourceRestrictions(BaseModelConfig):
    """Resource allow/block lists and permitted resource types."""

    allowed_resources: list[str] | None = None
    blocked_resources: list[str] | None = None
    resource_types: list[str] | None = None


@beartype
class RiskThresholds(BaseModelConfig):
    """Upper bounds on risk indicators and the minimum clearance."""

    max_risk_score: float | None = Field(default=None, ge=0, le=100)
    required_security_clearance: ClearanceLevel | None = None
    max_suspicious_activity_score: float | None = Field(default=None, ge=0, le=100)


@beartype
class PolicyConditions(BaseModelConfig):
    """All condition categories; an absent category does not restrict."""

    role_restrictions: RoleRestrictions | None = None
    time_restrictions: TimeRestrictions | None = None
    location_restrictions: LocationRestrictions | None = None
    device_restrictions: DeviceRestrictions | None = None
    resource_restrictions: ResourceRestrictions | None = None
    risk_thresholds: RiskThresholds | None = None


# Actions, exceptions and metrics


@beartype
class PolicyActions(BaseModelConfig):
    """Action flags emitted when every condition holds."""

    allow: bool = False
    deny: bool = False
    require_mfa: bool = False
    require_biometric: bool = False
    require_approval: bool = False
    log_event: bool = False
    send_alert: bool = False
    block_user: bool = False
    quarantine_device: bool = False
    escalate_to_admin: bool = False
    custom_actions: list[str] = Field(default_factory=list)

    @beartype
    def enabled(self) -> list[str]:
        """Names of the enabled flags in stable order, then custom actions."""
        names = [action.value for action in PolicyAction if getattr(self, action.value)]
        return names + list(self.custom_actions)


@beartype
class PolicyException(BaseModelConfig):
    """A bypass-to-allow entry."""

    exception_type: ExceptionType
    user_id: str | None = None
    user_group: str | None = None
    resource: str | None = None
    starts_at: AwareDatetime | None = None
    ends_at: AwareDatetime | None = None
    reason: str | None = Field(default=None, max_length=500)
    approved_by: str = Field(..., min_length=1)
    approved_at: AwareDatetime

    @model_validator(mode="after")
    def validate_target(self) -> "PolicyException":
        """Each exception type needs its matching target field."""
        required = {
            ExceptionType.USER: self.user_id,
            ExceptionType.GROUP: self.user_group,
            ExceptionType.RESOURCE: self.resource,
        }
        if self.exception_type in required and not required[self.exception_type]:
            raise ValueError(
                f"{self.exception_type.value} exception requires a target value"
            )
        if self.exception_type is ExceptionType.TIME_RANGE:
            if self.starts_at is None or self.ends_at is None:
                raise ValueError("time_range exception requires starts_at and ends_at")
            if self.ends_at < self.starts_at:
                raise ValueError("time_range exception ends before it starts")
        return self


@beartype
class PolicyMetrics(BaseModelConfig):
    """Running evaluation counters (write-only telemetry)."""

    total_evaluations: int = Field(default=0, ge=0)
    allowed_count: int = Field(default=0, ge=0)
    denied_count: int = Field(default=0, ge=0)
    mfa_required_count: int = Field(default=0, ge=0)
    alert_count: int = Field(default=0, ge=0)
    average_evaluation_time_ms: float = Field(default=0.0, ge=0)
    effectiveness_percentage: float = Field(default=0.0, ge=0, le=100)
    last_evaluated_at: AwareDatetime | None = None


# Policy


@beartype
class SecurityPolicyBase(BaseModelConfig):
    """Attributes shared by policy creation and the stored policy."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    policy_type: PolicyType
    tags: list[str] = Field(default_factory=list)
    priority: int = Field(default=100, ge=0, le=10_000)
    enforcement_level: EnforcementLevel = EnforcementLevel.MANDATORY
    is_active: bool = True
    effective_date: AwareDatetime
    expiry_date: AwareDatetime | None = None
    conditions: PolicyConditions = Field(default_factory=PolicyConditions)
    actions: PolicyActions = Field(default_factory=PolicyActions)
    exceptions: list[PolicyException] = Field(default_factory=list)
    requires_approval: bool = False
    created_by: str | None = None

    @model_validator(mode="after")
    def validate_window(self) -> "SecurityPolicyBase":
        """Expiry must follow the effective date."""
        if self.expiry_date is not None and self.expiry_date <= self.effective_date:
            raise ValueError("Expiry date must be after effective date")
        return self


@beartype
class SecurityPolicyCreate(SecurityPolicyBase):
    """Payload for creating a policy."""


@beartype
class SecurityPolicyUpdate(BaseModelConfig):
    """Partial update; every field is optional."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    tags: list[str] | None = None
    priority: int | None = Field(default=None, ge=0, le=10_000)
    enforcement_level: EnforcementLevel | None = None
    is_active: bool | None = None
    effective_date: AwareDatetime | None = None
    expiry_date: AwareDatetime | None = None
    conditions: PolicyConditions | None = None
    actions: PolicyActions | None = None
    exceptions: list[PolicyException] | None = None
    requires_approval: bool | None = None

    @model_validator(mode="after")
    def validate_at_least_one_field(self) -> "SecurityPolicyUpdate":
        """Ensure at least one field is provided for update."""
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


@beartype
class SecurityPolicy(SecurityPolicyBase, IdentifiableModel):
    """Stored security policy."""

    version: int = Field(default=1, ge=1)
    metrics: PolicyMetrics = Field(default_factory=PolicyMetrics)
    approved_by: str | None = None
    approved_at: AwareDatetime | None = None

    @beartype
    def is_effective(self, now: datetime) -> bool:
        """Active and inside the effective/expiry window."""
        if not self.is_active:
            return False
        if now < self.effective_date:
            return False
        if self.expiry_date is not None and now > self.expiry_date:
            return False
        return True

    @beartype
    def is_pending(self) -> bool:
        """Approval-gated policy that nobody has approved yet."""
        return self.requires_approval and not self.approved_by

    @beartype
    def is_approved(self) -> bool:
        return self.requires_approval and bool(self.approved_by)
