"""Typed evaluation input and output for the policy engine."""

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig
from .levels import ClearanceLevel, DeviceSecurityLevel


@beartype
class AccessContext(BaseModelConfig):
    """Runtime facts about a single access request.

    Every field is optional; a condition that inspects a missing field
    decides for itself whether absence passes or fails.
    """

    user_id: str | None = None
    user_roles: list[str] = Field(default_factory=list)
    user_groups: list[str] = Field(default_factory=list)
    ip_address: str | None = None
    country: str | None = None
    device_type: str | None = None
    device_security_level: DeviceSecurityLevel | None = None
    biometric_verified: bool = False
    mfa_verified: bool = False
    resource: str | None = None
    resource_type: str | None = None
    risk_score: float | None = Field(default=None, ge=0, le=100)
    security_clearance: ClearanceLevel | None = None
    suspicious_activity_score: float | None = Field(default=None, ge=0, le=100)
    correlation_id: str | None = Field(default=None, max_length=200)


@beartype
class AccessDecision(BaseModelConfig):
    """Outcome of evaluating a policy against an :class:`AccessContext`."""

    allowed: bool
    actions: list[str] = Field(default_factory=list)
    reason: str | None = None

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(allowed=False, actions=["deny"], reason=reason)

    @classmethod
    def allow(cls, reason: str) -> "AccessDecision":
        return cls(allowed=True, actions=["allow"], reason=reason)
