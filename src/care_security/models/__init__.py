"""Domain models package for the care security backend.

This package exports the Pydantic domain models used by the policy engine,
the access-control services and the API.
"""

from .access_context import AccessContext, AccessDecision
from .access_control_user import (
    AccessAttempt,
    AccessCard,
    AccessControlUser,
    AccessControlUserCreate,
    AccessHistory,
    AccessSchedule,
    AuthenticationMethod,
    BiometricEnrollment,
    BiometricType,
    DeviceInfo,
    Permission,
    SecurityClearance,
    SecuritySettings,
    ThreatIntelligence,
    TimeSlot,
)
from .base import BaseModelConfig, IdentifiableModel, MutableModelConfig
from .levels import AccessLevel, ClearanceLevel, DeviceSecurityLevel, ThreatLevel
from .security_incident import (
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    SecurityIncident,
    SecurityIncidentCreate,
    SecurityIncidentUpdate,
)
from .security_policy import (
    DeviceRestrictions,
    EnforcementLevel,
    ExceptionType,
    LocationRestrictions,
    PolicyAction,
    PolicyActions,
    PolicyConditions,
    PolicyException,
    PolicyMetrics,
    PolicyType,
    ResourceRestrictions,
    RiskThresholds,
    RoleRestrictions,
    SecurityPolicy,
    SecurityPolicyCreate,
    SecurityPolicyUpdate,
    TimeRestrictions,
)

__all__ = [
    # Base models
    "BaseModelConfig",
    "MutableModelConfig",
    "IdentifiableModel",
    # Levels
    "AccessLevel",
    "ClearanceLevel",
    "DeviceSecurityLevel",
    "ThreatLevel",
    # Evaluation
    "AccessContext",
    "AccessDecision",
    # Policy models
    "SecurityPolicy",
    "SecurityPolicyCreate",
    "SecurityPolicyUpdate",
    "PolicyType",
    "EnforcementLevel",
    "ExceptionType",
    "PolicyAction",
    "PolicyActions",
    "PolicyConditions",
    "PolicyException",
    "PolicyMetrics",
    "RoleRestrictions",
    "TimeRestrictions",
    "LocationRestrictions",
    "DeviceRestrictions",
    "ResourceRestrictions",
    "RiskThresholds",
    # Access-control user models
    "AccessControlUser",
    "AccessControlUserCreate",
    "AccessAttempt",
    "AccessCard",
    "AccessHistory",
    "AccessSchedule",
    "AuthenticationMethod",
    "BiometricEnrollment",
    "BiometricType",
    "DeviceInfo",
    "Permission",
    "SecurityClearance",
    "SecuritySettings",
    "ThreatIntelligence",
    "TimeSlot",
    # Incident models
    "SecurityIncident",
    "SecurityIncidentCreate",
    "SecurityIncidentUpdate",
    "IncidentType",
    "IncidentSeverity",
    "IncidentStatus",
]
