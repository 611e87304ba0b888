"""Service layer: the policy engine, access-control logic and their stores."""

from .access_control import AccessControlService, AccessPattern, SecurityReport
from .access_control_user_service import AccessControlUserService
from .audit import AuditEvent, AuditEventType, AuditSink, LoggingAuditSink
from .policy_engine import PolicyEngine, update_metrics
from .security_incident_service import SecurityIncidentService
from .security_policy_service import (
    CombinedDecision,
    PolicyEvaluation,
    SecurityPolicyService,
)

__all__ = [
    "AccessControlService",
    "AccessControlUserService",
    "AccessPattern",
    "AuditEvent",
    "AuditEventType",
    "AuditSink",
    "CombinedDecision",
    "LoggingAuditSink",
    "PolicyEngine",
    "PolicyEvaluation",
    "SecurityIncidentService",
    "SecurityPolicyService",
    "SecurityReport",
    "update_metrics",
]
