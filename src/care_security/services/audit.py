"""Audit trail for access decisions and security-relevant changes.

The service layer only depends on the :class:`AuditSink` protocol. The
bundled :class:`LoggingAuditSink` writes events through the standard logger
and keeps a bounded window of recent events for inspection.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID, uuid4

from beartype import beartype
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class AuditEventType(str, Enum):
    """Types of audit events."""

    ACCESS_GRANTED = "access_granted"
    ACCESS_DENIED = "access_denied"
    POLICY_CHANGE = "policy_change"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    SECURITY_INCIDENT = "security_incident"


class AuditEvent(BaseModel):
    """Immutable audit event."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: AwareDatetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: AuditEventType
    action: str = Field(..., min_length=1, max_length=200)
    resource: str | None = Field(default=None, max_length=500)
    user_id: str | None = None
    correlation_id: str | None = None
    decision: str | None = None
    reason: str | None = None
    event_data: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class AuditSink(Protocol):
    """Receiver of audit events."""

    async def record(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Audit sink backed by the ``care_security.audit`` logger."""

    def __init__(self, max_events: int = 1000) -> None:
        """Initialize with a bounded in-memory window."""
        self._logger = logging.getLogger("care_security.audit")
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    @beartype
    async def record(self, event: AuditEvent) -> None:
        """Log the event and retain it in the recent-events window."""
        self._events.append(event)
        level = (
            logging.WARNING
            if event.event_type
            in (AuditEventType.ACCESS_DENIED, AuditEventType.ACCOUNT_LOCKED)
            else logging.INFO
        )
        self._logger.log(
            level,
            "%s action=%s resource=%s user=%s correlation=%s decision=%s reason=%s",
            event.event_type.value,
            event.action,
            event.resource,
            event.user_id,
            event.correlation_id,
            event.decision,
            event.reason,
        )

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)
