"""Security incident business logic service."""

import logging
from uuid import UUID, uuid4

from beartype import beartype

from ..core.clock import Clock, SystemClock
from ..core.repository import Repository
from ..core.result_types import Err, Ok, Result
from ..models.security_incident import (
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    SecurityIncident,
    SecurityIncidentCreate,
    SecurityIncidentUpdate,
)
from .audit import AuditEvent, AuditEventType, AuditSink

logger = logging.getLogger(__name__)

INCIDENT_NOT_FOUND = "Security incident not found"


class SecurityIncidentService:
    """Service for recording and triaging security incidents."""

    def __init__(
        self,
        repository: Repository[SecurityIncident],
        audit: AuditSink,
        clock: Clock | None = None,
    ) -> None:
        """Initialize incident service."""
        self._repository = repository
        self._audit = audit
        self._clock = clock or SystemClock()

    async def _record(self, incident: SecurityIncident, action: str) -> None:
        await self._audit.record(
            AuditEvent(
                timestamp=self._clock.now(),
                event_type=AuditEventType.SECURITY_INCIDENT,
                action=action,
                resource=str(incident.id),
                user_id=incident.reported_by,
                event_data={
                    "severity": incident.severity.value,
                    "status": incident.status.value,
                },
            )
        )

    @beartype
    async def create(
        self, incident_data: SecurityIncidentCreate
    ) -> Result[SecurityIncident, str]:
        """Report a new incident."""
        now = self._clock.now()
        try:
            incident = SecurityIncident(
                id=uuid4(),
                created_at=now,
                updated_at=now,
                **incident_data.model_dump(),
            )
        except ValueError as e:
            return Err(f"Validation failed: {e}")

        await self._repository.add(incident)
        await self._record(incident, "incident_reported")
        if incident.severity in (IncidentSeverity.HIGH, IncidentSeverity.CRITICAL):
            logger.warning(
                "%s severity incident reported: %s",
                incident.severity.value.capitalize(),
                incident.title,
            )
        return Ok(incident)

    @beartype
    async def get(self, incident_id: UUID) -> Result[SecurityIncident, str]:
        """Get incident by ID."""
        incident = await self._repository.get(incident_id)
        if incident is None:
            return Err(INCIDENT_NOT_FOUND)
        return Ok(incident)

    @beartype
    async def list(
        self,
        status: IncidentStatus | None = None,
        severity: IncidentSeverity | None = None,
        incident_type: IncidentType | None = None,
    ) -> Result[list[SecurityIncident], str]:
        """List incidents, newest first, with optional filters."""

        def matches(incident: SecurityIncident) -> bool:
            return (
                (status is None or incident.status is status)
                and (severity is None or incident.severity is severity)
                and (incident_type is None or incident.incident_type is incident_type)
            )

        incidents = await self._repository.list(matches)
        incidents.sort(key=lambda i: i.occurred_at, reverse=True)
        return Ok(incidents)

    @beartype
    async def update(
        self, incident_id: UUID, incident_update: SecurityIncidentUpdate
    ) -> Result[SecurityIncident, str]:
        """Apply a partial update."""
        existing = await self._repository.get(incident_id)
        if existing is None:
            return Err(INCIDENT_NOT_FOUND)

        now = self._clock.now()
        changes = incident_update.model_dump(exclude_unset=True)
        merged = existing.model_dump()
        merged.update(changes)
        merged["updated_at"] = now
        finished = (IncidentStatus.RESOLVED, IncidentStatus.CLOSED)
        if merged["status"] in finished and merged["resolved_at"] is None:
            merged["resolved_at"] = now
        elif merged["status"] not in finished:
            merged["resolved_at"] = None

        try:
            incident = SecurityIncident.model_validate(merged)
        except ValueError as e:
            return Err(f"Validation failed: {e}")

        await self._repository.update(incident)
        await self._record(incident, "incident_updated")
        return Ok(incident)

    @beartype
    async def resolve(
        self, incident_id: UUID, resolution: str
    ) -> Result[SecurityIncident, str]:
        """Mark an incident resolved with the given resolution notes."""
        existing = await self._repository.get(incident_id)
        if existing is None:
            return Err(INCIDENT_NOT_FOUND)
        if not existing.is_open:
            return Err("Security incident is already resolved")
        return await self.update(
            incident_id,
            SecurityIncidentUpdate(status=IncidentStatus.RESOLVED, resolution=resolution),
        )

    @beartype
    async def delete(self, incident_id: UUID) -> Result[bool, str]:
        """Delete an incident."""
        if not await self._repository.delete(incident_id):
            return Err(INCIDENT_NOT_FOUND)
        return Ok(True)
