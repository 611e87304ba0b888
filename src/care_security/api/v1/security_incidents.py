"""Security incident reporting and triage endpoints."""

from typing import Annotated, Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.result_types import Err, Ok
from ...models.security_incident import (
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    SecurityIncident,
    SecurityIncidentCreate,
    SecurityIncidentUpdate,
)
from ..dependencies import IncidentServiceDep
from ..response_patterns import DeletedResponse, ErrorResponse, handle_result

router = APIRouter()


class ResolutionRequest(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    resolution: str = Field(..., min_length=1, max_length=5000)


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def report_incident(
    incident_data: SecurityIncidentCreate,
    response: Response,
    service: IncidentServiceDep,
) -> Union[SecurityIncident, ErrorResponse]:
    """Report a security incident."""
    result = await service.create(incident_data)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.get("")
@beartype
async def list_incidents(
    response: Response,
    service: IncidentServiceDep,
    incident_status: Annotated[IncidentStatus | None, Query(alias="status")] = None,
    severity: Annotated[IncidentSeverity | None, Query()] = None,
    incident_type: Annotated[IncidentType | None, Query()] = None,
) -> Union[list[SecurityIncident], ErrorResponse]:
    """List incidents, newest first."""
    result = await service.list(
        status=incident_status, severity=severity, incident_type=incident_type
    )
    return handle_result(result, response)


@router.get("/{incident_id}")
@beartype
async def get_incident(
    incident_id: UUID,
    response: Response,
    service: IncidentServiceDep,
) -> Union[SecurityIncident, ErrorResponse]:
    result = await service.get(incident_id)
    return handle_result(result, response)


@router.patch("/{incident_id}")
@beartype
async def update_incident(
    incident_id: UUID,
    incident_update: SecurityIncidentUpdate,
    response: Response,
    service: IncidentServiceDep,
) -> Union[SecurityIncident, ErrorResponse]:
    result = await service.update(incident_id, incident_update)
    return handle_result(result, response)


@router.post("/{incident_id}/resolve")
@beartype
async def resolve_incident(
    incident_id: UUID,
    resolution: ResolutionRequest,
    response: Response,
    service: IncidentServiceDep,
) -> Union[SecurityIncident, ErrorResponse]:
    """Resolve an open incident."""
    result = await service.resolve(incident_id, resolution.resolution)
    return handle_result(result, response)


@router.delete("/{incident_id}")
@beartype
async def delete_incident(
    incident_id: UUID,
    response: Response,
    service: IncidentServiceDep,
) -> Union[DeletedResponse, ErrorResponse]:
    result = await service.delete(incident_id)
    if isinstance(result, Err):
        return handle_result(result, response)
    return handle_result(Ok(DeletedResponse()), response)
