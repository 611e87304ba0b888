"""Access-control user endpoints: onboarding, attempts, biometrics and reports."""

from datetime import datetime
from typing import Annotated, Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Query, Response, status
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from ...core.result_types import Err, Ok
from ...models.access_control_user import (
    AccessAttempt,
    AccessControlUser,
    AccessControlUserCreate,
    BiometricEnrollment,
    BiometricType,
    Permission,
)
from ...services.access_control import SecurityReport
from ..dependencies import UserServiceDep
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter()

_STRICT = ConfigDict(
    frozen=True,
    extra="forbid",
    validate_assignment=True,
    str_strip_whitespace=True,
    validate_default=True,
)


class AccessCheckResponse(BaseModel):
    model_config = _STRICT

    user_id: UUID
    at: AwareDatetime | None = None
    allowed: bool


class BiometricVerificationRequest(BaseModel):
    model_config = _STRICT

    biometric_type: BiometricType
    template_hash: str = Field(..., min_length=1)


class BiometricVerificationResponse(BaseModel):
    model_config = _STRICT

    verified: bool


class PermissionRemovalResponse(BaseModel):
    model_config = _STRICT

    removed: int = Field(..., ge=0)


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def create_user(
    user_data: AccessControlUserCreate,
    response: Response,
    service: UserServiceDep,
) -> Union[AccessControlUser, ErrorResponse]:
    """Onboard a principal."""
    result = await service.create(user_data)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.get("/{record_id}")
@beartype
async def get_user(
    record_id: UUID,
    response: Response,
    service: UserServiceDep,
) -> Union[AccessControlUser, ErrorResponse]:
    result = await service.get(record_id)
    return handle_result(result, response)


@router.post("/{record_id}/attempts")
@beartype
async def record_access_attempt(
    record_id: UUID,
    attempt: AccessAttempt,
    response: Response,
    service: UserServiceDep,
) -> Union[AccessControlUser, ErrorResponse]:
    """Record an access attempt; repeated failures lock the account."""
    result = await service.record_attempt(record_id, attempt)
    return handle_result(result, response)


@router.post("/{record_id}/unlock")
@beartype
async def unlock_user(
    record_id: UUID,
    response: Response,
    service: UserServiceDep,
) -> Union[AccessControlUser, ErrorResponse]:
    result = await service.unlock(record_id)
    return handle_result(result, response)


@router.get("/{record_id}/report")
@beartype
async def security_report(
    record_id: UUID,
    response: Response,
    service: UserServiceDep,
) -> Union[SecurityReport, ErrorResponse]:
    """Security summary with recommendations."""
    result = await service.security_report(record_id)
    return handle_result(result, response)


@router.get("/{record_id}/access-check")
@beartype
async def access_check(
    record_id: UUID,
    response: Response,
    service: UserServiceDep,
    at: Annotated[datetime | None, Query()] = None,
) -> Union[AccessCheckResponse, ErrorResponse]:
    """Whether the user's schedules grant access at ``at`` (default: now)."""
    result = await service.can_access_at(record_id, at)
    if isinstance(result, Err):
        return handle_result(result, response)
    return handle_result(
        Ok(AccessCheckResponse(user_id=record_id, at=at, allowed=result.unwrap())),
        response,
    )


@router.post("/{record_id}/biometrics", status_code=status.HTTP_201_CREATED)
@beartype
async def enroll_biometric(
    record_id: UUID,
    enrollment: BiometricEnrollment,
    response: Response,
    service: UserServiceDep,
) -> Union[BiometricEnrollment, ErrorResponse]:
    result = await service.enroll_biometric(record_id, enrollment)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.post("/{record_id}/biometrics/verify")
@beartype
async def verify_biometric(
    record_id: UUID,
    verification: BiometricVerificationRequest,
    response: Response,
    service: UserServiceDep,
) -> Union[BiometricVerificationResponse, ErrorResponse]:
    result = await service.verify_biometric(
        record_id, verification.biometric_type, verification.template_hash
    )
    if isinstance(result, Err):
        return handle_result(result, response)
    return handle_result(
        Ok(BiometricVerificationResponse(verified=result.unwrap())), response
    )


@router.post("/{record_id}/permissions")
@beartype
async def grant_permission(
    record_id: UUID,
    permission: Permission,
    response: Response,
    service: UserServiceDep,
) -> Union[AccessControlUser, ErrorResponse]:
    result = await service.add_permission(record_id, permission)
    return handle_result(result, response)


@router.delete("/{record_id}/permissions/{permission_name}")
@beartype
async def revoke_permission(
    record_id: UUID,
    permission_name: str,
    response: Response,
    service: UserServiceDep,
    resource_type: Annotated[str | None, Query()] = None,
    resource_id: Annotated[str | None, Query()] = None,
) -> Union[PermissionRemovalResponse, ErrorResponse]:
    """Revoke matching permissions and report how many were removed."""
    result = await service.remove_permission(
        record_id, permission_name, resource_type, resource_id
    )
    if isinstance(result, Err):
        return handle_result(result, response)
    return handle_result(Ok(PermissionRemovalResponse(removed=result.unwrap())), response)
