"""Security policy CRUD, approval and access evaluation endpoints."""

from typing import Annotated, Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.result_types import Err, Ok
from ...models.access_context import AccessContext, AccessDecision
from ...models.security_policy import (
    PolicyType,
    SecurityPolicy,
    SecurityPolicyCreate,
    SecurityPolicyUpdate,
)
from ...services.security_policy_service import CombinedDecision
from ..dependencies import PolicyServiceDep
from ..response_patterns import DeletedResponse, ErrorResponse, handle_result

router = APIRouter()


class ApprovalRequest(BaseModel):
    """Approval of an approval-gated policy."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    approved_by: str = Field(..., min_length=1, max_length=200)


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def create_policy(
    policy_data: SecurityPolicyCreate,
    response: Response,
    service: PolicyServiceDep,
) -> Union[SecurityPolicy, ErrorResponse]:
    """Create a new security policy."""
    result = await service.create(policy_data)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.get("")
@beartype
async def list_policies(
    response: Response,
    service: PolicyServiceDep,
    policy_type: Annotated[PolicyType | None, Query()] = None,
    active_only: Annotated[bool, Query()] = False,
) -> Union[list[SecurityPolicy], ErrorResponse]:
    """List policies ordered by priority."""
    result = await service.list(policy_type=policy_type, active_only=active_only)
    return handle_result(result, response)


@router.post("/evaluate")
@beartype
async def evaluate_applicable_policies(
    context: AccessContext,
    response: Response,
    service: PolicyServiceDep,
    policy_type: Annotated[PolicyType | None, Query()] = None,
) -> Union[CombinedDecision, ErrorResponse]:
    """Evaluate a request against every effective policy."""
    result = await service.evaluate_applicable(context, policy_type=policy_type)
    return handle_result(result, response)


@router.get("/{policy_id}")
@beartype
async def get_policy(
    policy_id: UUID,
    response: Response,
    service: PolicyServiceDep,
) -> Union[SecurityPolicy, ErrorResponse]:
    """Get a policy by ID."""
    result = await service.get(policy_id)
    return handle_result(result, response)


@router.patch("/{policy_id}")
@beartype
async def update_policy(
    policy_id: UUID,
    policy_update: SecurityPolicyUpdate,
    response: Response,
    service: PolicyServiceDep,
) -> Union[SecurityPolicy, ErrorResponse]:
    """Partially update a policy."""
    result = await service.update(policy_id, policy_update)
    return handle_result(result, response)


@router.delete("/{policy_id}")
@beartype
async def delete_policy(
    policy_id: UUID,
    response: Response,
    service: PolicyServiceDep,
) -> Union[DeletedResponse, ErrorResponse]:
    """Delete a policy."""
    result = await service.delete(policy_id)
    if isinstance(result, Err):
        return handle_result(result, response)
    return handle_result(Ok(DeletedResponse()), response)


@router.post("/{policy_id}/approve")
@beartype
async def approve_policy(
    policy_id: UUID,
    approval: ApprovalRequest,
    response: Response,
    service: PolicyServiceDep,
) -> Union[SecurityPolicy, ErrorResponse]:
    """Approve a policy that requires approval."""
    result = await service.approve(policy_id, approval.approved_by)
    return handle_result(result, response)


@router.post("/{policy_id}/evaluate")
@beartype
async def evaluate_policy(
    policy_id: UUID,
    context: AccessContext,
    response: Response,
    service: PolicyServiceDep,
) -> Union[AccessDecision, ErrorResponse]:
    """Evaluate a single policy against a request."""
    result = await service.evaluate(policy_id, context)
    return handle_result(result, response)
