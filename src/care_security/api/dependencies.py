"""FastAPI dependencies exposing the services wired by the application factory."""

from typing import Annotated

from beartype import beartype
from fastapi import Depends, Request

from ..core.config import Settings
from ..services.access_control_user_service import AccessControlUserService
from ..services.security_incident_service import SecurityIncidentService
from ..services.security_policy_service import SecurityPolicyService


@beartype
def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


@beartype
def get_policy_service(request: Request) -> SecurityPolicyService:
    """Provide the security policy service."""
    return request.app.state.policy_service


@beartype
def get_incident_service(request: Request) -> SecurityIncidentService:
    """Provide the security incident service."""
    return request.app.state.incident_service


@beartype
def get_user_service(request: Request) -> AccessControlUserService:
    """Provide the access-control user service."""
    return request.app.state.user_service


AppSettings = Annotated[Settings, Depends(get_app_settings)]
PolicyServiceDep = Annotated[SecurityPolicyService, Depends(get_policy_service)]
IncidentServiceDep = Annotated[SecurityIncidentService, Depends(get_incident_service)]
UserServiceDep = Annotated[AccessControlUserService, Depends(get_user_service)]
