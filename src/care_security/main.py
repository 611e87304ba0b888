"""Care Security Backend - Main Application Module."""

import logging

import uvicorn
from beartype import beartype
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from . import __version__
from .api.v1 import router as v1_router
from .core.clock import Clock, SystemClock
from .core.config import Settings, get_settings
from .core.logging_utils import configure_logging
from .core.repository import InMemoryRepository
from .models.access_control_user import AccessControlUser
from .models.security_incident import SecurityIncident
from .models.security_policy import SecurityPolicy
from .services.access_control import AccessControlService
from .services.access_control_user_service import AccessControlUserService
from .services.audit import LoggingAuditSink
from .services.policy_engine import PolicyEngine
from .services.security_incident_service import SecurityIncidentService
from .services.security_policy_service import SecurityPolicyService

logger = logging.getLogger(__name__)


class APIInfo(BaseModel):
    """Root endpoint payload."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    name: str
    version: str
    status: str
    environment: str


@beartype
def create_app(settings: Settings | None = None, clock: Clock | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings
        clock: Time source shared by every service (defaults to UTC wall time)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description="Security policy evaluation and access control for care homes",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    audit = LoggingAuditSink()
    engine = PolicyEngine(clock, enforce_approval=settings.enforce_policy_approval)
    app.state.settings = settings
    app.state.audit = audit
    app.state.policy_service = SecurityPolicyService(
        InMemoryRepository[SecurityPolicy](), engine, audit, clock
    )
    app.state.incident_service = SecurityIncidentService(
        InMemoryRepository[SecurityIncident](), audit, clock
    )
    app.state.user_service = AccessControlUserService(
        InMemoryRepository[AccessControlUser](),
        AccessControlService(clock, settings),
        audit,
        clock,
        history_capacity=settings.access_history_capacity,
    )

    app.include_router(v1_router)

    @app.get("/")
    async def root() -> APIInfo:
        """Root endpoint returning API information."""
        return APIInfo(
            name=settings.app_name,
            version=__version__,
            status="operational",
            environment=settings.api_env,
        )

    logger.info("Created %s in %s mode", settings.app_name, settings.api_env)
    return app


@beartype
def main() -> None:
    """Run the main application entry point."""
    settings = get_settings()
    uvicorn.run(
        "care_security.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="info" if not settings.is_production else "error",
    )


if __name__ == "__main__":
    main()
