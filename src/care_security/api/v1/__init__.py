"""API v1 router aggregation.

This module combines all v1 API routers into a single router
that can be mounted on the main FastAPI application.
"""

from fastapi import APIRouter

from .access_control import router as access_control_router
from .health import router as health_router
from .security_incidents import router as security_incidents_router
from .security_policies import router as security_policies_router

# Create main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(health_router, tags=["health"])
router.include_router(
    security_policies_router, prefix="/security/policies", tags=["security-policies"]
)
router.include_router(
    security_incidents_router, prefix="/security/incidents", tags=["security-incidents"]
)
router.include_router(
    access_control_router, prefix="/access-control/users", tags=["access-control"]
)


__all__ = ["router"]
